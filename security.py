import re
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Union

from fastapi import HTTPException
from jose import JWTError, jwt
from passlib.context import CryptContext

ALGORITHM = "HS256"
BCRYPT_ROUNDS = 10

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=BCRYPT_ROUNDS)

_DURATION_RE = re.compile(r"^\s*(\d+)\s*([smhd]?)\s*$", re.IGNORECASE)
_UNIT_SECONDS = {"": 1, "s": 1, "m": 60, "h": 60 * 60, "d": 60 * 60 * 24}


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except (ValueError, TypeError):
        # unrecognised or empty stored hash
        return False


def parse_expires_in(value: Union[str, int]) -> timedelta:
    """Turn an expiry such as ``3600``, ``"30m"``, ``"12h"`` or ``"7d"`` into a timedelta."""
    if isinstance(value, int):
        return timedelta(seconds=value)
    match = _DURATION_RE.match(value)
    if not match:
        raise ValueError(f"Invalid token expiry: {value!r}")
    amount, unit = match.groups()
    return timedelta(seconds=int(amount) * _UNIT_SECONDS[unit.lower()])


def create_access_token(data: Dict[str, Any], secret: str, expires_in: Union[str, int, timedelta]) -> str:
    if not isinstance(expires_in, timedelta):
        expires_in = parse_expires_in(expires_in)
    now = datetime.now(timezone.utc)
    to_encode = data.copy()
    to_encode.update({"iat": now, "exp": now + expires_in})
    return jwt.encode(to_encode, secret, algorithm=ALGORITHM)


def decode_token(token: str, secret: str) -> Dict[str, Any]:
    try:
        return jwt.decode(token, secret, algorithms=[ALGORITHM])
    except JWTError:
        raise HTTPException(status_code=401, detail="Invalid or expired token")
