"""
Runtime configuration

Values come from the process environment (a local .env file is honoured) and are
loaded once into a Settings model.
"""
import os
from typing import List, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, field_validator

from security import parse_expires_in


class Settings(BaseModel):
    port: int = 2024
    mongodb_uri: str = "mongodb://localhost:27017"
    database_name: str = "Dress-Up"
    jwt_secret: str = "dev-secret-change-me"
    expires_in: str = "7d"
    cors_origins: List[str] = ["*"]
    log_level: str = "INFO"

    @field_validator("expires_in")
    @classmethod
    def _check_expires_in(cls, value: str) -> str:
        # fail at startup rather than on the first token issued
        parse_expires_in(value)
        return value

    @classmethod
    def from_env(cls) -> "Settings":
        load_dotenv()
        defaults = cls()
        origins = os.getenv("CORS_ORIGINS")
        return cls(
            port=int(os.getenv("PORT", defaults.port)),
            mongodb_uri=os.getenv("MONGODB_URI", defaults.mongodb_uri),
            database_name=os.getenv("DATABASE_NAME", defaults.database_name),
            jwt_secret=os.getenv("JWT_SECRET", defaults.jwt_secret),
            expires_in=os.getenv("EXPIRES_IN", defaults.expires_in),
            cors_origins=[o.strip() for o in origins.split(",") if o.strip()] if origins else defaults.cors_origins,
            log_level=os.getenv("LOG_LEVEL", defaults.log_level).upper(),
        )


_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Return the cached settings, reading the environment on first use."""
    global _settings
    if _settings is None:
        _settings = Settings.from_env()
    return _settings


def reset_settings() -> None:
    """Drop the cached settings (used by tests)."""
    global _settings
    _settings = None
