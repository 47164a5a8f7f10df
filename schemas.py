"""
Database Schemas

Each collection document is described by a Pydantic model; request bodies
for the API live alongside them.

Collections:
- users
- products
"""
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field

DEFAULT_IMAGE_URL = "https://cdn.pixabay.com/photo/2020/07/01/12/58/icon-5359553_1280.png"


class User(BaseModel):
    """
    Users collection schema
    Collection name: "users"
    """
    username: str = Field(..., description="Display name")
    email: str = Field(..., description="Lower-cased email, unique")
    password_hash: str = Field(..., description="BCrypt password hash")
    role: str = Field("user", description="Only \"user\" is ever assigned; never enforced")
    image_url: str = Field(DEFAULT_IMAGE_URL, description="Avatar URL")

    def public(self) -> Dict[str, Any]:
        return {
            "username": self.username,
            "email": self.email,
            "role": self.role,
            "imageUrl": self.image_url,
        }


class Product(BaseModel):
    """
    Products collection schema
    Collection name: "products"

    Fields are stored exactly as submitted, with no type or range checks.
    """
    image: Any = None
    title: Any = None
    price: Any = None
    ratings: Any = None
    category: Any = None
    description: Any = None


class ProductUpdate(Product):
    """Partial update: only the fields present in the body are written."""


# Auth request models
class RegisterRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    username: str
    email: EmailStr
    password: str
    image_url: Optional[str] = Field(None, alias="imageUrl")


class LoginRequest(BaseModel):
    email: str
    password: str
