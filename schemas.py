"""
Database Schemas

Each document model maps to a MongoDB collection named after the
lowercased class name (User -> "user", Product -> "product",
Cart -> "cart"). The request models below them describe the JSON
bodies accepted by each endpoint.
"""

from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from errors import ValidationError


class User(BaseModel):
    name: str = Field(..., description="Full name")
    email: EmailStr = Field(..., description="Email address, unique across users")
    phone: str
    password: str = Field(..., description="BCrypt hashed password")
    user_type: str = Field("user", description="Role: user | admin")
    is_blocked: bool = False
    address: str = ""
    favourite: List[str] = Field(default_factory=list, description="Ordered product ids, duplicates allowed")
    created_at: int = Field(..., description="Unix seconds")
    updated_at: int = Field(..., description="Unix seconds")


class Product(BaseModel):
    product_id: Optional[str] = Field(None, description="External product identifier")
    title: Optional[str] = None
    description: Optional[str] = None
    price: float = Field(..., ge=0)
    category: Optional[str] = None
    images: List[str] = Field(default_factory=list)


class CartItem(BaseModel):
    product_id: str
    quantity: int = Field(..., ge=1)


class Cart(BaseModel):
    email: str = Field(..., description="Owner email, one cart per user")
    items: List[CartItem] = Field(default_factory=list)
    item_count: int = 0
    total: float = 0
    created_at: int
    updated_at: int


class TokenClaims(BaseModel):
    user_id: str
    email: str
    role: str


# Requests

class RequestModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    def require(self, *fields: str) -> None:
        for name in fields:
            value = getattr(self, name)
            if value is None or (isinstance(value, str) and not value.strip()):
                label = type(self).model_fields[name].alias or name
                raise ValidationError(f"{label} can't be empty")


class SignupRequest(RequestModel):
    email: str = ""
    name: str = ""
    phone: str = ""
    password: str = ""


class LoginRequest(RequestModel):
    email: str = ""
    password: str = ""


class AddressRequest(RequestModel):
    email: str = ""
    address: str = ""


class PasswordRequest(RequestModel):
    email: str = ""
    old_password: str = Field("", alias="oldPassword")
    new_password: str = Field("", alias="newPassword")


class NameRequest(RequestModel):
    email: str = ""
    name: str = ""


class FavoriteRequest(RequestModel):
    email: str = ""
    product_id: str = Field("", alias="productId")


class FavoriteListRequest(RequestModel):
    email: str = ""


class CartAddRequest(RequestModel):
    email: str = ""
    product_id: str = Field("", alias="productId")
    quantity: int = Field(1, ge=1)


class CartRemoveRequest(RequestModel):
    email: str = ""
    product_id: str = Field("", alias="productId")


class Envelope(BaseModel):
    error: bool = False
    message: str = "success"
    data: Optional[Any] = None
    token: Optional[str] = None
