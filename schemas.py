"""
Database Schemas for the Shop Admin panel

Users and shops live in the shared admin database ("users", "shops").
Categories and products live in each shop's own database ("categories",
"products"). Field names are stored in camelCase so existing shop databases
keep working; the Python attributes are snake_case aliases of them.
"""
from datetime import datetime
from typing import Any, List, Literal, Optional

from pydantic import AnyUrl, BaseModel, ConfigDict, EmailStr, Field, TypeAdapter, ValidationError, field_validator
from pydantic.alias_generators import to_camel

ShopStatus = Literal["active", "pending", "inactive"]
UserRole = Literal["admin", "user"]

_url_adapter = TypeAdapter(AnyUrl)


def check_image_url(value: Optional[str]) -> Optional[str]:
    if value is None or value == "":
        return value
    try:
        _url_adapter.validate_python(value)
    except ValidationError:
        raise ValueError("Must be a valid URL")
    return value


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# Users (admin database)
class UserCreate(CamelModel):
    username: str = Field(..., min_length=3, description="Login name (unique)")
    email: EmailStr = Field(..., description="Email address (unique)")
    password: str = Field(..., min_length=6, description="Plain on input, hashed before insert")
    role: UserRole = "admin"


class User(CamelModel):
    id: str = Field(..., alias="_id")
    username: str
    email: str
    role: UserRole = "admin"
    created_at: Optional[datetime] = None


class UserRecord(User):
    """User as stored, including the password hash. Never returned by a route."""
    password: str


class LoginRequest(BaseModel):
    # either the email address or the username
    username: str
    password: str


# Shops (admin database)
class ShopCreate(CamelModel):
    name: str = Field(..., min_length=1)
    location: str = Field(..., min_length=1)
    mongo_uri: str = Field(..., min_length=1, description="Connection string of the shop database")
    description: Optional[str] = None
    image_url: Optional[str] = None
    status: ShopStatus = "pending"

    @field_validator("image_url")
    @classmethod
    def image_url_is_url(cls, value):
        return check_image_url(value)


class ShopUpdate(CamelModel):
    name: Optional[str] = Field(None, min_length=1)
    location: Optional[str] = Field(None, min_length=1)
    mongo_uri: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = None
    image_url: Optional[str] = None
    status: Optional[ShopStatus] = None

    @field_validator("image_url")
    @classmethod
    def image_url_is_url(cls, value):
        return check_image_url(value)


class Shop(CamelModel):
    """Public view of a shop. Has no connection string field."""
    id: str = Field(..., alias="_id")
    name: str
    location: str
    description: Optional[str] = None
    image_url: Optional[str] = None
    status: ShopStatus = "pending"
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class ShopRecord(Shop):
    """Shop as stored in the admin database, connection string included."""
    mongo_uri: str


def to_public_shop(record: ShopRecord) -> Shop:
    return Shop.model_validate(record.model_dump(exclude={"mongo_uri"}))


# Categories (shop database)
class CategoryCreate(CamelModel):
    name: str = Field(..., min_length=1)
    slug: str = Field(..., min_length=1, description="URL-safe identifier, referenced by products")
    description: str = Field(..., min_length=1)
    image_url: Optional[str] = None


class CategoryUpdate(CamelModel):
    name: Optional[str] = Field(None, min_length=1)
    slug: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = Field(None, min_length=1)
    image_url: Optional[str] = None


class Category(CamelModel):
    # shop databases may carry fields this panel does not manage
    model_config = ConfigDict(extra="allow")

    id: str = Field(..., alias="_id")
    name: Optional[str] = None
    slug: Optional[str] = None
    description: Optional[str] = None
    image_url: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


# Products (shop database)
class ProductCreate(CamelModel):
    name: str = Field(..., min_length=1)
    category: str = Field(..., min_length=1, description="Category slug")
    price: float = Field(..., ge=0)
    original_price: Optional[float] = Field(None, ge=0)
    discount_percentage: Optional[float] = Field(None, ge=0, le=100)
    material: Optional[str] = None
    description: str = Field(..., min_length=1)
    images: List[str] = Field(default_factory=list)
    colors: List[str] = Field(default_factory=list)
    in_stock: bool = True
    collection_type: Optional[str] = None
    rating: Optional[float] = Field(None, ge=0, le=5)
    review_count: Optional[int] = Field(None, ge=0)


class ProductUpdate(CamelModel):
    name: Optional[str] = Field(None, min_length=1)
    category: Optional[str] = Field(None, min_length=1)
    price: Optional[float] = Field(None, ge=0)
    original_price: Optional[float] = Field(None, ge=0)
    discount_percentage: Optional[float] = Field(None, ge=0, le=100)
    material: Optional[str] = None
    description: Optional[str] = Field(None, min_length=1)
    images: Optional[List[str]] = None
    colors: Optional[List[str]] = None
    in_stock: Optional[bool] = None
    collection_type: Optional[str] = None
    rating: Optional[float] = Field(None, ge=0, le=5)
    review_count: Optional[int] = Field(None, ge=0)


class Product(CamelModel):
    model_config = ConfigDict(extra="allow")

    id: str = Field(..., alias="_id")
    name: Optional[str] = None
    category: Optional[str] = None
    price: Optional[float] = None
    original_price: Optional[float] = None
    discount_percentage: Optional[float] = None
    material: Optional[str] = None
    description: Optional[str] = None
    images: Optional[List[str]] = Field(default_factory=list)
    colors: Optional[List[str]] = Field(default_factory=list)
    in_stock: Optional[bool] = True
    collection_type: Optional[str] = None
    rating: Optional[float] = None
    review_count: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


# Dashboard / tools
class ConnectionTest(CamelModel):
    # anything that is not a string simply fails the connection test
    mongo_uri: Any = None


class ConnectionResult(BaseModel):
    connected: bool


class Stats(CamelModel):
    total_shops: int
    total_products: int
    active_connections: int
    system_status: str = "online"
