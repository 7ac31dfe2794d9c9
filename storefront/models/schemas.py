import re
from datetime import datetime
from decimal import Decimal
from typing import Annotated, List, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, PlainSerializer, field_validator
from pydantic.alias_generators import to_camel

from storefront.models.enums import OrderStatus, PaymentMethod, PaymentStatus, UserRole

Money = Annotated[Decimal, PlainSerializer(float, return_type=float, when_used="json")]

SLUG_PATTERN = r"^[a-z0-9-]+$"


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


def _check_password_strength(value: str) -> str:
    if not re.search(r"[A-Z]", value):
        raise ValueError("Password must contain at least one uppercase letter")
    if not re.search(r"[a-z]", value):
        raise ValueError("Password must contain at least one lowercase letter")
    if not re.search(r"[0-9]", value):
        raise ValueError("Password must contain at least one number")
    return value


# Auth / users

class RegisterIn(CamelModel):
    email: EmailStr
    password: str = Field(..., min_length=8, max_length=100)
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    phone: Optional[str] = Field(None, max_length=20)
    address: Optional[str] = Field(None, max_length=500)

    @field_validator("password")
    @classmethod
    def strong_password(cls, value: str) -> str:
        return _check_password_strength(value)


class LoginIn(CamelModel):
    email: EmailStr
    password: str = Field(..., min_length=1)


class RefreshIn(CamelModel):
    refresh_token: Optional[str] = None


class UserOut(CamelModel):
    id: str
    email: str
    first_name: str
    last_name: str
    phone: Optional[str] = None
    address: Optional[str] = None
    role: UserRole
    created_at: Optional[datetime] = None


class Tokens(CamelModel):
    access_token: str
    refresh_token: str


class ProfileUpdateIn(CamelModel):
    first_name: Optional[str] = Field(None, min_length=1, max_length=100)
    last_name: Optional[str] = Field(None, min_length=1, max_length=100)
    phone: Optional[str] = Field(None, max_length=20)
    address: Optional[str] = Field(None, max_length=500)


class PasswordUpdateIn(CamelModel):
    current_password: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=8, max_length=100)

    @field_validator("new_password")
    @classmethod
    def strong_password(cls, value: str) -> str:
        return _check_password_strength(value)


class RoleUpdateIn(CamelModel):
    role: UserRole


# Catalog

class CategoryCreate(CamelModel):
    name: str = Field(..., min_length=1, max_length=100)
    slug: Optional[str] = Field(None, min_length=1, max_length=100, pattern=SLUG_PATTERN)
    description: Optional[str] = Field(None, max_length=500)
    image: Optional[str] = Field(None, max_length=500)
    sort_order: int = Field(0, ge=0)
    is_active: bool = True


class CategoryUpdate(CamelModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    slug: Optional[str] = Field(None, min_length=1, max_length=100, pattern=SLUG_PATTERN)
    description: Optional[str] = Field(None, max_length=500)
    image: Optional[str] = Field(None, max_length=500)
    sort_order: Optional[int] = Field(None, ge=0)
    is_active: Optional[bool] = None


class CategoryBrief(CamelModel):
    id: str
    name: str
    slug: str


class CategoryOut(CamelModel):
    id: str
    name: str
    slug: str
    description: Optional[str] = None
    image: Optional[str] = None
    sort_order: int
    is_active: bool
    product_count: Optional[int] = None
    created_at: datetime
    updated_at: datetime


class ProductCreate(CamelModel):
    name: str = Field(..., min_length=1, max_length=200)
    slug: Optional[str] = Field(None, min_length=1, max_length=200, pattern=SLUG_PATTERN)
    description: str = Field("", max_length=2000)
    price: Decimal = Field(..., gt=0, le=100000, decimal_places=2)
    old_price: Optional[Decimal] = Field(None, gt=0, le=100000, decimal_places=2)
    image: Optional[str] = Field(None, max_length=500)
    images: List[str] = Field(default_factory=list, max_length=10)
    weight: Optional[int] = Field(None, gt=0)
    calories: Optional[int] = Field(None, gt=0)
    stock_quantity: int = Field(0, ge=0)
    is_active: bool = True
    is_new: bool = False
    is_bestseller: bool = False
    category_id: str = Field(..., min_length=1)


class ProductUpdate(CamelModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    slug: Optional[str] = Field(None, min_length=1, max_length=200, pattern=SLUG_PATTERN)
    description: Optional[str] = Field(None, max_length=2000)
    price: Optional[Decimal] = Field(None, gt=0, le=100000, decimal_places=2)
    old_price: Optional[Decimal] = Field(None, gt=0, le=100000, decimal_places=2)
    image: Optional[str] = Field(None, max_length=500)
    images: Optional[List[str]] = Field(None, max_length=10)
    weight: Optional[int] = Field(None, gt=0)
    calories: Optional[int] = Field(None, gt=0)
    stock_quantity: Optional[int] = Field(None, ge=0)
    is_active: Optional[bool] = None
    is_new: Optional[bool] = None
    is_bestseller: Optional[bool] = None
    category_id: Optional[str] = Field(None, min_length=1)


class StockUpdateIn(CamelModel):
    quantity: int = Field(..., ge=0)


class ProductOut(CamelModel):
    id: str
    name: str
    slug: str
    description: str
    price: Money
    old_price: Optional[Money] = None
    image: Optional[str] = None
    images: List[str] = []
    weight: Optional[int] = None
    calories: Optional[int] = None
    stock_quantity: int
    is_active: bool
    is_new: bool
    is_bestseller: bool
    category_id: str
    category: Optional[CategoryBrief] = None
    created_at: datetime
    updated_at: datetime


# Cart

class CartItemIn(CamelModel):
    product_id: str = Field(..., min_length=1)
    quantity: int = Field(..., gt=0)


class CartIn(CamelModel):
    items: List[CartItemIn] = Field(default_factory=list)


class CartLineOut(CamelModel):
    product_id: str
    quantity: int
    product: ProductOut


class CartOut(CamelModel):
    items: List[CartLineOut]
    total: Money


class CartTotalsOut(CamelModel):
    subtotal: Money
    delivery_fee: Money
    discount: Money
    total: Money
    item_count: int


# Orders

class OrderItemIn(CamelModel):
    product_id: str = Field(..., min_length=1)
    quantity: int = Field(..., gt=0, le=100)


class OrderCreate(CamelModel):
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    email: EmailStr
    phone: str = Field(..., min_length=5, max_length=20)
    address: str = Field(..., min_length=10, max_length=500)
    payment_method: PaymentMethod
    customer_note: Optional[str] = Field(None, max_length=1000)
    items: List[OrderItemIn] = Field(..., min_length=1)


class OrderUpdate(CamelModel):
    status: Optional[OrderStatus] = None
    payment_status: Optional[PaymentStatus] = None
    admin_note: Optional[str] = Field(None, max_length=1000)
    discount: Optional[Decimal] = Field(None, ge=0, decimal_places=2)


class OrderItemOut(CamelModel):
    id: str
    product_id: str
    product_name: str
    product_image: Optional[str] = None
    price: Money
    quantity: int


class OrderOut(CamelModel):
    id: str
    order_number: str
    user_id: Optional[str] = None
    first_name: str
    last_name: str
    email: str
    phone: str
    address: str
    status: OrderStatus
    payment_status: PaymentStatus
    payment_method: PaymentMethod
    subtotal: Money
    delivery_fee: Money
    discount: Money
    total: Money
    customer_note: Optional[str] = None
    admin_note: Optional[str] = None
    items: List[OrderItemOut]
    created_at: datetime
    updated_at: datetime
