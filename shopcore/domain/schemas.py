# shopcore/domain/schemas.py
from pydantic import BaseModel, Field, ConfigDict
from typing import Any, Dict, List, Literal
from decimal import Decimal
from datetime import date, datetime

from shopcore.domain.order_status import OrderStatus, PaymentStatus

ADMIN_ROLE = "admin"


class Principal(BaseModel):
    """Authenticated caller, as forwarded by the gateway."""

    user_id: int
    role: str = "customer"

    @property
    def is_admin(self) -> bool:
        return self.role == ADMIN_ROLE


class ItemIn(BaseModel):
    """Add a product to the active cart."""

    product_id: int = Field(..., gt=0)
    quantity: int = Field(..., ge=1)
    metadata: Dict[str, Any] | None = None


class ItemQuantityIn(BaseModel):
    quantity: int = Field(..., ge=1)


class ProductInfoOut(BaseModel):
    id: int
    name: str
    brand: str | None = None
    primary_image_url: str | None = None
    status: str


class CartItemOut(BaseModel):
    id: int
    product_id: int
    quantity: int
    unit_price: Decimal
    total_price: Decimal
    added_at: datetime | None = None
    product_snapshot: Dict[str, Any] | None = None
    product: ProductInfoOut | None = None

    model_config = ConfigDict(from_attributes=True)


class CartOut(BaseModel):
    id: int
    user_id: int
    status: str
    total_amount: Decimal
    total_items: int
    last_activity_at: datetime | None = None
    items: List[CartItemOut]
    created_at: datetime | None = None
    updated_at: datetime | None = None

    model_config = ConfigDict(from_attributes=True)


class AddressIn(BaseModel):
    """
    Postal address. Required-field and postal-code rules are checked at
    checkout so direct callers of the order service get the same errors.
    """

    full_name: str = Field("", max_length=100)
    company: str | None = Field(None, max_length=100)
    address1: str = Field("", max_length=200)
    address2: str | None = Field(None, max_length=200)
    city: str = Field("", max_length=100)
    state: str = Field("", max_length=100)
    postal_code: str = Field("", max_length=20)
    country: str = Field("", max_length=100)
    phone: str | None = Field(None, max_length=30)


class OrderCreate(BaseModel):
    shipping_address: AddressIn
    billing_address: AddressIn | None = None
    payment_method: str | None = Field(None, max_length=100)
    notes: str | None = Field(None, max_length=1000)
    metadata: Dict[str, Any] | None = None


class OrderUpdate(BaseModel):
    """Admin update; monetary fields and items are not updatable."""

    status: OrderStatus | None = None
    payment_status: PaymentStatus | None = None
    tracking_number: str | None = Field(None, min_length=1, max_length=100)
    payment_method: str | None = Field(None, max_length=100)
    payment_transaction_id: str | None = Field(None, max_length=100)
    notes: str | None = Field(None, max_length=1000)


class OrderItemOut(BaseModel):
    id: int
    product_id: int
    quantity: int
    unit_price: Decimal
    total_price: Decimal
    product_snapshot: Dict[str, Any]

    model_config = ConfigDict(from_attributes=True)


class OrderOut(BaseModel):
    id: int
    order_number: str
    user_id: int
    status: str
    payment_status: str
    subtotal: Decimal
    tax_amount: Decimal
    shipping_amount: Decimal
    discount_amount: Decimal
    total_amount: Decimal
    order_date: datetime
    estimated_delivery_date: datetime | None = None
    delivered_at: datetime | None = None
    shipping_address: Dict[str, Any] | None = None
    billing_address: Dict[str, Any] | None = None
    notes: str | None = None
    tracking_number: str | None = None
    payment_method: str | None = None
    payment_transaction_id: str | None = None
    items: List[OrderItemOut]
    created_at: datetime | None = None
    updated_at: datetime | None = None

    model_config = ConfigDict(from_attributes=True)


class OrderQuery(BaseModel):
    page: int = Field(1, ge=1)
    limit: int = Field(20, ge=1, le=100)
    status: OrderStatus | None = None
    payment_status: PaymentStatus | None = None
    start_date: date | None = None
    end_date: date | None = None
    search: str | None = None
    sort_by: Literal["order_date", "total_amount", "status", "order_number"] = "order_date"
    sort_order: Literal["asc", "desc"] = "desc"


class PaginationOut(BaseModel):
    page: int
    limit: int
    total: int
    total_pages: int
    has_next: bool
    has_prev: bool


class OrderPageOut(BaseModel):
    data: List[OrderOut]
    pagination: PaginationOut
