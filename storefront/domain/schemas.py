# storefront/domain/schemas.py
from datetime import datetime
from typing import Dict, List, Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

from storefront.domain.enums import OrderStatus, ProductStatus, UserType

Variant = Dict[str, str]


# -- cart ---------------------------------------------------------------------


class AddToCartIn(BaseModel):
    """Schema for adding a product to the cart."""

    product_id: int = Field(..., gt=0, description="Product ID (must be > 0)")
    quantity: int = Field(..., ge=1, le=99, description="Quantity between 1 and 99")
    variant: Variant | None = None


class UpdateCartItemIn(BaseModel):
    """Schema for overwriting the quantity of a cart line."""

    quantity: int = Field(..., ge=1, le=99, description="Quantity between 1 and 99")
    variant: Variant | None = None


class RemoveFromCartIn(BaseModel):
    product_id: int = Field(..., gt=0)


class ProductSnapshotOut(BaseModel):
    id: int
    name: str
    sku: str | None = None
    price: int
    stock: int
    status: str
    image: str | None = None


class CartItemOut(BaseModel):
    id: int
    product_id: int
    quantity: int
    variant: Variant = {}
    product: ProductSnapshotOut


class CartOut(BaseModel):
    """Schema for the cart (response). `id` is null for an empty, not yet created cart."""

    id: int | None = None
    user_id: str | None = None
    session_id: str | None = None
    items: List[CartItemOut] = []
    item_count: int = 0
    total_amount: int = 0


class CartSummaryOut(BaseModel):
    item_count: int
    subtotal: int
    tax: int
    shipping: int
    total: int


class CartResponse(BaseModel):
    cart: CartOut | None
    summary: CartSummaryOut
    message: str | None = None


class MergeCartResponse(CartResponse):
    merged: bool


class CartCountOut(BaseModel):
    count: int


# -- orders -------------------------------------------------------------------


class AddressIn(BaseModel):
    """Delivery or billing address, stored inside the order as-is."""

    name: str = Field(..., min_length=1, max_length=50, description="Recipient name")
    phone: str = Field(..., min_length=10, max_length=15)
    postal_code: str = Field(..., min_length=5, max_length=10)
    address: str = Field(..., min_length=1, max_length=200)
    detail: str | None = Field(None, max_length=100)


class OrderItemIn(BaseModel):
    product_id: int = Field(..., gt=0)
    name: str = Field(..., min_length=1, max_length=200)
    sku: str | None = Field(None, max_length=50)
    price: int = Field(..., ge=0)
    quantity: int = Field(..., ge=1, le=99)
    variant: Variant | None = None


class OrderCreate(BaseModel):
    """Schema for creating an order from client-declared lines and totals."""

    items: List[OrderItemIn] = Field(..., min_length=1, description="At least one line")
    shipping_address: AddressIn
    billing_address: AddressIn | None = None
    notes: str | None = Field(None, max_length=500)

    subtotal: int = Field(..., ge=0)
    tax: int = Field(0, ge=0)
    shipping: int = Field(0, ge=0)
    discount: int = Field(0, ge=0)
    total: int = Field(..., ge=0)

    @model_validator(mode="after")
    def totals_must_add_up(self):
        expected = self.subtotal - self.discount + self.tax + self.shipping
        if self.total != expected:
            raise ValueError(f"total must equal subtotal - discount + tax + shipping ({expected})")
        return self


class OrderUpdate(BaseModel):
    """Permissive patch of an order; only the fields that are set get written."""

    status: OrderStatus | None = None
    tracking_number: str | None = Field(None, max_length=100)
    carrier: str | None = Field(None, max_length=50)
    notes: str | None = Field(None, max_length=500)


class OrderStatusUpdate(OrderUpdate):
    status: OrderStatus
    reason: str | None = Field(None, max_length=200)


class CancelOrderIn(BaseModel):
    reason: str | None = Field(None, max_length=200)


class OrderFilter(BaseModel):
    user_id: str | None = None
    status: OrderStatus | None = None
    start_date: datetime | None = None
    end_date: datetime | None = None
    min_amount: int | None = Field(None, ge=0)
    max_amount: int | None = Field(None, ge=0)


class OrderQuery(BaseModel):
    page: int = Field(1, ge=1)
    limit: int = Field(20, ge=1, le=100)
    status: OrderStatus | None = None
    sort: Literal["created_at", "total", "status"] = "created_at"
    order: Literal["asc", "desc"] = "desc"


class OrderItemOut(BaseModel):
    id: int
    product_id: int
    name: str
    sku: str | None = None
    price: int
    quantity: int
    variant: Variant = {}

    model_config = ConfigDict(from_attributes=True)


class OrderOut(BaseModel):
    """Schema for an order (response)."""

    id: int
    order_number: str
    user_id: str | None = None
    status: OrderStatus
    items: List[OrderItemOut]
    subtotal: int
    tax: int
    shipping: int
    discount: int
    total: int
    shipping_address: dict
    billing_address: dict | None = None
    tracking_number: str | None = None
    carrier: str | None = None
    notes: str | None = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class OrderResponse(BaseModel):
    order: OrderOut
    message: str | None = None


class PaginationOut(BaseModel):
    page: int
    limit: int
    total: int
    total_pages: int


class OrderListOut(BaseModel):
    orders: List[OrderOut]
    pagination: PaginationOut


class OrderStatsOut(BaseModel):
    total_orders: int
    pending_orders: int
    completed_orders: int
    cancelled_orders: int
    total_revenue: int
    average_order_value: int
    today_orders: int
    today_revenue: int


# -- catalog ------------------------------------------------------------------


class ProductOut(BaseModel):
    id: int
    name: str
    description: str | None = None
    sku: str | None = None
    price: int
    stock: int
    track_stock: bool
    status: ProductStatus
    category: str | None = None
    images: List[str] = []


class ProductListOut(BaseModel):
    products: List[ProductOut]
    pagination: PaginationOut


# -- users & sessions ---------------------------------------------------------


class UserCreate(BaseModel):
    """Schema for registering a user record."""

    id: str = Field(..., min_length=1, max_length=64, description="User ID")
    name: str = Field(..., min_length=1, max_length=100, description="Display name")
    email: str | None = Field(None, max_length=255)
    type: UserType = UserType.CUSTOMER


class UserRead(BaseModel):
    """Schema for a user (response)."""

    id: str
    name: str
    email: str | None = None
    type: UserType

    model_config = ConfigDict(from_attributes=True)


class SessionOut(BaseModel):
    success: bool
    token: str


class MigrateSessionIn(BaseModel):
    old_session_id: str = Field(..., min_length=1, max_length=64)


class MigrateSessionOut(SessionOut):
    migrated: bool


class CsrfOut(BaseModel):
    success: bool
    token: str
