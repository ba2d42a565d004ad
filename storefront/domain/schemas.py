# storefront/domain/schemas.py
from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from storefront.domain.enums import OrderStatus, PaymentStatus, UserRole


class UserCreate(BaseModel):
    """Schema for creating a user."""

    id: int = Field(..., gt=0, description="User id (must be > 0)")
    name: str = Field(..., min_length=1, max_length=100)
    email: Optional[str] = Field(None, max_length=255)
    role: UserRole = UserRole.CUSTOMER


class UserRead(BaseModel):
    id: int
    name: str
    email: Optional[str] = None
    role: UserRole

    model_config = ConfigDict(from_attributes=True)


class ProductCreate(BaseModel):
    name: str = Field(..., min_length=2, max_length=100)
    description: Optional[str] = Field(None, max_length=1000)
    price: Decimal = Field(..., ge=0, max_digits=10, decimal_places=2)
    stock_quantity: int = Field(0, ge=0)
    image_url: Optional[str] = None
    active: bool = True


class ProductUpdate(BaseModel):
    """
    Administrative update. Stock is not part of it, use restock instead.
    `version` is the version the client read; omit it to update blindly.
    """

    name: Optional[str] = Field(None, min_length=2, max_length=100)
    description: Optional[str] = Field(None, max_length=1000)
    price: Optional[Decimal] = Field(None, ge=0, max_digits=10, decimal_places=2)
    image_url: Optional[str] = None
    active: Optional[bool] = None
    version: Optional[int] = Field(None, ge=1)


class RestockIn(BaseModel):
    quantity: int = Field(..., gt=0)


class ProductOut(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    price: Decimal
    stock_quantity: int
    image_url: Optional[str] = None
    active: bool
    version: int

    model_config = ConfigDict(from_attributes=True)


class ItemIn(BaseModel):
    """A (product, quantity) pair sent by the client."""

    product_id: int = Field(..., gt=0)
    quantity: int = Field(..., gt=0)


class QuantityIn(BaseModel):
    # <= 0 removes the line
    quantity: int


class MergeCartIn(BaseModel):
    guest_id: str = Field(..., min_length=1, max_length=64)


class CartItemOut(BaseModel):
    product_id: int
    product_name: str
    quantity: int
    unit_price: Decimal
    line_total: Decimal


class CartOut(BaseModel):
    owner_id: str
    items: List[CartItemOut]
    total: Decimal


class PaymentDetails(BaseModel):
    """
    Method-agnostic bag of payment credentials. Passed through to the
    selected strategy, never persisted.
    """

    customer_id: Optional[str] = None
    customer_email: Optional[str] = None
    customer_name: Optional[str] = None

    card_number: Optional[str] = None
    card_holder_name: Optional[str] = None
    expiry_date: Optional[str] = None
    cvv: Optional[str] = None

    paypal_email: Optional[str] = None
    paypal_token: Optional[str] = None

    bank_account_number: Optional[str] = None
    bank_routing_number: Optional[str] = None
    bank_name: Optional[str] = None

    additional_properties: Dict[str, str] = Field(default_factory=dict)


class OrderCreate(BaseModel):
    items: List[ItemIn] = Field(..., min_length=1)
    shipping_address: Optional[str] = Field(None, max_length=500)


class OrderPaymentCreate(OrderCreate):
    payment_method: str = Field(..., min_length=1)
    payment_details: PaymentDetails = Field(default_factory=PaymentDetails)


class CheckoutIn(BaseModel):
    payment_method: Optional[str] = None
    payment_details: PaymentDetails = Field(default_factory=PaymentDetails)
    shipping_address: Optional[str] = Field(None, max_length=500)


class OrderStatusIn(BaseModel):
    status: OrderStatus


class PaymentStatusIn(BaseModel):
    payment_status: PaymentStatus


class RefundIn(BaseModel):
    payment_details: PaymentDetails = Field(default_factory=PaymentDetails)


class OrderItemOut(BaseModel):
    product_id: int
    product_name: str
    quantity: int
    unit_price: Decimal
    subtotal: Decimal

    model_config = ConfigDict(from_attributes=True)


class OrderOut(BaseModel):
    id: int
    user_id: int
    order_date: datetime
    status: OrderStatus
    payment_status: PaymentStatus
    total_amount: Decimal
    payment_method: Optional[str] = None
    transaction_id: Optional[str] = None
    shipping_address: Optional[str] = None
    version: int
    items: List[OrderItemOut]

    model_config = ConfigDict(from_attributes=True)


class OrderPage(BaseModel):
    items: List[OrderOut]
    page: int
    size: int
    total: int


class CountOut(BaseModel):
    count: int


class PaymentMethodsOut(BaseModel):
    methods: List[str]
