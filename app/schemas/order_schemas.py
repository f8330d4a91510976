# app/schemas/order_schemas.py
from decimal import Decimal
from typing import List, Optional, Any, Dict

from pydantic import BaseModel, Field

from app.models.order_models import OrderStatus, PaymentStatus, PaymentMethod
from app.schemas.field_types import PositiveId, NonEmptyStr, UtcDatetime


class OrderLineIn(BaseModel):
    product_id: PositiveId
    quantity: int = Field(..., gt=0)


class OrderCreate(BaseModel):
    # authenticated callers are identified by their token instead
    anonymous_id: Optional[str] = Field(None, min_length=1, max_length=100)
    products: List[OrderLineIn] = Field(..., min_length=1)
    user_name: NonEmptyStr
    user_email: Optional[str] = None
    user_phone: NonEmptyStr
    district: NonEmptyStr
    address: NonEmptyStr
    note: Optional[str] = None
    payment_method: PaymentMethod = PaymentMethod.COD
    voucher_code: Optional[str] = None


class OrderItemOut(BaseModel):
    product_id: int
    product_name: Optional[str] = None
    quantity: int
    unit_price: Decimal
    line_total: Decimal

    class Config:
        from_attributes = True


class OrderOut(BaseModel):
    id: int
    order_code: str
    user_id: Optional[int] = None
    anonymous_id: Optional[str] = None
    status: OrderStatus
    payment_status: PaymentStatus
    payment_method: PaymentMethod
    user_name: str
    user_email: Optional[str] = None
    user_phone: str
    district: str
    address: str
    note: Optional[str] = None
    subtotal_amount: Decimal
    discount_amount: Decimal
    shipping_fee: Decimal
    total_amount: Decimal
    voucher_id: Optional[int] = None
    voucher_snapshot: Optional[Dict[str, Any]] = None
    transaction_id: Optional[str] = None
    paid_at: Optional[UtcDatetime] = None
    items: List[OrderItemOut] = []
    created_at: Optional[UtcDatetime] = None

    class Config:
        from_attributes = True


class OrderStatusUpdate(BaseModel):
    status: OrderStatus


class PaymentStatusUpdate(BaseModel):
    payment_status: PaymentStatus
    payment_method: Optional[PaymentMethod] = None
    transaction_id: Optional[str] = None


class OrderCodeOut(BaseModel):
    order_code: str


class OrderStatsOut(BaseModel):
    total_orders: int
    pending_orders: int
    processing_orders: int
    shipped_orders: int
    delivered_orders: int
    cancelled_orders: int
    delivered_revenue: Decimal
