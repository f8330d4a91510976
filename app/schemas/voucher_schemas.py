# app/schemas/voucher_schemas.py
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field

from app.models.voucher_models import DiscountType
from app.schemas.field_types import NonNegativeDecimal, PositiveDecimal, PositiveId, UtcDatetime


class VoucherCreate(BaseModel):
    code: str = Field(..., min_length=1, max_length=50)
    discount_type: DiscountType
    discount_value: PositiveDecimal
    min_purchase_amount: Optional[NonNegativeDecimal] = None
    max_discount_amount: Optional[PositiveDecimal] = None
    excluded_product_ids: List[PositiveId] = []
    start_date: UtcDatetime
    end_date: UtcDatetime


class VoucherUpdate(BaseModel):
    code: Optional[str] = Field(None, min_length=1, max_length=50)
    discount_type: Optional[DiscountType] = None
    discount_value: Optional[PositiveDecimal] = None
    min_purchase_amount: Optional[NonNegativeDecimal] = None
    max_discount_amount: Optional[PositiveDecimal] = None
    excluded_product_ids: Optional[List[PositiveId]] = None
    start_date: Optional[UtcDatetime] = None
    end_date: Optional[UtcDatetime] = None


class VoucherOut(BaseModel):
    id: int
    code: str
    discount_type: DiscountType
    discount_value: Decimal
    min_purchase_amount: Optional[Decimal] = None
    max_discount_amount: Optional[Decimal] = None
    excluded_product_ids: List[int] = []
    start_date: UtcDatetime
    end_date: UtcDatetime

    class Config:
        from_attributes = True


class VoucherValidateRequest(BaseModel):
    code: str = Field(..., min_length=1)
    cart_total: NonNegativeDecimal
    product_ids: List[PositiveId] = []


class VoucherQuoteOut(BaseModel):
    valid: bool = True
    voucher: VoucherOut
    discount_amount: Decimal
    final_amount: Decimal
