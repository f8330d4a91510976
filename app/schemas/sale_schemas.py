# app/schemas/sale_schemas.py
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field, model_validator

from app.schemas.field_types import Percent, PositiveId, NonEmptyStr, UtcDatetime
from app.schemas.catalog_schemas import CategoryOut


# --------------------------
# Input
# --------------------------
class SaleProductIn(BaseModel):
    product_id: PositiveId
    sale_quantity: int = Field(..., ge=0)
    sale_percent: Percent


class SaleOccasionCreate(BaseModel):
    name: NonEmptyStr
    start_at: UtcDatetime
    end_at: UtcDatetime
    products: List[SaleProductIn]


class SaleProductPatch(BaseModel):
    """Partial update of one existing entry; at least one field must be sent."""
    product_id: PositiveId
    sale_quantity: Optional[int] = Field(None, ge=0)
    sale_percent: Optional[Percent] = None

    @model_validator(mode="after")
    def require_a_field(self):
        if self.sale_quantity is None and self.sale_percent is None:
            raise ValueError("Either sale_quantity or sale_percent is required")
        return self


class SaleOccasionUpdate(BaseModel):
    name: Optional[NonEmptyStr] = None
    start_at: Optional[UtcDatetime] = None
    end_at: Optional[UtcDatetime] = None
    products: Optional[List[SaleProductPatch]] = Field(None, min_length=1)


# --------------------------
# Output
# --------------------------
class SaleProductOut(BaseModel):
    product_id: int
    sale_quantity: int
    sale_percent: Decimal

    class Config:
        from_attributes = True


class SaleOccasionOut(BaseModel):
    id: int
    name: str
    slug: str
    start_at: UtcDatetime
    end_at: UtcDatetime
    phase: Optional[str] = None
    products: List[SaleProductOut] = []
    created_at: Optional[UtcDatetime] = None

    class Config:
        from_attributes = True


class SaleListingItem(BaseModel):
    """One product on sale at the requested time."""
    product_id: int
    name: str
    slug: str
    main_image: Optional[str] = None
    category_id: Optional[int] = None
    price: Decimal
    sale_percent: Decimal
    sale_quantity: int
    sale_price: Decimal
    sale_id: int
    sale_start: UtcDatetime
    sale_end: UtcDatetime


class SaleDetailOut(BaseModel):
    """The single campaign chosen for a time (and optional category)."""
    sale: SaleOccasionOut
    products: List[SaleListingItem]


