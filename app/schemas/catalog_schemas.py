# app/schemas/catalog_schemas.py
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel

from app.schemas.field_types import NonNegativeDecimal, Percent, PositiveId, NonEmptyStr, UtcDatetime


# --------------------------
# Category
# --------------------------
class CategoryCreate(BaseModel):
    name: NonEmptyStr


class CategoryOut(BaseModel):
    id: int
    name: str
    slug: str

    class Config:
        from_attributes = True


# --------------------------
# Product input
# --------------------------
class ProductCreate(BaseModel):
    name: NonEmptyStr
    sku: NonEmptyStr
    price: NonNegativeDecimal
    discount_percent: Percent = Decimal("0")
    category_id: Optional[PositiveId] = None
    description: Optional[str] = None
    main_image: Optional[str] = None


class ProductUpdate(BaseModel):
    """All fields optional for partial updates."""
    name: Optional[NonEmptyStr] = None
    sku: Optional[NonEmptyStr] = None
    price: Optional[NonNegativeDecimal] = None
    discount_percent: Optional[Percent] = None
    category_id: Optional[PositiveId] = None
    description: Optional[str] = None
    main_image: Optional[str] = None


# --------------------------
# Product output (priced view)
# --------------------------
class ProductView(BaseModel):
    """
    A product as shown to shoppers: stored fields plus the discount that
    applies right now. Built from a copy, never written back.
    """
    id: int
    name: str
    slug: str
    sku: str
    description: Optional[str] = None
    main_image: Optional[str] = None
    category: Optional[CategoryOut] = None
    quantity_sold: int = 0
    star_average: float = 0.0
    number_of_reviews: int = 0

    original_price: Decimal
    discount_percent: Decimal
    final_price: Decimal
    is_in_sale: bool = False
    sale_id: Optional[int] = None
    sale_quantity: Optional[int] = None
    sale_end_at: Optional[UtcDatetime] = None

    created_at: Optional[UtcDatetime] = None
