# app/models/voucher_models.py
import enum

from sqlalchemy import (
    Column, Integer, String, Numeric, DateTime, ForeignKey, Table, Enum, func
)
from sqlalchemy.orm import relationship
from app.core.db import Base


class DiscountType(str, enum.Enum):
    PERCENTAGE = "percentage"
    FIXED = "fixed"


voucher_excluded_products = Table(
    "voucher_excluded_products",
    Base.metadata,
    Column("voucher_id", Integer, ForeignKey("vouchers.id", ondelete="CASCADE"), primary_key=True),
    Column("product_id", Integer, ForeignKey("products.id"), primary_key=True),
)


class Voucher(Base):
    __tablename__ = "vouchers"

    id = Column(Integer, primary_key=True, index=True)
    code = Column(String(50), unique=True, nullable=False, index=True)
    discount_type = Column(Enum(DiscountType, name="voucher_discount_type"), nullable=False)
    discount_value = Column(Numeric(14, 2), nullable=False)
    min_purchase_amount = Column(Numeric(14, 2), nullable=True)
    # caps percentage discounts only
    max_discount_amount = Column(Numeric(14, 2), nullable=True)
    start_date = Column(DateTime(timezone=True), nullable=False)
    end_date = Column(DateTime(timezone=True), nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    excluded_products = relationship(
        "Product",
        secondary=voucher_excluded_products,
        lazy="selectin",
    )

    @property
    def excluded_product_ids(self) -> list[int]:
        return [p.id for p in self.excluded_products]

    def __repr__(self):
        return f"<Voucher(id={self.id}, code='{self.code}')>"
