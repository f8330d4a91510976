# app/models/sale_models.py
from sqlalchemy import (
    Column, Integer, String, Numeric, CheckConstraint, Index, UniqueConstraint,
    ForeignKey, DateTime, func
)
from sqlalchemy.orm import relationship
from app.core.db import Base


class SaleOccasion(Base):
    """A time-bounded campaign discounting a set of products."""
    __tablename__ = "sale_occasions"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), unique=True, nullable=False)
    slug = Column(String(255), unique=True, nullable=False)
    start_at = Column(DateTime(timezone=True), nullable=False)
    end_at = Column(DateTime(timezone=True), nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())
    created_by = Column(Integer, ForeignKey("users.id"), nullable=True)

    products = relationship(
        "SaleProduct",
        back_populates="sale",
        cascade="all, delete-orphan",
        order_by="SaleProduct.position",
        lazy="selectin",
    )

    __table_args__ = (
        CheckConstraint(end_at > start_at, name="check_sale_window_order"),
        Index("ix_sale_occasions_window", "start_at", "end_at"),
    )

    def __repr__(self):
        return f"<SaleOccasion(id={self.id}, name='{self.name}')>"


class SaleProduct(Base):
    __tablename__ = "sale_products"

    id = Column(Integer, primary_key=True, index=True)
    sale_id = Column(Integer, ForeignKey("sale_occasions.id", ondelete="CASCADE"), nullable=False, index=True)
    # weak reference: products are soft-deleted, entries are never cascaded away
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False, index=True)
    sale_quantity = Column(Integer, nullable=False, default=0)
    sale_percent = Column(Numeric(5, 2), nullable=False)
    position = Column(Integer, nullable=False, default=0)

    sale = relationship("SaleOccasion", back_populates="products")

    __table_args__ = (
        UniqueConstraint("sale_id", "product_id", name="uq_sale_products_sale_product"),
        CheckConstraint(sale_quantity >= 0, name="check_sale_quantity_non_negative"),
        CheckConstraint(
            (sale_percent >= 0) & (sale_percent <= 100),
            name="check_sale_percent_range",
        ),
    )
