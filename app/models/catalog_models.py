# app/models/catalog_models.py
from decimal import Decimal

from sqlalchemy import (
    Column, Integer, String, Numeric, Float, Boolean, CheckConstraint, Index,
    ForeignKey, DateTime, func
)
from sqlalchemy.orm import relationship
from app.core.db import Base


class Category(Base):
    __tablename__ = "categories"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), unique=True, nullable=False)
    slug = Column(String(255), unique=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    def __repr__(self):
        return f"<Category(id={self.id}, name='{self.name}')>"


class Product(Base):
    __tablename__ = "products"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), index=True, nullable=False)
    slug = Column(String(255), nullable=False)
    sku = Column(String(100), nullable=False)
    description = Column(String, nullable=True)
    main_image = Column(String, nullable=True)
    price = Column(Numeric(14, 2), default=Decimal("0.00"), nullable=False)
    # static fallback discount, independent of sale occasions
    discount_percent = Column(Numeric(5, 2), default=Decimal("0.00"), nullable=False)
    quantity_sold = Column(Integer, default=0, nullable=False)
    star_average = Column(Float, default=0.0, nullable=False)
    number_of_reviews = Column(Integer, default=0, nullable=False)
    is_deleted = Column(Boolean, default=False, nullable=False, index=True)

    category_id = Column(Integer, ForeignKey("categories.id"), nullable=True, index=True)
    category = relationship("Category", lazy="selectin")

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    __table_args__ = (
        CheckConstraint(price >= 0, name="check_product_price_non_negative"),
        CheckConstraint(
            (discount_percent >= 0) & (discount_percent <= 100),
            name="check_product_discount_percent_range",
        ),
        CheckConstraint(quantity_sold >= 0, name="check_product_quantity_sold_non_negative"),
        # slug/sku are only unique among live (non-deleted) products
        Index(
            "uq_products_slug_live", "slug", unique=True,
            postgresql_where=is_deleted.is_(False), sqlite_where=is_deleted.is_(False),
        ),
        Index(
            "uq_products_sku_live", "sku", unique=True,
            postgresql_where=is_deleted.is_(False), sqlite_where=is_deleted.is_(False),
        ),
    )

    def __repr__(self):
        return f"<Product(id={self.id}, name='{self.name}')>"
