# app/services/pricing_service.py
import logging
from datetime import datetime
from decimal import Decimal
from typing import List, Optional, Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from app.models.catalog_models import Product
from app.schemas.catalog_schemas import CategoryOut, ProductView
from app.services.discount_resolution import ResolutionMode, SaleDiscount, resolve_discounts
from app.services.sale_window_service import find_active_campaigns
from app.utils.decimal_utils import HUNDRED, to_decimal

logger = logging.getLogger(__name__)


def apply_percent(price, percent, quantity: int = 1) -> Decimal:
    """price * (1 - percent/100) * quantity, rounded to cents once at the end."""
    price = to_decimal(price)
    return to_decimal(price * (1 - to_decimal(percent) / HUNDRED) * quantity)


def build_product_view(product: Product, discount: Optional[SaleDiscount]) -> ProductView:
    """Read the stored row into a fresh view; the row itself is left untouched."""
    # a 0% campaign entry does not count as being on sale
    if discount is not None and discount.sale_percent <= 0:
        discount = None

    if discount is not None:
        percent = to_decimal(discount.sale_percent)
    else:
        percent = to_decimal(product.discount_percent)

    category = product.category
    return ProductView(
        id=product.id,
        name=product.name,
        slug=product.slug,
        sku=product.sku,
        description=product.description,
        main_image=product.main_image,
        category=CategoryOut.model_validate(category) if category is not None else None,
        quantity_sold=product.quantity_sold or 0,
        star_average=product.star_average or 0.0,
        number_of_reviews=product.number_of_reviews or 0,
        original_price=to_decimal(product.price),
        discount_percent=percent,
        final_price=apply_percent(product.price, percent),
        is_in_sale=discount is not None,
        sale_id=discount.sale_id if discount else None,
        sale_quantity=discount.sale_quantity if discount else None,
        sale_end_at=discount.sale_end if discount else None,
        created_at=product.created_at,
    )


# --------------------------
# DECORATE A BATCH OF PRODUCTS
# --------------------------
async def decorate_products(
    db: AsyncSession,
    products: Sequence[Product],
    now: datetime,
) -> List[ProductView]:
    """
    Attach the discount active at ``now`` to each product.

    A campaign discount (highest percent wins across overlapping campaigns)
    overrides the static ``discount_percent`` and sets ``is_in_sale``;
    otherwise the static discount is shown. One window query per batch,
    regardless of its size.
    """
    if not products:
        return []

    product_ids = [p.id for p in products]
    campaigns = await find_active_campaigns(db, product_ids, now)
    discounts = resolve_discounts(product_ids, campaigns, ResolutionMode.MAX_PERCENT)

    return [build_product_view(p, discounts.get(p.id)) for p in products]


async def decorate_product(db: AsyncSession, product: Product, now: datetime) -> ProductView:
    [view] = await decorate_products(db, [product], now)
    return view
