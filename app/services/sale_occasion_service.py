# app/services/sale_occasion_service.py
import enum
import logging
from collections import Counter
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Tuple

from sqlalchemy import select, func, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import ConflictError, NotFoundError, StateError, ValidationError
from app.models.catalog_models import Category, Product
from app.models.sale_models import SaleOccasion, SaleProduct
from app.schemas.catalog_schemas import CategoryOut
from app.schemas.sale_schemas import (
    SaleDetailOut,
    SaleListingItem,
    SaleOccasionCreate,
    SaleOccasionOut,
    SaleOccasionUpdate,
)
from app.services.discount_resolution import (
    ActiveCampaign,
    ResolutionMode,
    SaleDiscount,
    campaign_product_ids,
    resolve_discounts,
    select_campaign,
)
from app.services.pricing_service import apply_percent
from app.services.sale_window_service import find_active_campaigns
from app.utils.activity_helpers import log_user_activity
from app.utils.decimal_utils import to_decimal
from app.utils.helpers import create_slug
from app.utils.time_utils import as_utc

logger = logging.getLogger(__name__)


class SalePhase(str, enum.Enum):
    NOT_STARTED = "not_started"
    ACTIVE = "active"
    ENDED = "ended"


def get_sale_phase(sale: SaleOccasion, now: datetime) -> SalePhase:
    """Phase is derived from the clock every time; it is never stored."""
    now = as_utc(now)
    if now < as_utc(sale.start_at):
        return SalePhase.NOT_STARTED
    if now > as_utc(sale.end_at):
        return SalePhase.ENDED
    return SalePhase.ACTIVE


def serialize_sale(sale: SaleOccasion, now: datetime) -> SaleOccasionOut:
    out = SaleOccasionOut.model_validate(sale)
    return out.model_copy(update={"phase": get_sale_phase(sale, now).value})


# --------------------------
# HELPERS
# --------------------------
def _check_window(start_at: datetime, end_at: datetime):
    if as_utc(end_at) <= as_utc(start_at):
        raise ValidationError("end_at must be after start_at")


def _check_duplicate_products(product_ids: List[int]):
    duplicates = sorted(pid for pid, count in Counter(product_ids).items() if count > 1)
    if duplicates:
        raise ValidationError(
            "A product may only appear once per sale",
            details={"duplicate_product_ids": duplicates},
        )


async def _check_products_exist(db: AsyncSession, product_ids: List[int]):
    if not product_ids:
        return
    result = await db.execute(
        select(Product.id).where(Product.id.in_(product_ids), Product.is_deleted == False)
    )
    found = {row[0] for row in result.all()}
    missing = sorted(set(product_ids) - found)
    if missing:
        raise ValidationError(
            "Some products do not exist or were deleted",
            details={"invalid_product_ids": missing},
        )


async def _ensure_name_free(db: AsyncSession, name: str, slug: str, exclude_id: Optional[int] = None):
    stmt = select(SaleOccasion.id).where(or_(SaleOccasion.name == name, SaleOccasion.slug == slug))
    if exclude_id is not None:
        stmt = stmt.where(SaleOccasion.id != exclude_id)
    if (await db.execute(stmt)).first():
        raise ConflictError(f"A sale named '{name}' already exists")


async def _commit_or_conflict(db: AsyncSession, name: str):
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ConflictError(f"A sale named '{name}' already exists")


async def _find_overlaps(
    db: AsyncSession,
    sale_id: int,
    product_ids: Iterable[int],
    start_at: datetime,
    end_at: datetime,
) -> List[dict]:
    """Entries of other sales for the same products whose window intersects [start_at, end_at]."""
    ids = list(product_ids)
    if not ids:
        return []
    stmt = (
        select(SaleProduct.product_id, SaleOccasion.id, SaleOccasion.name)
        .join(SaleOccasion, SaleOccasion.id == SaleProduct.sale_id)
        .where(
            SaleOccasion.id != sale_id,
            SaleProduct.product_id.in_(ids),
            SaleOccasion.start_at <= end_at,
            SaleOccasion.end_at >= start_at,
        )
        .order_by(SaleProduct.product_id, SaleOccasion.id)
    )
    rows = (await db.execute(stmt)).all()
    return [{"product_id": pid, "sale_id": sid, "sale_name": name} for pid, sid, name in rows]


# --------------------------
# READ ONE / MANY
# --------------------------
async def get_sale_occasion(db: AsyncSession, sale_id: int) -> SaleOccasion:
    sale = await db.get(SaleOccasion, sale_id)
    if not sale:
        raise NotFoundError("Sale not found")
    return sale


async def reload_sale_occasion(db: AsyncSession, sale_id: int) -> SaleOccasion:
    stmt = select(SaleOccasion).where(SaleOccasion.id == sale_id).execution_options(populate_existing=True)
    sale = (await db.execute(stmt)).scalar_one_or_none()
    if not sale:
        raise NotFoundError("Sale not found")
    return sale


async def list_sale_occasions(
    db: AsyncSession,
    page: int = 1,
    limit: int = 20,
) -> Tuple[int, List[SaleOccasion]]:
    total = (await db.execute(select(func.count(SaleOccasion.id)))).scalar() or 0
    stmt = (
        select(SaleOccasion)
        .order_by(SaleOccasion.start_at.desc(), SaleOccasion.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    )
    sales = (await db.execute(stmt)).scalars().all()
    return total, list(sales)


# --------------------------
# CREATE
# --------------------------
async def create_sale_occasion(db: AsyncSession, payload: SaleOccasionCreate, current_user) -> SaleOccasion:
    _check_window(payload.start_at, payload.end_at)

    product_ids = [entry.product_id for entry in payload.products]
    _check_duplicate_products(product_ids)
    await _check_products_exist(db, product_ids)

    name = payload.name.strip()
    slug = create_slug(name)
    if not slug:
        raise ValidationError("Sale name must contain letters or digits")
    await _ensure_name_free(db, name, slug)

    sale = SaleOccasion(
        name=name,
        slug=slug,
        start_at=payload.start_at,
        end_at=payload.end_at,
        created_by=current_user.id,
        products=[
            SaleProduct(
                product_id=entry.product_id,
                sale_quantity=entry.sale_quantity,
                sale_percent=entry.sale_percent,
                position=position,
            )
            for position, entry in enumerate(payload.products)
        ],
    )
    db.add(sale)
    await log_user_activity(
        db,
        user_id=current_user.id,
        username=current_user.username,
        message=f"Created sale '{name}' with {len(product_ids)} product(s)",
    )
    await _commit_or_conflict(db, name)

    logger.info("Sale '%s' (ID: %s) created by %s", name, sale.id, current_user.username)
    return await reload_sale_occasion(db, sale.id)


# --------------------------
# UPDATE
# --------------------------
async def update_sale_occasion(
    db: AsyncSession,
    sale_id: int,
    payload: SaleOccasionUpdate,
    current_user,
    now: datetime,
) -> SaleOccasion:
    sale = await get_sale_occasion(db, sale_id)
    data = {k: v for k, v in payload.model_dump(exclude_unset=True).items() if v is not None}
    if not data:
        raise ValidationError("No data to update")

    phase = get_sale_phase(sale, now)
    if phase is SalePhase.ENDED:
        raise StateError("An ended sale can no longer be edited")
    if phase is SalePhase.ACTIVE and "start_at" in data:
        raise StateError("Cannot change the start time of a sale that has already started")

    start_at = as_utc(data.get("start_at", sale.start_at))
    end_at = as_utc(data.get("end_at", sale.end_at))
    _check_window(start_at, end_at)

    patches = payload.products if "products" in data else []
    patched_ids = [patch.product_id for patch in patches]
    _check_duplicate_products(patched_ids)

    entries = {entry.product_id: entry for entry in sale.products}
    unknown = sorted(pid for pid in patched_ids if pid not in entries)
    if unknown:
        raise ValidationError(
            "Products are not part of this sale",
            details={"invalid_product_ids": unknown},
        )

    # a moved window re-checks every entry, otherwise only the touched ones
    window_changed = start_at != as_utc(sale.start_at) or end_at != as_utc(sale.end_at)
    checked_ids = list(entries) if window_changed else patched_ids
    overlaps = await _find_overlaps(db, sale.id, checked_ids, start_at, end_at)
    if overlaps:
        raise ConflictError(
            "Products are already on another sale during this period",
            details={"overlaps": overlaps},
        )

    if "name" in data:
        name = data["name"].strip()
        slug = create_slug(name)
        if not slug:
            raise ValidationError("Sale name must contain letters or digits")
        await _ensure_name_free(db, name, slug, exclude_id=sale.id)
        sale.name, sale.slug = name, slug

    sale.start_at = start_at
    sale.end_at = end_at
    for patch in patches:
        entry = entries[patch.product_id]
        if patch.sale_quantity is not None:
            entry.sale_quantity = patch.sale_quantity
        if patch.sale_percent is not None:
            entry.sale_percent = patch.sale_percent

    sale_name = sale.name
    await log_user_activity(
        db,
        user_id=current_user.id,
        username=current_user.username,
        message=f"Updated sale '{sale_name}' (ID: {sale_id})",
    )
    await _commit_or_conflict(db, sale_name)
    return await reload_sale_occasion(db, sale_id)


# --------------------------
# DELETE
# --------------------------
async def delete_sale_occasion(db: AsyncSession, sale_id: int, current_user, now: datetime) -> None:
    sale = await get_sale_occasion(db, sale_id)
    phase = get_sale_phase(sale, now)
    if phase is not SalePhase.NOT_STARTED:
        raise StateError(f"Only sales that have not started can be deleted (this one is {phase.value})")

    name = sale.name
    await db.delete(sale)
    await log_user_activity(
        db,
        user_id=current_user.id,
        username=current_user.username,
        message=f"Deleted sale '{name}' (ID: {sale_id})",
    )
    await db.commit()
    logger.info("Sale '%s' (ID: %s) deleted by %s", name, sale_id, current_user.username)


# --------------------------
# STOREFRONT READS AT A POINT IN TIME
# --------------------------
def _listing_item(product: Product, discount: SaleDiscount) -> SaleListingItem:
    return SaleListingItem(
        product_id=product.id,
        name=product.name,
        slug=product.slug,
        main_image=product.main_image,
        category_id=product.category_id,
        price=to_decimal(product.price),
        sale_percent=to_decimal(discount.sale_percent),
        sale_quantity=discount.sale_quantity,
        sale_price=apply_percent(product.price, discount.sale_percent),
        sale_id=discount.sale_id,
        sale_start=discount.sale_start,
        sale_end=discount.sale_end,
    )


async def _active_discounts(db: AsyncSession, at: datetime) -> Dict[int, SaleDiscount]:
    campaigns = await find_active_campaigns(db, None, at)
    discounts = resolve_discounts(campaign_product_ids(campaigns), campaigns, ResolutionMode.MAX_PERCENT)
    # 0% entries don't put a product on sale
    return {pid: d for pid, d in discounts.items() if d.sale_percent > 0}


async def get_sale_products(
    db: AsyncSession,
    at: datetime,
    category_id: Optional[int] = None,
    page: int = 1,
    limit: int = 20,
) -> Tuple[int, List[SaleListingItem]]:
    """Products on sale at ``at``; overlapping campaigns resolve to the highest percent."""
    discounts = await _active_discounts(db, at)
    if not discounts:
        return 0, []

    filters = [Product.id.in_(list(discounts)), Product.is_deleted == False]
    if category_id is not None:
        filters.append(Product.category_id == category_id)

    total = (await db.execute(select(func.count(Product.id)).where(*filters))).scalar() or 0
    stmt = (
        select(Product)
        .where(*filters)
        .order_by(Product.id)
        .offset((page - 1) * limit)
        .limit(limit)
    )
    products = (await db.execute(stmt)).scalars().all()
    return total, [_listing_item(p, discounts[p.id]) for p in products]


async def get_sale_categories(db: AsyncSession, at: datetime) -> List[CategoryOut]:
    """Categories with at least one live product on sale at ``at``."""
    discounts = await _active_discounts(db, at)
    if not discounts:
        return []

    stmt = (
        select(Category)
        .join(Product, Product.category_id == Category.id)
        .where(Product.id.in_(list(discounts)), Product.is_deleted == False)
        .distinct()
        .order_by(Category.name)
    )
    categories = (await db.execute(stmt)).scalars().all()
    return [CategoryOut.model_validate(c) for c in categories]


async def get_sale_detail(
    db: AsyncSession,
    at: datetime,
    category_id: Optional[int] = None,
    sale_id: Optional[int] = None,
) -> SaleDetailOut:
    """
    One campaign running at ``at`` with its products.

    With ``sale_id`` that campaign is used (it must be running). Otherwise the
    campaign that started most recently wins among those running, narrowed
    to ones listing a product of ``category_id`` when given.
    """
    campaigns = await find_active_campaigns(db, None, at)

    product_filters = [Product.id.in_(campaign_product_ids(campaigns)), Product.is_deleted == False]
    if category_id is not None:
        product_filters.append(Product.category_id == category_id)
    products = {}
    if campaigns:
        result = await db.execute(select(Product).where(*product_filters))
        products = {p.id: p for p in result.scalars().all()}

    candidates: List[ActiveCampaign] = [
        c for c in campaigns
        if (sale_id is None or c.sale_id == sale_id) and any(pid in products for pid in c.entries)
    ]
    campaign = select_campaign(candidates, ResolutionMode.LATEST_START)
    if campaign is None:
        raise NotFoundError("No sale is running at this time")

    sale = await get_sale_occasion(db, campaign.sale_id)
    items = []
    for product_id, entry in campaign.entries.items():
        product = products.get(product_id)
        if product is None:
            continue
        items.append(_listing_item(product, SaleDiscount(
            product_id=product_id,
            sale_percent=entry.sale_percent,
            sale_quantity=entry.sale_quantity,
            sale_id=campaign.sale_id,
            sale_name=campaign.name,
            sale_start=campaign.start_at,
            sale_end=campaign.end_at,
        )))

    return SaleDetailOut(sale=serialize_sale(sale, at), products=items)
