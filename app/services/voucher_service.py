# app/services/voucher_service.py
import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Iterable, List, Optional, Tuple

from sqlalchemy import select, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import (
    BelowMinimumPurchaseError,
    ConflictError,
    ExcludedProductError,
    NotFoundError,
    ValidationError,
    VoucherExpiredError,
)
from app.models.catalog_models import Product
from app.models.voucher_models import DiscountType, Voucher
from app.schemas.voucher_schemas import VoucherCreate, VoucherUpdate
from app.utils.activity_helpers import log_user_activity
from app.utils.decimal_utils import HUNDRED, ZERO, format_currency, to_decimal
from app.utils.time_utils import as_utc

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class VoucherQuote:
    voucher: Voucher
    discount_amount: Decimal
    final_amount: Decimal


# --------------------------
# PURE CHECKS / COMPUTATION
# --------------------------
def compute_voucher_discount(voucher: Voucher, cart_total) -> Decimal:
    """
    Discount a voucher grants on ``cart_total``: percentage capped by
    ``max_discount_amount``, fixed clamped to the cart total. Never exceeds
    the cart total, so the final amount never goes negative.
    """
    cart_total = to_decimal(cart_total)
    value = to_decimal(voucher.discount_value)

    if voucher.discount_type == DiscountType.PERCENTAGE:
        discount = to_decimal(cart_total * value / HUNDRED)
        if voucher.max_discount_amount is not None and discount > to_decimal(voucher.max_discount_amount):
            discount = to_decimal(voucher.max_discount_amount)
    else:
        discount = value

    return max(ZERO, min(discount, cart_total))


def quote_voucher(
    voucher: Voucher,
    cart_total,
    product_ids: Iterable[int],
    at: datetime,
) -> VoucherQuote:
    """
    Compute-only validation of an already loaded voucher: validity window,
    minimum purchase, excluded products, then the discount. Raises the
    matching error for the first failing check.
    """
    cart_total = to_decimal(cart_total)
    at = as_utc(at)

    if at < as_utc(voucher.start_date) or at > as_utc(voucher.end_date):
        raise VoucherExpiredError()

    if voucher.min_purchase_amount is not None and cart_total < to_decimal(voucher.min_purchase_amount):
        raise BelowMinimumPurchaseError(
            f"A minimum purchase of {format_currency(voucher.min_purchase_amount)} is required to use this voucher"
        )

    excluded = set(voucher.excluded_product_ids)
    blocked = sorted(excluded.intersection(product_ids or []))
    if blocked:
        raise ExcludedProductError(details={"excluded_product_ids": blocked})

    discount = compute_voucher_discount(voucher, cart_total)
    return VoucherQuote(
        voucher=voucher,
        discount_amount=discount,
        final_amount=max(ZERO, to_decimal(cart_total - discount)),
    )


# --------------------------
# LOOKUPS
# --------------------------
async def get_voucher_by_code(db: AsyncSession, code: str) -> Voucher:
    result = await db.execute(select(Voucher).where(Voucher.code == code.strip()))
    voucher = result.scalar_one_or_none()
    if not voucher:
        raise NotFoundError("Voucher code is not valid")
    return voucher


async def get_voucher_by_id(db: AsyncSession, voucher_id: int) -> Voucher:
    voucher = await db.get(Voucher, voucher_id)
    if not voucher:
        raise NotFoundError("Voucher not found")
    return voucher


async def validate_voucher(
    db: AsyncSession,
    code: str,
    cart_total,
    product_ids: Iterable[int],
    at: datetime,
) -> VoucherQuote:
    """Look the code up, then run the compute-only checks."""
    voucher = await get_voucher_by_code(db, code)
    return quote_voucher(voucher, cart_total, product_ids, at)


# --------------------------
# HELPERS
# --------------------------
def _check_terms(discount_type, discount_value, start_date, end_date):
    if as_utc(end_date) <= as_utc(start_date):
        raise ValidationError("End date must be after start date")
    if discount_type == DiscountType.PERCENTAGE and to_decimal(discount_value) > HUNDRED:
        raise ValidationError("Percentage discount cannot exceed 100%")


async def _load_products(db: AsyncSession, product_ids: List[int]) -> List[Product]:
    ids = list(dict.fromkeys(product_ids))
    if not ids:
        return []
    result = await db.execute(select(Product).where(Product.id.in_(ids)))
    products = result.scalars().all()
    missing = set(ids) - {p.id for p in products}
    if missing:
        raise NotFoundError(f"Products not found: {sorted(missing)}")
    return list(products)


async def _ensure_code_free(db: AsyncSession, code: str, exclude_id: Optional[int] = None):
    stmt = select(Voucher.id).where(Voucher.code == code)
    if exclude_id is not None:
        stmt = stmt.where(Voucher.id != exclude_id)
    if (await db.execute(stmt)).first():
        raise ConflictError("Voucher code already exists")


async def _commit_or_conflict(db: AsyncSession):
    # the unique index is the real guard; the pre-check only saves a round trip
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ConflictError("Voucher code already exists")


# --------------------------
# CREATE
# --------------------------
async def create_voucher(db: AsyncSession, payload: VoucherCreate, current_user) -> Voucher:
    code = payload.code.strip()
    _check_terms(payload.discount_type, payload.discount_value, payload.start_date, payload.end_date)
    await _ensure_code_free(db, code)

    voucher = Voucher(
        code=code,
        discount_type=payload.discount_type,
        discount_value=payload.discount_value,
        min_purchase_amount=payload.min_purchase_amount,
        max_discount_amount=payload.max_discount_amount,
        start_date=payload.start_date,
        end_date=payload.end_date,
    )
    voucher.excluded_products = await _load_products(db, payload.excluded_product_ids)
    db.add(voucher)

    await log_user_activity(
        db,
        user_id=current_user.id,
        username=current_user.username,
        message=f"Created voucher '{code}'",
    )
    await _commit_or_conflict(db)
    logger.info("Voucher %s created by %s", code, current_user.username)
    return voucher


# --------------------------
# READ
# --------------------------
async def list_vouchers(
    db: AsyncSession,
    now: datetime,
    active: bool = False,
    keyword: Optional[str] = None,
    page: int = 1,
    limit: int = 20,
) -> Tuple[int, List[Voucher]]:
    filters = []
    if active:
        filters.append(Voucher.start_date <= now)
        filters.append(Voucher.end_date >= now)
    if keyword and keyword.strip():
        filters.append(Voucher.code.ilike(f"%{keyword.strip()}%"))

    total = (await db.execute(select(func.count(Voucher.id)).where(*filters))).scalar() or 0
    stmt = (
        select(Voucher)
        .where(*filters)
        .order_by(Voucher.created_at.desc(), Voucher.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    )
    vouchers = (await db.execute(stmt)).scalars().all()
    return total, list(vouchers)


# --------------------------
# UPDATE
# --------------------------
async def update_voucher(db: AsyncSession, voucher_id: int, payload: VoucherUpdate, current_user) -> Voucher:
    voucher = await get_voucher_by_id(db, voucher_id)
    update_data = payload.model_dump(exclude_unset=True)
    # only the caps and the minimum may be cleared with null
    for key in ("code", "discount_type", "discount_value", "start_date", "end_date", "excluded_product_ids"):
        if key in update_data and update_data[key] is None:
            del update_data[key]
    if not update_data:
        raise ValidationError("No data to update")

    # validate against the merged state, not just the fields sent
    _check_terms(
        update_data.get("discount_type") or voucher.discount_type,
        update_data.get("discount_value") or voucher.discount_value,
        update_data.get("start_date") or voucher.start_date,
        update_data.get("end_date") or voucher.end_date,
    )

    if "code" in update_data:
        update_data["code"] = update_data["code"].strip()
        await _ensure_code_free(db, update_data["code"], exclude_id=voucher.id)

    excluded_ids = update_data.pop("excluded_product_ids", None)
    if excluded_ids is not None:
        voucher.excluded_products = await _load_products(db, excluded_ids)

    for key, value in update_data.items():
        setattr(voucher, key, value)

    await log_user_activity(
        db,
        user_id=current_user.id,
        username=current_user.username,
        message=f"Updated voucher '{voucher.code}' (ID: {voucher.id})",
    )
    await _commit_or_conflict(db)
    return voucher


# --------------------------
# DELETE
# --------------------------
async def delete_voucher(db: AsyncSession, voucher_id: int, current_user) -> None:
    voucher = await get_voucher_by_id(db, voucher_id)
    code = voucher.code
    await db.delete(voucher)
    await log_user_activity(
        db,
        user_id=current_user.id,
        username=current_user.username,
        message=f"Deleted voucher '{code}' (ID: {voucher_id})",
    )
    await db.commit()
    logger.info("Voucher %s deleted by %s", code, current_user.username)
