# app/services/order_service.py
import logging
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import List, Optional, Sequence, Tuple

from sqlalchemy import select, update, func, or_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import ORDER_NOTIFY_ROLES, STAFF_ROLES
from app.core.errors import (
    ConflictError,
    ForbiddenError,
    NotFoundError,
    ServiceError,
    StateError,
    ValidationError,
)
from app.models.catalog_models import Product
from app.models.order_models import Order, OrderItem, OrderStatus, PaymentStatus
from app.models.voucher_models import Voucher
from app.schemas.order_schemas import OrderCreate, PaymentStatusUpdate
from app.services.notification_service import notify_roles
from app.services.pricing_service import apply_percent
from app.services.voucher_service import get_voucher_by_code, quote_voucher
from app.utils.check_roles import is_staff
from app.utils.decimal_utils import ZERO, to_decimal
from app.utils.helpers import generate_order_code

logger = logging.getLogger(__name__)

ORDER_CODE_ATTEMPTS = 5

# forward-only; delivered and cancelled are terminal
ALLOWED_TRANSITIONS = {
    OrderStatus.PENDING: {OrderStatus.PROCESSING, OrderStatus.SHIPPED, OrderStatus.CANCELLED},
    OrderStatus.PROCESSING: {OrderStatus.SHIPPED, OrderStatus.CANCELLED},
    OrderStatus.SHIPPED: {OrderStatus.DELIVERED},
    OrderStatus.DELIVERED: set(),
    OrderStatus.CANCELLED: set(),
}


# --------------------------
# TOTALS
# --------------------------
@dataclass(frozen=True)
class PricedLine:
    product_id: int
    product_name: str
    quantity: int
    unit_price: Decimal
    line_total: Decimal


@dataclass(frozen=True)
class OrderTotal:
    subtotal_amount: Decimal
    discount_amount: Decimal
    total_amount: Decimal
    lines: List[PricedLine] = field(default_factory=list)
    voucher: Optional[Voucher] = None


def compute_order_total(
    lines: Sequence[Tuple[Product, int]],
    voucher: Optional[Voucher],
    at: datetime,
) -> OrderTotal:
    """
    Price each line with the product's static discount, sum the lines, then
    apply the voucher (same window/minimum/exclusion checks as validation)
    to the pre-voucher subtotal. Campaign discounts are not re-applied here.
    """
    priced = []
    subtotal = ZERO
    for product, quantity in lines:
        # unit price is for display; the line total is rounded from the exact amount
        unit_price = apply_percent(product.price, product.discount_percent)
        line_total = apply_percent(product.price, product.discount_percent, quantity)
        subtotal += line_total
        priced.append(PricedLine(
            product_id=product.id,
            product_name=product.name,
            quantity=quantity,
            unit_price=unit_price,
            line_total=line_total,
        ))
    subtotal = to_decimal(subtotal)

    discount = ZERO
    if voucher is not None:
        quote = quote_voucher(voucher, subtotal, [p.id for p, _ in lines], at)
        discount = quote.discount_amount

    return OrderTotal(
        subtotal_amount=subtotal,
        discount_amount=discount,
        total_amount=max(ZERO, to_decimal(subtotal - discount)),
        lines=priced,
        voucher=voucher,
    )


def voucher_snapshot(voucher: Voucher) -> dict:
    """Terms frozen onto the order so later voucher edits don't rewrite history."""
    return {
        "code": voucher.code,
        "discount_type": voucher.discount_type.value,
        "discount_value": str(to_decimal(voucher.discount_value)),
        "min_purchase_amount": None if voucher.min_purchase_amount is None else str(to_decimal(voucher.min_purchase_amount)),
        "max_discount_amount": None if voucher.max_discount_amount is None else str(to_decimal(voucher.max_discount_amount)),
    }


# --------------------------
# HELPERS
# --------------------------
async def _load_order_products(db: AsyncSession, payload: OrderCreate) -> List[Tuple[Product, int]]:
    product_ids = [line.product_id for line in payload.products]
    if len(set(product_ids)) != len(product_ids):
        raise ValidationError("Each product may appear only once per order")

    result = await db.execute(
        select(Product).where(Product.id.in_(product_ids), Product.is_deleted == False)
    )
    products = {p.id: p for p in result.scalars().all()}
    missing = [pid for pid in product_ids if pid not in products]
    if missing:
        raise NotFoundError(f"Product {missing[0]} not found or unavailable")

    return [(products[line.product_id], line.quantity) for line in payload.products]


async def increment_quantity_sold(db: AsyncSession, lines: Sequence[Tuple[int, int]]) -> None:
    """
    Atomic `quantity_sold = quantity_sold + n` per product. Runs after the
    order is committed; failures are logged and never undo the order.
    """
    try:
        for product_id, quantity in lines:
            await db.execute(
                update(Product)
                .where(Product.id == product_id)
                .values(quantity_sold=Product.quantity_sold + quantity)
            )
        await db.commit()
    except SQLAlchemyError:
        await db.rollback()
        logger.exception("Failed to increment quantity_sold for %s", lines)


async def get_order(db: AsyncSession, order_id: int) -> Order:
    order = await db.get(Order, order_id)
    if not order:
        raise NotFoundError("Order not found")
    return order


async def reload_order(db: AsyncSession, order_id: int) -> Order:
    """Fresh copy of the order and its items, bypassing whatever the session holds."""
    stmt = select(Order).where(Order.id == order_id).execution_options(populate_existing=True)
    order = (await db.execute(stmt)).scalar_one_or_none()
    if not order:
        raise NotFoundError("Order not found")
    return order


def ensure_order_access(order: Order, current_user=None, anonymous_id: Optional[str] = None) -> None:
    if is_staff(current_user, STAFF_ROLES):
        return
    if current_user is not None and order.user_id == current_user.id:
        return
    if anonymous_id and order.user_id is None and order.anonymous_id == anonymous_id:
        return
    raise ForbiddenError("You do not have access to this order")


async def generate_unique_order_code(db: AsyncSession, now: datetime) -> str:
    for _ in range(ORDER_CODE_ATTEMPTS):
        code = generate_order_code(now)
        exists = await db.execute(select(Order.id).where(Order.order_code == code))
        if not exists.first():
            return code
    raise ServiceError("Could not generate a unique order code")


# --------------------------
# CREATE ORDER
# --------------------------
async def create_order(db: AsyncSession, payload: OrderCreate, current_user, now: datetime) -> Order:
    # owner is either the authenticated user or an anonymous client id, never both
    if current_user is not None and payload.anonymous_id:
        raise ValidationError("Authenticated orders cannot carry an anonymous_id")
    if current_user is None and not payload.anonymous_id:
        raise ValidationError("anonymous_id is required when ordering without an account")

    lines = await _load_order_products(db, payload)
    voucher = await get_voucher_by_code(db, payload.voucher_code) if payload.voucher_code else None
    totals = compute_order_total(lines, voucher, now)

    # plain values only below: a rollback expires every loaded row
    user_id = current_user.id if current_user is not None else None
    username = current_user.username if current_user is not None else None
    voucher_id = voucher.id if voucher else None
    snapshot = voucher_snapshot(voucher) if voucher else None

    order_id = None
    for _ in range(ORDER_CODE_ATTEMPTS):
        order = Order(
            order_code=await generate_unique_order_code(db, now),
            user_id=user_id,
            anonymous_id=None if user_id is not None else payload.anonymous_id,
            user_name=payload.user_name,
            user_email=payload.user_email,
            user_phone=payload.user_phone,
            district=payload.district,
            address=payload.address,
            note=payload.note,
            payment_method=payload.payment_method,
            subtotal_amount=totals.subtotal_amount,
            discount_amount=totals.discount_amount,
            total_amount=totals.total_amount,
            voucher_id=voucher_id,
            voucher_snapshot=snapshot,
            items=[
                OrderItem(
                    product_id=line.product_id,
                    product_name=line.product_name,
                    quantity=line.quantity,
                    unit_price=line.unit_price,
                    line_total=line.line_total,
                )
                for line in totals.lines
            ],
        )
        db.add(order)
        try:
            await db.commit()
        except IntegrityError:
            # order_code raced with another request; the unique index decided
            await db.rollback()
            continue
        order_id = order.id
        order_code = order.order_code
        break

    if order_id is None:
        raise ConflictError("Could not allocate a unique order code")

    logger.info(
        "Order %s created by %s (subtotal=%s discount=%s total=%s)",
        order_code, username or f"anonymous:{payload.anonymous_id}",
        totals.subtotal_amount, totals.discount_amount, totals.total_amount,
    )

    await increment_quantity_sold(db, [(line.product_id, line.quantity) for line in totals.lines])
    await notify_roles(
        db,
        ORDER_NOTIFY_ROLES,
        "ORDER",
        f"New order #{order_code} from {payload.user_name}",
    )
    return await reload_order(db, order_id)


# --------------------------
# READ
# --------------------------
async def list_orders(
    db: AsyncSession,
    status: Optional[OrderStatus] = None,
    keyword: Optional[str] = None,
    user_id: Optional[int] = None,
    anonymous_id: Optional[str] = None,
    page: int = 1,
    limit: int = 10,
) -> Tuple[int, List[Order]]:
    filters = []
    if status:
        filters.append(Order.status == status)
    if user_id is not None:
        filters.append(Order.user_id == user_id)
    if anonymous_id is not None:
        filters.append(Order.anonymous_id == anonymous_id)
    if keyword:
        pattern = f"%{keyword}%"
        filters.append(or_(
            Order.order_code.ilike(pattern),
            Order.user_name.ilike(pattern),
            Order.user_email.ilike(pattern),
            Order.user_phone.ilike(pattern),
        ))

    total = (await db.execute(select(func.count(Order.id)).where(*filters))).scalar() or 0
    stmt = (
        select(Order)
        .where(*filters)
        .order_by(Order.created_at.desc(), Order.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    )
    orders = (await db.execute(stmt)).scalars().all()
    return total, list(orders)


async def get_order_stats(db: AsyncSession) -> dict:
    rows = (await db.execute(select(Order.status, func.count(Order.id)).group_by(Order.status))).all()
    counts = {status: count for status, count in rows}
    revenue = (await db.execute(
        select(func.coalesce(func.sum(Order.total_amount), 0)).where(Order.status == OrderStatus.DELIVERED)
    )).scalar()
    return {
        "total_orders": sum(counts.values()),
        "pending_orders": counts.get(OrderStatus.PENDING, 0),
        "processing_orders": counts.get(OrderStatus.PROCESSING, 0),
        "shipped_orders": counts.get(OrderStatus.SHIPPED, 0),
        "delivered_orders": counts.get(OrderStatus.DELIVERED, 0),
        "cancelled_orders": counts.get(OrderStatus.CANCELLED, 0),
        "delivered_revenue": to_decimal(revenue),
    }


# --------------------------
# STATUS TRANSITIONS
# --------------------------
def check_transition(current: OrderStatus, target: OrderStatus) -> None:
    if target == current:
        raise StateError(f"Order is already {current.value}")
    if target not in ALLOWED_TRANSITIONS[current]:
        raise StateError(f"Cannot move order from {current.value} to {target.value}")


async def update_order_status(db: AsyncSession, order_id: int, target: OrderStatus, current_user) -> Order:
    order = await get_order(db, order_id)
    check_transition(order.status, target)
    previous = order.status
    order.status = target
    await db.commit()
    logger.info("Order %s: %s -> %s by %s", order.order_code, previous.value, target.value, current_user.username)
    return await reload_order(db, order_id)


async def cancel_order(db: AsyncSession, order_id: int, current_user=None, anonymous_id: Optional[str] = None) -> Order:
    order = await get_order(db, order_id)
    ensure_order_access(order, current_user, anonymous_id)
    check_transition(order.status, OrderStatus.CANCELLED)
    order.status = OrderStatus.CANCELLED
    await db.commit()

    await notify_roles(
        db,
        ORDER_NOTIFY_ROLES,
        "ORDER",
        f"Order #{order.order_code} was cancelled by {order.user_name or order.anonymous_id}",
    )
    return await reload_order(db, order_id)


async def update_payment_status(
    db: AsyncSession,
    order_id: int,
    payload: PaymentStatusUpdate,
    now: datetime,
    current_user=None,
    anonymous_id: Optional[str] = None,
) -> Order:
    order = await get_order(db, order_id)
    ensure_order_access(order, current_user, anonymous_id)
    target = payload.payment_status

    if order.status == OrderStatus.CANCELLED:
        raise StateError("Cannot update payment for a cancelled order")
    if order.status == OrderStatus.DELIVERED and target == PaymentStatus.FAILED:
        raise StateError("Cannot mark a delivered order's payment as failed")
    if order.payment_status == PaymentStatus.PAID and target != PaymentStatus.PAID:
        raise StateError("Cannot change the payment status of a paid order")

    became_paid = target == PaymentStatus.PAID and order.payment_status != PaymentStatus.PAID
    order.payment_status = target
    if payload.payment_method is not None:
        order.payment_method = payload.payment_method
    if became_paid:
        order.paid_at = now
        if payload.transaction_id:
            order.transaction_id = payload.transaction_id
        if order.status == OrderStatus.PENDING:
            order.status = OrderStatus.PROCESSING

    await db.commit()

    if became_paid:
        await notify_roles(
            db,
            ORDER_NOTIFY_ROLES,
            "ORDER",
            f"Order #{order.order_code} was paid by {order.user_name}",
        )
    return await reload_order(db, order_id)
