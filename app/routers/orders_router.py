# app/routers/orders_router.py

from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import STAFF_ROLES
from app.core.db import get_db
from app.models.order_models import OrderStatus
from app.schemas.order_schemas import (
    OrderCodeOut,
    OrderCreate,
    OrderOut,
    OrderStatsOut,
    OrderStatusUpdate,
    PaymentStatusUpdate,
)
from app.schemas.response_schemas import ApiResponse, Pagination, ok
from app.services.order_service import (
    cancel_order,
    create_order,
    ensure_order_access,
    generate_unique_order_code,
    get_order,
    get_order_stats,
    list_orders,
    update_order_status,
    update_payment_status,
)
from app.utils.check_roles import require_role
from app.utils.get_user import get_current_user, get_optional_user
from app.utils.time_utils import get_now

router = APIRouter(prefix="/orders", tags=["Orders"])


# -----------------------------------------------------------
# CREATE ORDER (account or anonymous)
# -----------------------------------------------------------
@router.post("", response_model=ApiResponse[OrderOut], status_code=status.HTTP_201_CREATED)
async def create_order_route(
    data: OrderCreate,
    db: AsyncSession = Depends(get_db),
    now: datetime = Depends(get_now),
    current_user=Depends(get_optional_user),
):
    """
    Place an order. Logged-in users are identified by their token; guests
    must send an `anonymous_id`. Prices use each product's own discount,
    then the voucher (if any) applies to the subtotal.
    """
    order = await create_order(db, data, current_user, now)
    return ok("Order created successfully", OrderOut.model_validate(order))


# -----------------------------------------------------------
# STAFF: LIST / STATS
# -----------------------------------------------------------
@router.get("", response_model=ApiResponse[List[OrderOut]])
@require_role(STAFF_ROLES)
async def list_orders_route(
    status_filter: Optional[OrderStatus] = Query(None, alias="status"),
    keyword: Optional[str] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
    _user=Depends(get_current_user),
):
    total, orders = await list_orders(db, status=status_filter, keyword=keyword, page=page, limit=limit)
    return ok(
        "Orders fetched successfully",
        [OrderOut.model_validate(o) for o in orders],
        Pagination.build(page, limit, total),
    )


@router.get("/stats", response_model=ApiResponse[OrderStatsOut])
@require_role(STAFF_ROLES)
async def order_stats_route(
    db: AsyncSession = Depends(get_db),
    _user=Depends(get_current_user),
):
    return ok("Order statistics fetched successfully", OrderStatsOut(**await get_order_stats(db)))


@router.get("/order-code", response_model=ApiResponse[OrderCodeOut])
async def order_code_route(
    db: AsyncSession = Depends(get_db),
    now: datetime = Depends(get_now),
):
    """Preview an unused order code; the code is only reserved once an order is saved."""
    return ok("Order code generated", OrderCodeOut(order_code=await generate_unique_order_code(db, now)))


# -----------------------------------------------------------
# OWNER VIEWS
# -----------------------------------------------------------
@router.get("/me", response_model=ApiResponse[List[OrderOut]])
async def my_orders_route(
    status_filter: Optional[OrderStatus] = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
    current_user=Depends(get_current_user),
):
    total, orders = await list_orders(db, status=status_filter, user_id=current_user.id, page=page, limit=limit)
    return ok(
        "Orders fetched successfully",
        [OrderOut.model_validate(o) for o in orders],
        Pagination.build(page, limit, total),
    )


@router.get("/anonymous/{anonymous_id}", response_model=ApiResponse[List[OrderOut]])
async def anonymous_orders_route(
    anonymous_id: str,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
):
    total, orders = await list_orders(db, anonymous_id=anonymous_id, page=page, limit=limit)
    return ok(
        "Orders fetched successfully",
        [OrderOut.model_validate(o) for o in orders],
        Pagination.build(page, limit, total),
    )


@router.get("/{order_id}", response_model=ApiResponse[OrderOut])
async def get_order_route(
    order_id: int,
    anonymous_id: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_db),
    current_user=Depends(get_optional_user),
):
    order = await get_order(db, order_id)
    ensure_order_access(order, current_user, anonymous_id)
    return ok("Order fetched successfully", OrderOut.model_validate(order))


# -----------------------------------------------------------
# STATUS / PAYMENT / CANCEL
# -----------------------------------------------------------
@router.put("/{order_id}/status", response_model=ApiResponse[OrderOut])
@require_role(STAFF_ROLES)
async def update_order_status_route(
    order_id: int,
    data: OrderStatusUpdate,
    db: AsyncSession = Depends(get_db),
    _user=Depends(get_current_user),
):
    order = await update_order_status(db, order_id, data.status, _user)
    return ok("Order status updated successfully", OrderOut.model_validate(order))


@router.put("/{order_id}/payment", response_model=ApiResponse[OrderOut])
async def update_payment_route(
    order_id: int,
    data: PaymentStatusUpdate,
    db: AsyncSession = Depends(get_db),
    now: datetime = Depends(get_now),
    current_user=Depends(get_current_user),
):
    order = await update_payment_status(db, order_id, data, now, current_user=current_user)
    return ok("Payment status updated successfully", OrderOut.model_validate(order))


@router.put("/{order_id}/payment/anonymous/{anonymous_id}", response_model=ApiResponse[OrderOut])
async def update_anonymous_payment_route(
    order_id: int,
    anonymous_id: str,
    data: PaymentStatusUpdate,
    db: AsyncSession = Depends(get_db),
    now: datetime = Depends(get_now),
):
    order = await update_payment_status(db, order_id, data, now, anonymous_id=anonymous_id)
    return ok("Payment status updated successfully", OrderOut.model_validate(order))


@router.post("/{order_id}/cancel", response_model=ApiResponse[OrderOut])
async def cancel_order_route(
    order_id: int,
    anonymous_id: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_db),
    current_user=Depends(get_optional_user),
):
    order = await cancel_order(db, order_id, current_user=current_user, anonymous_id=anonymous_id)
    return ok("Order cancelled successfully", OrderOut.model_validate(order))
