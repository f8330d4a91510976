# app/routers/sales_router.py

from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import STAFF_ROLES
from app.core.db import get_db
from app.schemas.catalog_schemas import CategoryOut
from app.schemas.response_schemas import ApiResponse, MessageResponse, Pagination, ok
from app.schemas.sale_schemas import (
    SaleDetailOut,
    SaleListingItem,
    SaleOccasionCreate,
    SaleOccasionOut,
    SaleOccasionUpdate,
)
from app.services.sale_occasion_service import (
    create_sale_occasion,
    delete_sale_occasion,
    get_sale_categories,
    get_sale_detail,
    get_sale_occasion,
    get_sale_products,
    list_sale_occasions,
    serialize_sale,
    update_sale_occasion,
)
from app.services.sale_window_service import parse_timestamp
from app.utils.check_roles import require_role
from app.utils.get_user import get_current_user
from app.utils.time_utils import get_now

router = APIRouter(prefix="/sales", tags=["Sales"])


def _resolve_time(time: Optional[str], now: datetime) -> datetime:
    # no `time` means "right now"
    return parse_timestamp(time) if time else now


# -----------------------------------------------------------
# STOREFRONT
# -----------------------------------------------------------
@router.get("/products", response_model=ApiResponse[List[SaleListingItem]])
async def sale_products_route(
    time: Optional[str] = Query(None, description="ISO-8601 instant"),
    category: Optional[int] = Query(None, ge=1),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
):
    """Products on sale at `time` (required); overlapping sales resolve to the highest percent."""
    total, items = await get_sale_products(db, parse_timestamp(time), category, page, limit)
    return ok("Sale products fetched successfully", items, Pagination.build(page, limit, total))


@router.get("/categories", response_model=ApiResponse[List[CategoryOut]])
async def sale_categories_route(
    time: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_db),
):
    # a missing `time` is rejected like an unparseable one
    categories = await get_sale_categories(db, parse_timestamp(time))
    return ok("Sale categories fetched successfully", categories)


@router.get("/detail", response_model=ApiResponse[SaleDetailOut])
async def sale_detail_route(
    time: Optional[str] = Query(None),
    category: Optional[int] = Query(None, ge=1),
    sale_id: Optional[int] = Query(None, ge=1),
    db: AsyncSession = Depends(get_db),
    now: datetime = Depends(get_now),
):
    """A single running sale; without `sale_id` the most recently started one wins."""
    detail = await get_sale_detail(db, _resolve_time(time, now), category, sale_id)
    return ok("Sale fetched successfully", detail)


# -----------------------------------------------------------
# ADMIN: LIST / GET
# -----------------------------------------------------------
@router.get("", response_model=ApiResponse[List[SaleOccasionOut]])
@require_role(STAFF_ROLES)
async def list_sales_route(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
    now: datetime = Depends(get_now),
    _user=Depends(get_current_user),
):
    total, sales = await list_sale_occasions(db, page, limit)
    return ok(
        "Sales fetched successfully",
        [serialize_sale(s, now) for s in sales],
        Pagination.build(page, limit, total),
    )


@router.get("/{sale_id}", response_model=ApiResponse[SaleOccasionOut])
@require_role(STAFF_ROLES)
async def get_sale_route(
    sale_id: int,
    db: AsyncSession = Depends(get_db),
    now: datetime = Depends(get_now),
    _user=Depends(get_current_user),
):
    sale = await get_sale_occasion(db, sale_id)
    return ok("Sale fetched successfully", serialize_sale(sale, now))


# -----------------------------------------------------------
# ADMIN: CREATE / UPDATE / DELETE
# -----------------------------------------------------------
@router.post("", response_model=ApiResponse[SaleOccasionOut], status_code=status.HTTP_201_CREATED)
@require_role(STAFF_ROLES)
async def create_sale_route(
    data: SaleOccasionCreate,
    db: AsyncSession = Depends(get_db),
    now: datetime = Depends(get_now),
    _user=Depends(get_current_user),
):
    sale = await create_sale_occasion(db, data, _user)
    return ok("Sale created successfully", serialize_sale(sale, now))


@router.put("/{sale_id}", response_model=ApiResponse[SaleOccasionOut])
@require_role(STAFF_ROLES)
async def update_sale_route(
    sale_id: int,
    data: SaleOccasionUpdate,
    db: AsyncSession = Depends(get_db),
    now: datetime = Depends(get_now),
    _user=Depends(get_current_user),
):
    sale = await update_sale_occasion(db, sale_id, data, _user, now)
    return ok("Sale updated successfully", serialize_sale(sale, now))


@router.delete("/{sale_id}", response_model=MessageResponse)
@require_role(STAFF_ROLES)
async def delete_sale_route(
    sale_id: int,
    db: AsyncSession = Depends(get_db),
    now: datetime = Depends(get_now),
    _user=Depends(get_current_user),
):
    await delete_sale_occasion(db, sale_id, _user, now)
    return MessageResponse(message="Sale deleted successfully")
