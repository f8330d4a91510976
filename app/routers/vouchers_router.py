# app/routers/vouchers_router.py

from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import STAFF_ROLES
from app.core.db import get_db
from app.schemas.response_schemas import ApiResponse, MessageResponse, Pagination, ok
from app.schemas.voucher_schemas import (
    VoucherCreate,
    VoucherOut,
    VoucherQuoteOut,
    VoucherUpdate,
    VoucherValidateRequest,
)
from app.services.voucher_service import (
    create_voucher,
    delete_voucher,
    get_voucher_by_code,
    list_vouchers,
    update_voucher,
    validate_voucher,
)
from app.utils.check_roles import require_role
from app.utils.get_user import get_current_user
from app.utils.time_utils import get_now

router = APIRouter(prefix="/vouchers", tags=["Vouchers"])


# -----------------------------------------------------------
# PUBLIC: LOOKUP / VALIDATE
# -----------------------------------------------------------
@router.get("/code/{code}", response_model=ApiResponse[VoucherOut])
async def get_voucher_by_code_route(code: str, db: AsyncSession = Depends(get_db)):
    voucher = await get_voucher_by_code(db, code)
    return ok("Voucher fetched successfully", VoucherOut.model_validate(voucher))


@router.post("/validate", response_model=ApiResponse[VoucherQuoteOut])
async def validate_voucher_route(
    data: VoucherValidateRequest,
    db: AsyncSession = Depends(get_db),
    now: datetime = Depends(get_now),
):
    """Check a code against a cart and report the discount it would give."""
    quote = await validate_voucher(db, data.code, data.cart_total, data.product_ids, now)
    return ok("Voucher is valid", VoucherQuoteOut(
        voucher=VoucherOut.model_validate(quote.voucher),
        discount_amount=quote.discount_amount,
        final_amount=quote.final_amount,
    ))


# -----------------------------------------------------------
# ADMIN
# -----------------------------------------------------------
@router.get("", response_model=ApiResponse[List[VoucherOut]])
@require_role(STAFF_ROLES)
async def list_vouchers_route(
    active: bool = Query(False, description="Only vouchers valid right now"),
    keyword: Optional[str] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
    now: datetime = Depends(get_now),
    _user=Depends(get_current_user),
):
    total, vouchers = await list_vouchers(db, now, active, keyword, page, limit)
    return ok(
        "Vouchers fetched successfully",
        [VoucherOut.model_validate(v) for v in vouchers],
        Pagination.build(page, limit, total),
    )


@router.post("", response_model=ApiResponse[VoucherOut], status_code=status.HTTP_201_CREATED)
@require_role(STAFF_ROLES)
async def create_voucher_route(
    data: VoucherCreate,
    db: AsyncSession = Depends(get_db),
    _user=Depends(get_current_user),
):
    voucher = await create_voucher(db, data, _user)
    return ok("Voucher created successfully", VoucherOut.model_validate(voucher))


@router.put("/{voucher_id}", response_model=ApiResponse[VoucherOut])
@require_role(STAFF_ROLES)
async def update_voucher_route(
    voucher_id: int,
    data: VoucherUpdate,
    db: AsyncSession = Depends(get_db),
    _user=Depends(get_current_user),
):
    voucher = await update_voucher(db, voucher_id, data, _user)
    return ok("Voucher updated successfully", VoucherOut.model_validate(voucher))


@router.delete("/{voucher_id}", response_model=MessageResponse)
@require_role(STAFF_ROLES)
async def delete_voucher_route(
    voucher_id: int,
    db: AsyncSession = Depends(get_db),
    _user=Depends(get_current_user),
):
    await delete_voucher(db, voucher_id, _user)
    return MessageResponse(message="Voucher deleted successfully")
