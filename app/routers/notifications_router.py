# app/routers/notifications_router.py

from typing import List

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.db import get_db
from app.schemas.notification_schemas import NotificationOut
from app.schemas.response_schemas import ApiResponse, Pagination, ok
from app.services.notification_service import list_notifications, mark_notification_read
from app.utils.get_user import get_current_user

router = APIRouter(prefix="/notifications", tags=["Notifications"])


@router.get("", response_model=ApiResponse[List[NotificationOut]])
async def list_notifications_route(
    unread_only: bool = Query(False),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
    current_user=Depends(get_current_user),
):
    total, notifications = await list_notifications(db, current_user.id, unread_only, page, limit)
    return ok(
        "Notifications fetched successfully",
        [NotificationOut.model_validate(n) for n in notifications],
        Pagination.build(page, limit, total),
    )


@router.put("/{notification_id}/read", response_model=ApiResponse[NotificationOut])
async def mark_read_route(
    notification_id: int,
    db: AsyncSession = Depends(get_db),
    current_user=Depends(get_current_user),
):
    notification = await mark_notification_read(db, notification_id, current_user.id)
    return ok("Notification marked as read", NotificationOut.model_validate(notification))
