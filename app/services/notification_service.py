# app/services/notification_service.py
import logging
from typing import List, Sequence, Tuple

from sqlalchemy import select, func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import NotFoundError
from app.models.notification_models import Notification
from app.models.user_models import User

logger = logging.getLogger(__name__)


async def notify_roles(db: AsyncSession, roles: Sequence[str], type_: str, message: str) -> int:
    """
    Fan a notification out to every active user holding one of ``roles``.
    Best-effort: a failure is logged and rolled back, never raised.
    Returns the number of notifications written.
    """
    if not roles:
        return 0
    try:
        result = await db.execute(
            select(User.id).where(User.role.in_(list(roles)), User.is_active == True)
        )
        recipient_ids = [row[0] for row in result.all()]
        for recipient_id in recipient_ids:
            db.add(Notification(recipient_id=recipient_id, type=type_, message=message))
        await db.commit()
    except SQLAlchemyError:
        await db.rollback()
        logger.exception("Failed to send %s notification to roles %s", type_, list(roles))
        return 0

    logger.debug("Sent %s notification to %d user(s)", type_, len(recipient_ids))
    return len(recipient_ids)


async def list_notifications(
    db: AsyncSession,
    recipient_id: int,
    unread_only: bool = False,
    page: int = 1,
    limit: int = 20,
) -> Tuple[int, List[Notification]]:
    filters = [Notification.recipient_id == recipient_id]
    if unread_only:
        filters.append(Notification.is_read == False)

    total = (await db.execute(select(func.count(Notification.id)).where(*filters))).scalar() or 0
    stmt = (
        select(Notification)
        .where(*filters)
        .order_by(Notification.created_at.desc(), Notification.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    )
    notifications = (await db.execute(stmt)).scalars().all()
    return total, list(notifications)


async def mark_notification_read(db: AsyncSession, notification_id: int, recipient_id: int) -> Notification:
    result = await db.execute(
        select(Notification).where(
            Notification.id == notification_id,
            Notification.recipient_id == recipient_id,
        )
    )
    notification = result.scalar_one_or_none()
    if not notification:
        raise NotFoundError("Notification not found")

    notification.is_read = True
    await db.commit()
    return notification
