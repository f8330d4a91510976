# app/schemas/notification_schemas.py
from pydantic import BaseModel
from typing import Optional

from app.schemas.field_types import UtcDatetime


class NotificationOut(BaseModel):
    id: int
    type: str
    message: str
    is_read: bool
    created_at: Optional[UtcDatetime] = None

    class Config:
        from_attributes = True
