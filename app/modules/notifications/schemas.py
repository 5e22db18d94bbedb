from pydantic import BaseModel
from typing import Optional
from uuid import UUID
from datetime import datetime

from app.modules.notifications.models import NotificationType


class NotificationOut(BaseModel):
    id: UUID
    user_id: Optional[str]
    title: str
    message: str
    type: NotificationType
    is_read: bool
    created_at: datetime

    class Config:
        from_attributes = True


class NotificationCounts(BaseModel):
    total: int
    unread: int
