from sqlalchemy import Column, String, Boolean, DateTime, Text, Enum, Uuid
from uuid import uuid4
from datetime import datetime, timezone
from app.database.database import Base
import enum


class NotificationType(str, enum.Enum):
    SUCCESS = "success"
    ERROR = "error"
    INFO = "info"
    WARNING = "warning"


class Notification(Base):
    __tablename__ = "notifications"

    id = Column(Uuid, primary_key=True, default=uuid4)
    # None = notificación global (visible para todos los usuarios)
    user_id = Column(String(64), nullable=True, index=True)
    title = Column(String(200), nullable=False)
    message = Column(Text, nullable=False)
    type = Column(
        Enum(NotificationType, name="notification_type", values_callable=lambda members: [m.value for m in members]),
        nullable=False,
        default=NotificationType.INFO,
    )
    is_read = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))
