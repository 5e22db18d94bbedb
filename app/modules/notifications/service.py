from fastapi import HTTPException, status
from sqlalchemy.orm import Session
from sqlalchemy import or_, desc
from typing import List, Optional
from uuid import UUID
import logging

from app.modules.notifications.models import Notification, NotificationType

logger = logging.getLogger(__name__)


class NotificationService:
    def __init__(self, db: Session):
        self.db = db

    def create_notification(
        self,
        title: str,
        message: str,
        type: NotificationType = NotificationType.INFO,
        user_id: Optional[str] = None,
    ) -> Notification:
        """
        Registrar una notificación (user_id None = para todos los usuarios).
        Hace commit de la sesión.
        """
        notification = Notification(
            user_id=user_id,
            title=title,
            message=message,
            type=type,
            is_read=False,
        )
        self.db.add(notification)
        self.db.commit()
        self.db.refresh(notification)

        logger.info(f"Notification created: {title} ({type.value})")
        return notification

    def _visible_to(self, user_id: str):
        return self.db.query(Notification).filter(
            or_(Notification.user_id.is_(None), Notification.user_id == user_id)
        )

    def get_notifications(self, user_id: str, unread_only: bool = False,
                          limit: int = 50, offset: int = 0) -> List[Notification]:
        """Notificaciones globales y propias, más recientes primero"""
        query = self._visible_to(user_id)
        if unread_only:
            query = query.filter(Notification.is_read.is_(False))
        return query.order_by(desc(Notification.created_at)).offset(offset).limit(limit).all()

    def mark_as_read(self, notification_id: UUID, user_id: str) -> Notification:
        notification = self._visible_to(user_id).filter(Notification.id == notification_id).first()
        if not notification:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Notificación no encontrada"
            )
        notification.is_read = True
        self.db.commit()
        self.db.refresh(notification)
        return notification

    def mark_all_as_read(self, user_id: str) -> int:
        updated = self._visible_to(user_id).filter(Notification.is_read.is_(False)).update(
            {Notification.is_read: True}, synchronize_session=False
        )
        self.db.commit()
        return updated

    def get_counts(self, user_id: str) -> dict:
        query = self._visible_to(user_id)
        return {
            "total": query.count(),
            "unread": query.filter(Notification.is_read.is_(False)).count(),
        }
