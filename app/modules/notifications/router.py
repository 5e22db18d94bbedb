from fastapi import APIRouter, Query
from typing import List
from uuid import UUID

from app.core.config import settings
from app.dependencies.dbDependecies import db_dependency
from app.dependencies.userDependencies import principal_dependency
from app.modules.notifications.service import NotificationService
from app.modules.notifications.schemas import NotificationOut, NotificationCounts

router = APIRouter(prefix="/notifications", tags=["Notificaciones"])


@router.get("", response_model=List[NotificationOut])
def list_notifications(
    db: db_dependency,
    principal: principal_dependency,
    unread_only: bool = Query(False),
    limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    offset: int = Query(0, ge=0),
):
    """
    Notificaciones globales y del usuario actual, más recientes primero
    """
    service = NotificationService(db)
    return service.get_notifications(principal.user_id, unread_only, limit, offset)


@router.get("/counts", response_model=NotificationCounts)
def get_notification_counts(db: db_dependency, principal: principal_dependency):
    service = NotificationService(db)
    return service.get_counts(principal.user_id)


@router.put("/read-all")
def mark_all_notifications_as_read(db: db_dependency, principal: principal_dependency):
    service = NotificationService(db)
    updated = service.mark_all_as_read(principal.user_id)
    return {"message": "Todas las notificaciones marcadas como leídas", "updated": updated}


@router.put("/{notification_id}/read", response_model=NotificationOut)
def mark_notification_as_read(notification_id: UUID, db: db_dependency, principal: principal_dependency):
    service = NotificationService(db)
    return service.mark_as_read(notification_id, principal.user_id)
