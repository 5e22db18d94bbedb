"""
Tests para el módulo de Notificaciones
"""

import pytest
from fastapi import HTTPException
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session
from uuid import uuid4

from app.main import app
from app.modules.notifications.models import NotificationType
from app.modules.notifications.service import NotificationService


client = TestClient(app)


class TestNotificationService:

    def test_global_and_own_notifications_are_visible(self, db_session: Session):
        service = NotificationService(db_session)
        service.create_notification("Global", "Para todos")
        service.create_notification("Propia", "Solo user-1", NotificationType.WARNING, user_id="user-1")
        service.create_notification("Ajena", "Solo user-2", user_id="user-2")

        titles = {n.title for n in service.get_notifications("user-1")}

        assert titles == {"Global", "Propia"}

    def test_mark_as_read_and_counts(self, db_session: Session):
        service = NotificationService(db_session)
        first = service.create_notification("Uno", "mensaje")
        service.create_notification("Dos", "mensaje")

        service.mark_as_read(first.id, "user-1")

        assert service.get_counts("user-1") == {"total": 2, "unread": 1}
        unread = service.get_notifications("user-1", unread_only=True)
        assert [n.title for n in unread] == ["Dos"]

    def test_mark_as_read_not_visible(self, db_session: Session):
        service = NotificationService(db_session)
        other = service.create_notification("Ajena", "mensaje", user_id="user-2")

        with pytest.raises(HTTPException) as exc_info:
            service.mark_as_read(other.id, "user-1")

        assert exc_info.value.status_code == 404

    def test_mark_all_as_read(self, db_session: Session):
        service = NotificationService(db_session)
        service.create_notification("Uno", "mensaje")
        service.create_notification("Dos", "mensaje", user_id="user-1")
        service.create_notification("Ajena", "mensaje", user_id="user-2")

        updated = service.mark_all_as_read("user-1")

        assert updated == 2
        assert service.get_counts("user-2") == {"total": 2, "unread": 1}


@pytest.mark.usefixtures("db_session")
class TestNotificationAPI:

    def test_invoice_creation_shows_up(self, auth_headers):
        client.post(
            "/api/invoices",
            json={
                "paqueteria": "UPS",
                "numero_comprobante": "FAC-2025-003",
                "cliente": "NEGOCIO PRUEBA",
                "rfc": "NPR990303CCC",
                "fecha_creacion": "2025-01-17",
                "total": "8500.25",
            },
            headers=auth_headers,
        )

        response = client.get("/api/notifications", headers=auth_headers)

        assert response.status_code == 200
        data = response.json()
        assert len(data) == 1
        assert data[0]["title"] == "Nueva Factura Creada"
        assert data[0]["type"] == "success"
        assert data[0]["is_read"] is False

    def test_read_endpoints(self, auth_headers, db_session: Session):
        notification = NotificationService(db_session).create_notification("Aviso", "mensaje")

        response = client.put(f"/api/notifications/{notification.id}/read", headers=auth_headers)
        assert response.status_code == 200
        assert response.json()["is_read"] is True

        response = client.get("/api/notifications/counts", headers=auth_headers)
        assert response.json() == {"total": 1, "unread": 0}

        response = client.put("/api/notifications/read-all", headers=auth_headers)
        assert response.status_code == 200
        assert response.json()["updated"] == 0

    def test_unknown_notification(self, auth_headers):
        response = client.put(f"/api/notifications/{uuid4()}/read", headers=auth_headers)

        assert response.status_code == 404

    def test_requires_token(self):
        assert client.get("/api/notifications").status_code == 401
