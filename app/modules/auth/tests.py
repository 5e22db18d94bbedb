"""
Tests para autenticación por token y permisos por rol
"""

import pytest
import jwt
from datetime import timedelta
from fastapi import HTTPException
from fastapi.security import HTTPAuthorizationCredentials

from app.modules.auth.dependencies import AuthDependencies
from app.modules.auth.permissions import ROLE_PERMISSIONS, get_permissions, has_permission
from app.modules.auth.utils import create_access_token, decode_token


def _credentials(token: str) -> HTTPAuthorizationCredentials:
    return HTTPAuthorizationCredentials(scheme="Bearer", credentials=token)


class TestPermissions:

    @pytest.mark.parametrize("role,action,allowed", [
        ("admin", "delete", True),
        ("admin", "export", True),
        ("manager", "export", True),
        ("manager", "delete", False),
        ("employee", "create", True),
        ("employee", "update", True),
        ("employee", "export", False),
        ("readonly", "read", True),
        ("readonly", "create", False),
    ])
    def test_facturacion_matrix(self, role, action, allowed):
        assert has_permission(role, "facturacion", action) is allowed

    def test_unknown_role_has_no_permissions(self):
        assert get_permissions("invitado") == frozenset()
        assert not has_permission("invitado", "facturacion", "read")

    def test_permissions_use_module_action_format(self):
        for permissions in ROLE_PERMISSIONS.values():
            assert all(permission.count(":") == 1 for permission in permissions)


class TestTokens:

    def test_token_round_trip(self):
        token = create_access_token({"sub": "user-1", "role": "manager"})

        payload = decode_token(token)

        assert payload["sub"] == "user-1"
        assert payload["role"] == "manager"
        assert payload["type"] == "access"

    def test_principal_from_token(self):
        token = create_access_token({"sub": "user-1", "role": "employee", "username": "ana"})

        principal = AuthDependencies.get_principal(_credentials(token))

        assert principal.user_id == "user-1"
        assert principal.username == "ana"
        assert principal.has_permission("facturacion", "create")

    def test_expired_token(self):
        token = create_access_token({"sub": "user-1", "role": "admin"}, expires_delta=timedelta(seconds=-5))

        with pytest.raises(HTTPException) as exc_info:
            AuthDependencies.get_principal(_credentials(token))

        assert exc_info.value.status_code == 401
        assert exc_info.value.detail["code"] == "TOKEN_EXPIRED"

    def test_token_without_role(self):
        token = create_access_token({"sub": "user-1"})

        with pytest.raises(HTTPException) as exc_info:
            AuthDependencies.get_principal(_credentials(token))

        assert exc_info.value.status_code == 401

    def test_token_signed_with_other_key(self):
        token = jwt.encode({"sub": "user-1", "role": "admin"}, "otra-llave", algorithm="HS256")

        with pytest.raises(HTTPException) as exc_info:
            AuthDependencies.get_principal(_credentials(token))

        assert exc_info.value.detail["code"] == "TOKEN_INVALID"

    def test_missing_credentials(self):
        with pytest.raises(HTTPException) as exc_info:
            AuthDependencies.get_principal(None)

        assert exc_info.value.detail["code"] == "TOKEN_REQUIRED"

    def test_require_permission_denies(self):
        token = create_access_token({"sub": "user-9", "role": "readonly"})
        principal = AuthDependencies.get_principal(_credentials(token))
        checker = AuthDependencies.require_permission("facturacion", "delete")

        with pytest.raises(HTTPException) as exc_info:
            checker(principal)

        assert exc_info.value.status_code == 403
        assert exc_info.value.detail["required"] == "facturacion:delete"
        assert exc_info.value.detail["userRole"] == "readonly"
