"""
Dependencias de autenticación para FastAPI.

La emisión de tokens y las sesiones viven fuera de este servicio; aquí solo
se valida el token Bearer y se consulta la tabla de permisos por rol.
"""
from typing import Optional
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
import jwt
import logging

from app.modules.auth.schemas import Principal
from app.modules.auth.utils import decode_token

logger = logging.getLogger(__name__)

# Security scheme
security = HTTPBearer(auto_error=False)


class AuthDependencies:
    """Dependencias de autenticación reutilizables."""

    @staticmethod
    def get_principal(
        credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    ) -> Principal:
        """
        Obtener el usuario de la petición desde el token JWT.
        """
        if credentials is None:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail={"error": "Token de autenticación requerido", "code": "TOKEN_REQUIRED"},
                headers={"WWW-Authenticate": "Bearer"},
            )

        try:
            payload = decode_token(credentials.credentials)
        except jwt.ExpiredSignatureError:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail={"error": "Token expirado", "code": "TOKEN_EXPIRED"},
                headers={"WWW-Authenticate": "Bearer"},
            )
        except jwt.PyJWTError:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail={"error": "Token inválido", "code": "TOKEN_INVALID"},
                headers={"WWW-Authenticate": "Bearer"},
            )

        user_id = payload.get("sub")
        role = payload.get("role")
        if not user_id or not role:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail={"error": "Token inválido", "code": "TOKEN_INVALID"},
                headers={"WWW-Authenticate": "Bearer"},
            )

        return Principal(
            user_id=str(user_id),
            username=payload.get("username"),
            name=payload.get("name"),
            role=role,
        )

    @staticmethod
    def require_permission(module: str, action: str):
        """
        Dependencia para requerir el permiso "modulo:accion".
        """
        def permission_checker(principal: Principal = Depends(AuthDependencies.get_principal)) -> Principal:
            if not principal.has_permission(module, action):
                logger.info(f"Permission denied for {principal.username or principal.user_id}: {module}:{action}")
                raise HTTPException(
                    status_code=status.HTTP_403_FORBIDDEN,
                    detail={
                        "error": "Permisos insuficientes",
                        "code": "INSUFFICIENT_PERMISSIONS",
                        "required": f"{module}:{action}",
                        "userRole": principal.role,
                    },
                )
            return principal
        return permission_checker


# Instancias de dependencias
get_principal = AuthDependencies.get_principal
