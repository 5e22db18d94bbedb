from pydantic import BaseModel, Field
from typing import Optional

from app.modules.auth.permissions import has_permission


class Principal(BaseModel):
    """Usuario autenticado de la petición (tomado del token)"""
    user_id: str
    username: Optional[str] = None
    name: Optional[str] = None
    role: str = Field(..., min_length=1)

    def has_permission(self, module: str, action: str) -> bool:
        return has_permission(self.role, module, action)
