"""
Tabla estática de permisos por rol.

Cada permiso tiene la forma "modulo:accion".
"""
from typing import Dict, FrozenSet


def _grant(module: str, *actions: str) -> set:
    return {f"{module}:{action}" for action in actions}


ROLE_PERMISSIONS: Dict[str, FrozenSet[str]] = {
    "admin": frozenset(
        _grant("dashboard", "read", "export")
        | _grant("facturacion", "create", "read", "update", "delete", "export")
        | _grant("pagos", "create", "read", "update", "delete", "export")
        | _grant("comprobantes", "create", "read", "update", "delete", "export")
        | _grant("estado-cuenta", "read", "export")
        | _grant("directorio", "create", "read", "update", "delete", "export")
        | _grant("propuestas", "create", "read", "update", "delete", "export")
        | _grant("comercial", "create", "read", "update", "delete", "export")
        | _grant("reportes", "read", "export")
        | _grant("usuarios", "create", "read", "update", "delete")
        | _grant("notas-credito", "create", "read", "update", "delete", "export")
        | _grant("soporte", "create", "read", "update", "delete", "export")
    ),
    "manager": frozenset(
        _grant("dashboard", "read", "export")
        | _grant("facturacion", "create", "read", "update", "export")
        | _grant("pagos", "create", "read", "update", "export")
        | _grant("comprobantes", "create", "read", "update", "export")
        | _grant("estado-cuenta", "read", "export")
        | _grant("directorio", "create", "read", "update", "export")
        | _grant("propuestas", "create", "read", "update", "export")
        | _grant("comercial", "create", "read", "update", "export")
        | _grant("reportes", "read", "export")
        | _grant("notas-credito", "create", "read", "update", "export")
        | _grant("soporte", "create", "read", "update", "export")
    ),
    "employee": frozenset(
        _grant("dashboard", "read")
        | _grant("facturacion", "create", "read", "update")
        | _grant("pagos", "create", "read")
        | _grant("comprobantes", "create", "read")
        | _grant("directorio", "read", "update")
        | _grant("comercial", "create", "read", "update")
        | _grant("notas-credito", "create", "read")
        | _grant("soporte", "create", "read", "update")
    ),
    "readonly": frozenset(
        _grant("dashboard", "read")
        | _grant("facturacion", "read")
        | _grant("pagos", "read")
        | _grant("comprobantes", "read")
        | _grant("estado-cuenta", "read")
        | _grant("directorio", "read")
        | _grant("propuestas", "read")
        | _grant("comercial", "read")
        | _grant("reportes", "read")
        | _grant("notas-credito", "read")
        | _grant("soporte", "read")
    ),
}


def get_permissions(role: str) -> FrozenSet[str]:
    return ROLE_PERMISSIONS.get(role, frozenset())


def has_permission(role: str, module: str, action: str) -> bool:
    return f"{module}:{action}" in get_permissions(role)
