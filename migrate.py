#!/usr/bin/env python3
"""
Migraciones del esquema de facturación y notificaciones (Alembic).

En desarrollo las tablas se crean al arrancar la API (init_db); en
producción se usa este script. Para una base creada con init_db, marcarla
primero con `python migrate.py stamp`.
"""
import sys
from pathlib import Path

root_dir = Path(__file__).parent
sys.path.insert(0, str(root_dir))

from alembic.config import Config
from alembic import command
from app.core.config import settings

USAGE = """Uso:
  python migrate.py create 'mensaje'   # Crear migración (autogenerate)
  python migrate.py upgrade            # Ejecutar migraciones pendientes
  python migrate.py downgrade          # Revertir la última migración
  python migrate.py stamp              # Marcar la base existente como actualizada
  python migrate.py history            # Ver historial
  python migrate.py current            # Ver revisión actual"""


def get_alembic_config() -> Config:
    alembic_cfg = Config(str(root_dir / "alembic.ini"))
    alembic_cfg.set_main_option("script_location", str(root_dir / "alembic"))
    alembic_cfg.set_main_option("sqlalchemy.url", settings.database_url)
    return alembic_cfg


def create_migration(message: str):
    command.revision(get_alembic_config(), autogenerate=True, message=message)
    print(f"Migración creada: {message}")


def run_migrations():
    command.upgrade(get_alembic_config(), "head")
    print(f"Migraciones ejecutadas en {settings.POSTGRES_DB}")


def rollback_migration():
    command.downgrade(get_alembic_config(), "-1")
    print("Rollback ejecutado exitosamente")


def stamp_head():
    command.stamp(get_alembic_config(), "head")
    print("Base de datos marcada en la última revisión")


COMMANDS = {
    "upgrade": run_migrations,
    "downgrade": rollback_migration,
    "stamp": stamp_head,
    "history": lambda: command.history(get_alembic_config()),
    "current": lambda: command.current(get_alembic_config()),
}


if __name__ == "__main__":
    if len(sys.argv) < 2:
        print(USAGE)
        sys.exit(1)

    action = sys.argv[1]

    if action == "create":
        if len(sys.argv) < 3:
            print("Error: Se requiere un mensaje para la migración")
            sys.exit(1)
        create_migration(sys.argv[2])
    elif action in COMMANDS:
        COMMANDS[action]()
    else:
        print(f"Acción desconocida: {action}")
        print(USAGE)
        sys.exit(1)
