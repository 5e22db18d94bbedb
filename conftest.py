"""
Fixtures compartidas: base SQLite en memoria y tokens por rol.
"""
import os

# Antes de importar la aplicación: la configuración se lee al importar
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["ENVIRONMENT"] = "test"
os.environ["DEBUG"] = "false"

import pytest

from app.main import app
from app.database.database import Base, SessionLocal, engine, get_db, init_db
from app.modules.auth.utils import create_access_token


@pytest.fixture
def db_session():
    """Sesión sobre un esquema limpio; la API usa la misma sesión"""
    init_db(engine)
    session = SessionLocal()
    app.dependency_overrides[get_db] = lambda: session
    try:
        yield session
    finally:
        session.close()
        app.dependency_overrides.pop(get_db, None)
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def make_auth_headers():
    def _make(role: str = "admin", user_id: str = "user-1"):
        token = create_access_token({"sub": user_id, "role": role, "username": f"{role}.test"})
        return {"Authorization": f"Bearer {token}"}
    return _make


@pytest.fixture
def auth_headers(make_auth_headers):
    return make_auth_headers("admin")
