import os
import tempfile

# Configurar entorno antes de importar la aplicación (get_settings está cacheado).
_tmp_dir = tempfile.mkdtemp(prefix="crm-tests-")
os.environ["CRM_DB_URL"] = f"sqlite:///{os.path.join(_tmp_dir, 'test.db')}"
os.environ["JWT_SECRET"] = "test-secret"
os.environ["ADMIN_EMAIL"] = "admin@test.local"
os.environ["ADMIN_PASSWORD"] = "admin-pass"
os.environ["ENV_MODE"] = "test"

import pytest
from fastapi.testclient import TestClient
from sqlmodel import delete

from app import app
from database import DBSession, init_db
from models import Record

ADMIN_EMAIL = "admin@test.local"
ADMIN_PASSWORD = "admin-pass"


@pytest.fixture(autouse=True)
def clean_store():
    """Create the table and wipe every record after each test."""
    init_db()
    yield
    with DBSession() as s:
        s.exec(delete(Record))
        s.commit()


@pytest.fixture
def client():
    """Test client; entering it runs startup, which seeds the admin."""
    with TestClient(app) as test_client:
        yield test_client


def auth(token):
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def admin_token(client):
    response = client.post("/api/auth/login", json={"email": ADMIN_EMAIL, "password": ADMIN_PASSWORD})
    assert response.status_code == 200
    return response.json()["token"]


@pytest.fixture
def regular_user(client, admin_token):
    """A plain user created through the admin endpoint, plus its token."""
    response = client.post(
        "/api/auth/users",
        json={"name": "Jane Doe", "email": "Jane@Example.com", "password": "secret1"},
        headers=auth(admin_token),
    )
    assert response.status_code == 201
    user = response.json()["user"]
    login = client.post("/api/auth/login", json={"email": "jane@example.com", "password": "secret1"})
    assert login.status_code == 200
    return {"user": user, "token": login.json()["token"]}


@pytest.fixture
def user_token(regular_user):
    return regular_user["token"]
