import jwt
from fastapi.testclient import TestClient

import app as app_module
import init_store
from app import app
from clients import ClientService
from conftest import auth
from security import create_token

ADMIN = {"id": "user_admin_test", "email": "a@test.local", "role": "admin", "name": "Admin"}


def test_health_needs_no_token(client):
    response = client.get("/api/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "ok"
    assert data["timestamp"].endswith("Z")


def test_unknown_endpoint(client):
    for method in ("GET", "POST", "DELETE"):
        response = client.request(method, "/api/nothing-here")
        assert response.status_code == 404
        assert response.json() == {"error": "Endpoint not found"}


def test_wrong_method_on_known_path_is_404(client):
    response = client.delete("/api/clients", headers=auth(create_token(ADMIN)))
    assert response.status_code == 404
    assert response.json() == {"error": "Endpoint not found"}


def test_malformed_body_is_400(client):
    response = client.post("/api/clients", json={"name": ["not", "a", "string"]}, headers=auth(create_token(ADMIN)))
    assert response.status_code == 400
    data = response.json()
    assert data["error"] == "Invalid request body"
    assert data["details"]


def test_unexpected_error_is_500(monkeypatch):
    def boom():
        raise RuntimeError("store down")

    monkeypatch.setattr(ClientService, "list_clients", staticmethod(boom))
    with TestClient(app, raise_server_exceptions=False) as test_client:
        response = test_client.get("/api/clients", headers=auth(create_token(ADMIN)))
    assert response.status_code == 500
    assert response.json() == {"error": "Internal server error"}


def test_unexpected_error_message_in_development(monkeypatch):
    def boom():
        raise RuntimeError("store down")

    monkeypatch.setattr(ClientService, "list_clients", staticmethod(boom))
    monkeypatch.setattr(app_module.settings, "env_mode", "development")
    with TestClient(app, raise_server_exceptions=False) as test_client:
        response = test_client.get("/api/clients", headers=auth(create_token(ADMIN)))
    assert response.status_code == 500
    assert response.json() == {"error": "Internal server error", "message": "store down"}


def test_init_store_reports_ready(client):
    assert init_store.main() == 0


def test_trailing_slash_reaches_the_route(client):
    token = create_token(ADMIN)
    created = client.post("/api/clients/", json={"name": "Acme"}, headers=auth(token))
    assert created.status_code == 201

    response = client.get("/api/clients/", headers=auth(token))
    assert response.status_code == 200
    assert [c["name"] for c in response.json()["clients"]] == ["Acme"]
    assert client.get("/api/health/").json()["status"] == "ok"


def test_token_without_expiry_is_rejected(client):
    token = jwt.encode({"id": "user_1", "role": "user"}, app_module.settings.jwt_secret, algorithm="HS256")
    response = client.get("/api/auth/me", headers=auth(token))
    assert response.status_code == 401
    assert response.json() == {"error": "Invalid or expired token"}
