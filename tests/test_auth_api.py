import database
from conftest import ADMIN_EMAIL, ADMIN_PASSWORD, auth
from security import decode_token
from users import UserService


def test_admin_is_seeded_on_startup(client):
    """Test startup creates exactly one admin with a hashed password."""
    admin = database.get_user_by_email(ADMIN_EMAIL)
    assert admin["role"] == "admin"
    assert admin["id"].startswith("user_admin_")
    assert admin["password"] != ADMIN_PASSWORD


def test_admin_seed_is_not_duplicated(client):
    assert UserService.ensure_admin(ADMIN_EMAIL, "other-pass") is None
    admins = [u for u in database.get_items_by_type("user") if u["email"] == ADMIN_EMAIL]
    assert len(admins) == 1


def test_login_returns_token_matching_stored_user(client):
    response = client.post("/api/auth/login", json={"email": ADMIN_EMAIL.upper(), "password": ADMIN_PASSWORD})
    assert response.status_code == 200
    data = response.json()
    assert data["success"] is True
    assert "password" not in data["user"]

    stored = database.get_user_by_email(ADMIN_EMAIL)
    claims = decode_token(data["token"])
    assert claims["id"] == stored["id"]
    assert claims["role"] == stored["role"]


def test_login_missing_fields(client):
    response = client.post("/api/auth/login", json={"email": ADMIN_EMAIL})
    assert response.status_code == 400
    assert response.json() == {"error": "Email and password are required"}


def test_login_failures_share_the_same_shape(client):
    """Test unknown email and wrong password are indistinguishable."""
    wrong_password = client.post("/api/auth/login", json={"email": ADMIN_EMAIL, "password": "nope"})
    again = client.post("/api/auth/login", json={"email": ADMIN_EMAIL, "password": "nope"})
    unknown = client.post("/api/auth/login", json={"email": "ghost@test.local", "password": "nope"})

    for response in (wrong_password, again, unknown):
        assert response.status_code == 401
        assert response.json() == {"error": "Invalid email or password"}


def test_blocked_user_cannot_login(client, admin_token, regular_user):
    user_id = regular_user["user"]["id"]
    response = client.put(f"/api/auth/users/{user_id}/block", headers=auth(admin_token))
    assert response.status_code == 200

    login = client.post("/api/auth/login", json={"email": "jane@example.com", "password": "secret1"})
    assert login.status_code == 403
    assert "token" not in login.json()

    client.put(f"/api/auth/users/{user_id}/unblock", headers=auth(admin_token))
    login = client.post("/api/auth/login", json={"email": "jane@example.com", "password": "secret1"})
    assert login.status_code == 200


def test_me_requires_token(client):
    assert client.get("/api/auth/me").status_code == 401
    response = client.get("/api/auth/me", headers=auth("bad.token.value"))
    assert response.status_code == 401
    assert response.json() == {"error": "Invalid or expired token"}


def test_me_returns_own_record(client, regular_user):
    response = client.get("/api/auth/me", headers=auth(regular_user["token"]))
    assert response.status_code == 200
    user = response.json()["user"]
    assert user["id"] == regular_user["user"]["id"]
    assert user["email"] == "jane@example.com"
    assert "password" not in user


def test_me_after_deletion_is_404(client, admin_token, regular_user):
    client.delete(f"/api/auth/users/{regular_user['user']['id']}", headers=auth(admin_token))
    response = client.get("/api/auth/me", headers=auth(regular_user["token"]))
    assert response.status_code == 404


def test_list_users_hides_blocked_from_non_admins(client, admin_token, regular_user):
    other = client.post(
        "/api/auth/users",
        json={"name": "Bob", "email": "bob@example.com", "password": "secret2"},
        headers=auth(admin_token),
    ).json()["user"]
    client.put(f"/api/auth/users/{other['id']}/block", headers=auth(admin_token))

    as_user = client.get("/api/auth/users", headers=auth(regular_user["token"])).json()["users"]
    as_admin = client.get("/api/auth/users", headers=auth(admin_token)).json()["users"]

    assert other["id"] not in {u["id"] for u in as_user}
    assert other["id"] in {u["id"] for u in as_admin}
    assert all("password" not in u for u in as_user + as_admin)


def test_create_user_validation(client, admin_token):
    missing = client.post("/api/auth/users", json={"name": "X", "email": "x@x.com"}, headers=auth(admin_token))
    assert missing.status_code == 400

    short = client.post(
        "/api/auth/users", json={"name": "X", "email": "x@x.com", "password": "123"}, headers=auth(admin_token)
    )
    assert short.status_code == 400
    assert short.json() == {"error": "Password must be at least 6 characters"}

    duplicate = client.post(
        "/api/auth/users",
        json={"name": "X", "email": ADMIN_EMAIL.upper(), "password": "123456"},
        headers=auth(admin_token),
    )
    assert duplicate.status_code == 400
    assert duplicate.json() == {"error": "Email already exists"}


def test_create_user_requires_admin(client, user_token):
    response = client.post(
        "/api/auth/users",
        json={"name": "X", "email": "x@x.com", "password": "123456"},
        headers=auth(user_token),
    )
    assert response.status_code == 403


def test_new_user_defaults(client, admin_token, regular_user):
    stored = database.get_item(regular_user["user"]["id"])
    assert stored["role"] == "user"
    assert stored["isBlocked"] is False
    assert stored["email"] == "jane@example.com"
    assert stored["createdBy"] == decode_token(admin_token)["id"]


def test_admin_cannot_be_blocked_or_deleted(client, admin_token):
    admin = database.get_user_by_email(ADMIN_EMAIL)

    block = client.put(f"/api/auth/users/{admin['id']}/block", headers=auth(admin_token))
    delete = client.delete(f"/api/auth/users/{admin['id']}", headers=auth(admin_token))

    assert block.status_code == 400
    assert delete.status_code == 400
    assert database.get_item(admin["id"]) == admin


def test_user_admin_routes_unknown_id(client, admin_token):
    for method, path in (
        ("put", "/api/auth/users/user_missing/block"),
        ("put", "/api/auth/users/user_missing/unblock"),
        ("delete", "/api/auth/users/user_missing"),
    ):
        response = getattr(client, method)(path, headers=auth(admin_token))
        assert response.status_code == 404
        assert response.json() == {"error": "User not found"}


def test_delete_user(client, admin_token, regular_user):
    user_id = regular_user["user"]["id"]
    response = client.delete(f"/api/auth/users/{user_id}", headers=auth(admin_token))
    assert response.status_code == 200
    assert database.get_item(user_id) is None
