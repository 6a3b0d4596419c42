from datetime import timedelta

from fastapi.testclient import TestClient
from jose import jwt

from library_api.api.v1.endpoints import auth as auth_endpoints
from library_api.core.config import settings
from library_api.core.security import ALGORITHM, create_access_token


def test_register_returns_token_and_regular_user(client: TestClient):
    resp = client.post(
        "/api/v1/auth/register",
        json={"email": "new_reader@example.com", "password": "secret1", "name": "New Reader"},
    )

    assert resp.status_code == 201, resp.text
    data = resp.json()
    assert data["token_type"] == "bearer"
    assert data["user"]["email"] == "new_reader@example.com"
    assert data["user"]["role"] == "USER"
    assert "hashedPassword" not in data["user"]

    payload = jwt.decode(data["access_token"], settings.JWT_SECRET, algorithms=[ALGORITHM])
    assert payload["sub"] == data["user"]["id"]
    assert payload["email"] == "new_reader@example.com"
    assert payload["role"] == "USER"


def test_register_duplicate_email_is_conflict(client: TestClient, member):
    resp = client.post(
        "/api/v1/auth/register",
        json={"email": member.email, "password": "secret1", "name": "Clone"},
    )
    assert resp.status_code == 409


def test_register_duplicate_email_racing_past_the_lookup_is_conflict(
    client: TestClient, member, monkeypatch
):
    monkeypatch.setattr(auth_endpoints, "_ensure_email_free", lambda db, email: None)

    resp = client.post(
        "/api/v1/auth/register",
        json={"email": member.email, "password": "secret1", "name": "Clone"},
    )
    assert resp.status_code == 409, resp.text


def test_register_validates_payload(client: TestClient):
    resp = client.post(
        "/api/v1/auth/register",
        json={"email": "not-an-email", "password": "123", "name": "X"},
    )
    assert resp.status_code == 422


def test_login_success(client: TestClient, admin_credentials):
    resp = client.post(
        "/api/v1/auth/login",
        data={"username": admin_credentials["email"], "password": admin_credentials["password"]},
    )

    assert resp.status_code == 200, resp.text
    data = resp.json()
    assert data["access_token"]
    assert data["user"]["role"] == "ADMIN"


def test_login_wrong_password(client: TestClient, admin_credentials):
    resp = client.post(
        "/api/v1/auth/login",
        data={"username": admin_credentials["email"], "password": "wrong"},
    )
    assert resp.status_code == 401
    assert resp.json()["detail"] == "Invalid credentials"


def test_login_unknown_email(client: TestClient):
    resp = client.post(
        "/api/v1/auth/login",
        data={"username": "ghost@example.com", "password": "whatever"},
    )
    assert resp.status_code == 401


def test_me_returns_current_user(client: TestClient, member, member_headers):
    resp = client.get("/api/v1/auth/me", headers=member_headers)

    assert resp.status_code == 200, resp.text
    assert resp.json()["id"] == member.id
    assert resp.json()["name"] == "John Doe"


def test_invalid_and_expired_tokens_are_rejected(client: TestClient, member):
    resp = client.get("/api/v1/auth/me", headers={"Authorization": "Bearer garbage"})
    assert resp.status_code == 401

    expired = create_access_token(
        user_id=member.id,
        email=member.email,
        role=member.role.value,
        expires_delta=timedelta(minutes=-1),
    )
    resp = client.get("/api/v1/auth/me", headers={"Authorization": f"Bearer {expired}"})
    assert resp.status_code == 401


def test_token_of_deleted_user_is_rejected(client: TestClient):
    token = create_access_token(user_id="00000000-0000-0000-0000-000000000000", email="x@example.com", role="USER")
    resp = client.get("/api/v1/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert resp.status_code == 401
