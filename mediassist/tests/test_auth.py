from datetime import timedelta

from mediassist.config import Environment, settings
from mediassist.core.security import security_manager
from mediassist.tests.helpers import auth_header, register


def test_register_returns_token_and_public_user(client):
    user, token = register(client, "  New.Doctor@Example.com ", "doctor", name="Dr. New")
    assert user["email"] == "new.doctor@example.com"
    assert user["role"] == "doctor"
    assert "password_hash" not in user

    claims = security_manager.verify_token(token)
    assert claims["sub"] == user["id"]
    assert claims["role"] == "doctor"


def test_duplicate_email(client, doctor):
    response = client.post(
        "/api/auth/register",
        json={"name": "Again", "email": "DOCTOR@example.com", "password": "secret123", "role": "doctor"},
    )
    assert response.status_code == 400
    assert response.json()["detail"] == "User already exists with this email"


def test_register_validation(client):
    short = client.post(
        "/api/auth/register",
        json={"name": "A", "email": "a@example.com", "password": "123", "role": "doctor"},
    )
    assert short.status_code == 422

    bad_role = client.post(
        "/api/auth/register",
        json={"name": "A", "email": "a@example.com", "password": "secret123", "role": "admin"},
    )
    assert bad_role.status_code == 422


def test_login(client, doctor):
    response = client.post("/api/auth/login", json={"email": "doctor@example.com", "password": "secret123"})
    assert response.status_code == 200
    body = response.json()
    assert body["token_type"] == "bearer"
    assert body["user"]["last_login"] is not None


def test_login_wrong_password(client, doctor):
    response = client.post("/api/auth/login", json={"email": "doctor@example.com", "password": "wrong-pass"})
    assert response.status_code == 401
    assert response.json()["detail"] == "Invalid email or password"


def test_login_unknown_user(client):
    response = client.post("/api/auth/login", json={"email": "ghost@example.com", "password": "secret123"})
    assert response.status_code == 401


def test_profile(client, patient):
    response = client.get("/api/auth/profile", headers=patient["headers"])
    assert response.status_code == 200
    assert response.json()["email"] == "patient@example.com"


def test_profile_requires_valid_token(client):
    assert client.get("/api/auth/profile").status_code == 401
    assert client.get("/api/auth/profile", headers=auth_header("not-a-jwt")).status_code == 401

    expired = security_manager.create_access_token({"sub": "someone"}, expires_delta=timedelta(minutes=-1))
    response = client.get("/api/auth/profile", headers=auth_header(expired))
    assert response.status_code == 401
    assert response.json()["detail"] == "Token expired"


def test_token_for_unknown_user(client):
    token = security_manager.create_access_token({"sub": "deleted-user", "role": "doctor"})
    response = client.get("/api/auth/profile", headers=auth_header(token))
    assert response.status_code == 401


def test_init_demo_is_idempotent(client):
    first = client.post("/api/auth/init-demo").json()
    assert first["created"] == ["doctor@demo.com", "patient@demo.com"]
    assert first["credentials"]["doctor"] == {"email": "doctor@demo.com", "password": "password123"}

    second = client.post("/api/auth/init-demo").json()
    assert second["created"] == []
    assert second["message"] == "Demo users already exist"

    login = client.post("/api/auth/login", json={"email": "patient@demo.com", "password": "password123"})
    assert login.json()["user"]["role"] == "patient"


def test_init_demo_disabled_in_production(client, monkeypatch):
    monkeypatch.setattr(settings, "environment", Environment.PRODUCTION)
    response = client.post("/api/auth/init-demo")
    assert response.status_code == 403
    assert response.json()["detail"] == "Demo initialization not available in production"
