# tests/test_auth.py
from datetime import datetime, timedelta, timezone

import jwt
import pytest

from helpers import ADMIN_EMAIL, ADMIN_PASSWORD, auth_headers, make_client
from shopapi.auth import AdminAuth, hash_password, verify_password
from shopapi.database import InMemoryAdminStore
from shopapi.errors import Forbidden, InvalidCredentials, Unauthorized, ValidationError


def test_login_and_verify(tmp_path):
    client = make_client(tmp_path)
    headers = auth_headers(client)
    r = client.get("/api/auth/verify", headers=headers)
    assert r.status_code == 200
    assert r.json() == {"valid": True}


def test_login_is_case_insensitive_on_email(tmp_path):
    client = make_client(tmp_path)
    r = client.post("/api/auth/login", json={"email": "  ADMIN@example.com ", "password": ADMIN_PASSWORD})
    assert r.status_code == 200


def test_login_failures(tmp_path):
    client = make_client(tmp_path)
    r = client.post("/api/auth/login", json={"email": ADMIN_EMAIL, "password": "wrong"})
    assert r.status_code == 401
    assert r.json() == {"error": "Invalid credentials"}

    r = client.post("/api/auth/login", json={"email": "nobody@example.com", "password": ADMIN_PASSWORD})
    assert r.status_code == 401

    r = client.post("/api/auth/login", json={"email": ADMIN_EMAIL})
    assert r.status_code == 400
    assert r.json()["error"] == "Email and password are required"


def test_verify_without_token_is_unauthorized(tmp_path):
    client = make_client(tmp_path)
    r = client.get("/api/auth/verify")
    assert r.status_code == 401


def test_verify_other_auth_schemes(tmp_path):
    client = make_client(tmp_path)
    r = client.get("/api/auth/verify", headers={"Authorization": "Basic YWRtaW46c2VjcmV0"})
    assert r.status_code == 403
    assert r.json() == {"error": "Invalid or expired token"}

    r = client.get("/api/auth/verify", headers={"Authorization": "Bearer"})
    assert r.status_code == 401
    assert r.json() == {"error": "Access token required"}


def test_verify_with_expired_token_is_forbidden(tmp_path):
    client = make_client(tmp_path)
    auth = client.app.state.auth
    yesterday = datetime.now(timezone.utc) - timedelta(hours=25)
    stale = AdminAuth(auth.admins, auth.secret, clock=lambda: yesterday).issue_token()

    r = client.get("/api/auth/verify", headers={"Authorization": f"Bearer {stale}"})
    assert r.status_code == 403
    assert r.json() == {"error": "Invalid or expired token"}


def test_verify_rejects_foreign_signature(tmp_path):
    client = make_client(tmp_path)
    forged = jwt.encode({"admin": True}, "another-secret", algorithm="HS256")
    r = client.get("/api/auth/verify", headers={"Authorization": f"Bearer {forged}"})
    assert r.status_code == 403


def test_token_lifetime_is_24_hours():
    now = datetime(2030, 1, 1, tzinfo=timezone.utc)
    auth = AdminAuth(InMemoryAdminStore(), "k", clock=lambda: now)
    payload = jwt.decode(auth.issue_token(), "k", algorithms=["HS256"], options={"verify_exp": False})
    assert payload["admin"] is True
    assert payload["exp"] - payload["iat"] == 24 * 3600


def test_admin_auth_unit():
    admins = InMemoryAdminStore()
    auth = AdminAuth(admins, "unit-secret")
    auth.seed_admin("Boss@Example.com", "pw-123")

    token = auth.login("boss@example.com", "pw-123")
    assert auth.verify(token)["admin"] is True

    with pytest.raises(InvalidCredentials):
        auth.login("boss@example.com", "nope")
    with pytest.raises(ValidationError):
        auth.login("", "pw-123")
    with pytest.raises(Unauthorized):
        auth.verify(None)
    with pytest.raises(Forbidden):
        auth.verify(jwt.encode({"admin": False}, "unit-secret", algorithm="HS256"))


def test_password_hashing():
    hashed = hash_password("hunter2")
    assert hashed != "hunter2"
    assert verify_password("hunter2", hashed)
    assert not verify_password("hunter3", hashed)
    assert not verify_password("hunter2", "not-a-bcrypt-hash")
