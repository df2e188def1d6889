import pytest
from fastapi.testclient import TestClient

from authcore.api.deps import get_auth_service
from authcore.core.database import get_db
from authcore.main import app

PASSWORD = "Abc12345!"


@pytest.fixture
def client(session_factory, service):
    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_auth_service] = lambda: service
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


def _register_and_verify(client, notifier, email="api@example.com"):
    response = client.post(
        "/api/v1/auth/register",
        json={"email": email, "password": PASSWORD, "first_name": "Api"},
    )
    assert response.status_code == 201
    token = notifier.last("verification")[2]
    assert client.post("/api/v1/auth/verify-email", json={"token": token}).status_code == 200
    return email


def _login(client, email, user_agent="pytest-browser"):
    response = client.post(
        "/api/v1/auth/login",
        json={"email": email, "password": PASSWORD},
        headers={"User-Agent": user_agent},
    )
    assert response.status_code == 200
    return response.json()


def _bearer(tokens):
    return {"Authorization": f"Bearer {tokens['access_token']}"}


def test_register_login_and_me(client, notifier):
    email = _register_and_verify(client, notifier)
    tokens = _login(client, email)

    assert tokens["token_type"] == "bearer"
    assert tokens["expires_in"] == 900
    assert "password_hash" not in tokens["user"]

    me = client.get("/api/v1/auth/me", headers=_bearer(tokens))
    assert me.status_code == 200
    assert me.json()["email"] == email
    assert me.json()["is_email_verified"] is True


def test_register_rejects_weak_password(client):
    response = client.post(
        "/api/v1/auth/register", json={"email": "weak@example.com", "password": "password"}
    )
    assert response.status_code == 422
    assert response.json()["error"] == "Validation failed"


def test_register_duplicate_returns_conflict(client, notifier):
    email = _register_and_verify(client, notifier)
    response = client.post("/api/v1/auth/register", json={"email": email, "password": PASSWORD})
    assert response.status_code == 409
    assert response.json()["success"] is False


def test_login_failure_is_unauthorized(client, notifier):
    email = _register_and_verify(client, notifier)
    response = client.post("/api/v1/auth/login", json={"email": email, "password": "Nope1234!"})
    assert response.status_code == 401
    assert response.json()["error"] == "Invalid email or password"


def test_refresh_rotation_over_http(client, notifier):
    tokens = _login(client, _register_and_verify(client, notifier))

    first = client.post("/api/v1/auth/refresh", json={"refresh_token": tokens["refresh_token"]})
    assert first.status_code == 200
    replay = client.post("/api/v1/auth/refresh", json={"refresh_token": tokens["refresh_token"]})
    assert replay.status_code == 401
    assert replay.json()["error"] == "Invalid or expired refresh token"


def test_protected_routes_require_bearer(client):
    assert client.get("/api/v1/users/profile").status_code in (401, 403)
    response = client.get("/api/v1/users/profile", headers={"Authorization": "Bearer garbage"})
    assert response.status_code == 401


def test_sessions_listing_and_revocation(client, notifier):
    email = _register_and_verify(client, notifier)
    laptop = _login(client, email, "Mozilla/5.0 (X11; Linux x86_64) Firefox/121.0")
    phone = _login(client, email, "Mozilla/5.0 (iPhone; CPU iPhone OS 17_0 like Mac OS X) Mobile Safari")

    sessions = client.get("/api/v1/users/sessions", headers=_bearer(laptop)).json()
    assert {s["session_id"] for s in sessions} == {laptop["session_id"], phone["session_id"]}

    response = client.delete(
        f"/api/v1/users/sessions/{phone['session_id']}", headers=_bearer(laptop)
    )
    assert response.status_code == 200
    refresh = client.post("/api/v1/auth/refresh", json={"refresh_token": phone["refresh_token"]})
    assert refresh.status_code == 401

    missing = client.delete("/api/v1/users/sessions/missing", headers=_bearer(laptop))
    assert missing.status_code == 404


def test_logout_then_refresh_with_same_token_fails(client, notifier):
    tokens = _login(client, _register_and_verify(client, notifier))

    response = client.post(
        "/api/v1/auth/logout",
        json={"refresh_token": tokens["refresh_token"]},
        headers=_bearer(tokens),
    )
    assert response.status_code == 200
    refresh = client.post("/api/v1/auth/refresh", json={"refresh_token": tokens["refresh_token"]})
    assert refresh.status_code == 401


def test_forgot_and_reset_password_flow(client, notifier):
    email = _register_and_verify(client, notifier)
    tokens = _login(client, email)

    unknown = client.post("/api/v1/auth/forgot-password", json={"email": "ghost@example.com"})
    known = client.post("/api/v1/auth/forgot-password", json={"email": email})
    assert unknown.json() == known.json()

    reset = client.post(
        "/api/v1/auth/reset-password",
        json={"token": notifier.last("password_reset")[2], "new_password": "Fresh123!"},
    )
    assert reset.status_code == 200
    refresh = client.post("/api/v1/auth/refresh", json={"refresh_token": tokens["refresh_token"]})
    assert refresh.status_code == 401


def test_update_profile(client, notifier):
    tokens = _login(client, _register_and_verify(client, notifier))

    response = client.patch(
        "/api/v1/users/profile", json={"last_name": "Tester"}, headers=_bearer(tokens)
    )
    assert response.status_code == 200
    assert response.json()["full_name"] == "Api Tester"


def test_deactivate_blocks_access_token(client, notifier):
    tokens = _login(client, _register_and_verify(client, notifier))

    assert client.post("/api/v1/users/deactivate", headers=_bearer(tokens)).status_code == 200
    response = client.get("/api/v1/auth/me", headers=_bearer(tokens))
    assert response.status_code == 401
    assert response.json()["error"] == "Account is deactivated"


def test_request_id_is_echoed(client):
    response = client.get("/metrics", headers={"X-Request-ID": "req-123"})
    assert response.status_code == 200
    assert response.headers["X-Request-ID"] == "req-123"
    assert b"authcore_http_requests_total" in response.content


def test_register_rejects_password_over_bcrypt_byte_limit(client):
    response = client.post(
        "/api/v1/auth/register",
        json={"email": "multi@example.com", "password": "Aa1!" + "é" * 40},
    )
    assert response.status_code == 422
    body = response.json()
    assert body["error"] == "Validation failed"
    assert body["details"][0]["field"] == "body.password"
    assert "timestamp" in body


def test_register_rejects_malformed_email(client):
    response = client.post(
        "/api/v1/auth/register", json={"email": "bob@example..com", "password": PASSWORD}
    )
    assert response.status_code == 422
    assert response.json()["details"][0]["field"] == "body.email"
