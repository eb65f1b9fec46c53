"""API integration tests for the account endpoints."""

import asyncio
from datetime import datetime, timedelta, timezone
from uuid import uuid4

import httpx
import pytest
from fastapi.testclient import TestClient

from account_api.auth.jwt import TokenIssuer
from account_api.config import Settings
from account_api.db.database import init_db
from account_api.main import create_app

PUBLIC_USER_FIELDS = {"id", "email", "firstName", "lastName", "phone"}


def make_signup_payload(**overrides):
    """Create a valid signup body."""
    payload = {
        "firstName": "A",
        "lastName": "B",
        "email": "a@b.com",
        "password": "secret1",
    }
    payload.update(overrides)
    return payload


def bearer(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


# =============================================================================
# Health / routing
# =============================================================================


class TestRouting:
    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"ok": True}

    def test_unknown_route(self, client):
        response = client.get("/does-not-exist")

        assert response.status_code == 404
        assert response.json() == {"error": "Not found"}

    def test_wrong_method_is_not_found(self, client):
        response = client.get("/auth/signup")

        assert response.status_code == 404
        assert response.json() == {"error": "Not found"}


# =============================================================================
# Signup
# =============================================================================


class TestSignup:
    def test_signup_created(self, client, app):
        response = client.post("/auth/signup", json=make_signup_payload(phone="555"))

        assert response.status_code == 201
        data = response.json()
        assert set(data) == {"user", "token"}
        assert set(data["user"]) == PUBLIC_USER_FIELDS
        assert data["user"]["email"] == "a@b.com"
        assert data["user"]["firstName"] == "A"
        assert data["user"]["lastName"] == "B"
        assert data["user"]["phone"] == "555"

        claims = app.state.token_issuer.verify(data["token"])
        assert claims.subject == data["user"]["id"]

    def test_signup_never_returns_hash(self, client):
        response = client.post("/auth/signup", json=make_signup_payload())

        body = response.text
        assert "passwordHash" not in body
        assert "password_hash" not in body
        assert "secret1" not in body
        assert "$2b$" not in body

    def test_phone_is_optional(self, client):
        response = client.post("/auth/signup", json=make_signup_payload())

        assert response.status_code == 201
        assert response.json()["user"]["phone"] is None

    @pytest.mark.parametrize("field", ["firstName", "lastName", "email", "password"])
    def test_missing_field(self, client, field):
        payload = make_signup_payload()
        del payload[field]

        response = client.post("/auth/signup", json=payload)

        assert response.status_code == 400
        assert response.json() == {"error": "Missing required fields"}

    def test_empty_body(self, client):
        response = client.post("/auth/signup")

        assert response.status_code == 400
        assert response.json() == {"error": "Missing required fields"}

    def test_invalid_email(self, client):
        response = client.post(
            "/auth/signup", json=make_signup_payload(email="not-an-email")
        )

        assert response.status_code == 400
        assert response.json() == {"error": "Invalid email"}

    def test_short_password(self, client):
        response = client.post("/auth/signup", json=make_signup_payload(password="abc"))

        assert response.status_code == 400
        assert response.json() == {"error": "Password must be at least 6 characters"}

    def test_nul_in_password_is_client_error(self, client):
        response = client.post(
            "/auth/signup", json=make_signup_payload(password="secret\x001")
        )

        assert response.status_code == 400
        assert response.json() == {"error": "Password contains unsupported characters"}

    def test_email_with_trailing_newline(self, client):
        response = client.post("/auth/signup", json=make_signup_payload(email="a@b.com\n"))

        assert response.status_code == 400
        assert response.json() == {"error": "Invalid email"}

    def test_empty_phone_is_null(self, client):
        response = client.post("/auth/signup", json=make_signup_payload(phone=""))

        assert response.status_code == 201
        assert response.json()["user"]["phone"] is None

    def test_duplicate_email(self, client):
        assert client.post("/auth/signup", json=make_signup_payload()).status_code == 201

        response = client.post(
            "/auth/signup", json=make_signup_payload(email="A@B.com")
        )

        assert response.status_code == 409
        assert response.json() == {"error": "Email already exists"}

    def test_malformed_json(self, client):
        response = client.post(
            "/auth/signup",
            content=b'{"email": "a@b.com",',
            headers={"Content-Type": "application/json"},
        )

        assert response.status_code == 400
        assert response.json() == {"error": "Invalid JSON"}

    def test_json_that_is_not_an_object(self, client):
        response = client.post("/auth/signup", json=["a@b.com", "secret1"])

        assert response.status_code == 400
        assert response.json() == {"error": "Invalid JSON"}

    def test_no_secret_is_server_error(self, database_url):
        app = create_app(Settings(jwt_secret="", database_url=database_url, bcrypt_rounds=4))

        with TestClient(app) as client:
            response = client.post("/auth/signup", json=make_signup_payload())

        assert response.status_code == 500
        assert response.json() == {"error": "Server error"}


class TestConcurrentSignup:
    @pytest.mark.asyncio
    async def test_same_email_one_wins(self, settings):
        """Two simultaneous signups for one address: one 201, one 409."""
        app = create_app(settings)
        await init_db(app.state.engine)

        transport = httpx.ASGITransport(app=app)
        async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
            responses = await asyncio.gather(
                client.post("/auth/signup", json=make_signup_payload(email="x@y.com")),
                client.post("/auth/signup", json=make_signup_payload(email="X@Y.com")),
            )
        await app.state.engine.dispose()

        assert sorted(r.status_code for r in responses) == [201, 409]
        conflict = next(r for r in responses if r.status_code == 409)
        assert conflict.json() == {"error": "Email already exists"}


# =============================================================================
# Login
# =============================================================================


class TestLogin:
    @pytest.fixture(autouse=True)
    def registered(self, client):
        response = client.post("/auth/signup", json=make_signup_payload())
        assert response.status_code == 201
        return response.json()

    def test_login_success(self, client, registered):
        response = client.post(
            "/auth/login", json={"email": "a@b.com", "password": "secret1"}
        )

        assert response.status_code == 200
        data = response.json()
        assert data["user"] == registered["user"]
        assert data["token"]

    def test_login_case_insensitive(self, client):
        response = client.post(
            "/auth/login", json={"email": "A@B.com", "password": "secret1"}
        )

        assert response.status_code == 200

    @pytest.mark.parametrize(
        "payload", [{}, {"email": "a@b.com"}, {"password": "secret1"}]
    )
    def test_missing_credentials(self, client, payload):
        response = client.post("/auth/login", json=payload)

        assert response.status_code == 400
        assert response.json() == {"error": "Missing email or password"}

    def test_unknown_email_and_wrong_password_identical(self, client):
        unknown = client.post(
            "/auth/login", json={"email": "nobody@b.com", "password": "secret1"}
        )
        wrong = client.post("/auth/login", json={"email": "a@b.com", "password": "wrong"})

        assert unknown.status_code == wrong.status_code == 401
        assert unknown.json() == wrong.json() == {"error": "Invalid credentials"}

    def test_malformed_json(self, client):
        response = client.post(
            "/auth/login",
            content=b"email=a@b.com",
            headers={"Content-Type": "application/json"},
        )

        assert response.status_code == 400
        assert response.json() == {"error": "Invalid JSON"}


# =============================================================================
# Profile
# =============================================================================


class TestMe:
    def test_me_with_valid_token(self, client):
        signup = client.post("/auth/signup", json=make_signup_payload()).json()

        response = client.get("/me", headers=bearer(signup["token"]))

        assert response.status_code == 200
        assert response.json() == {"user": signup["user"]}
        assert set(response.json()["user"]) == PUBLIC_USER_FIELDS

    def test_me_without_header(self, client):
        response = client.get("/me")

        assert response.status_code == 401
        assert response.json() == {"error": "Unauthorized"}

    @pytest.mark.parametrize(
        "header", ["Bearer", "Bearer not.a.token", "Basic dXNlcjpwYXNz", "token"]
    )
    def test_me_with_malformed_header(self, client, header):
        response = client.get("/me", headers={"Authorization": header})

        assert response.status_code == 401
        assert response.json() == {"error": "Unauthorized"}

    def test_me_with_expired_token(self, client, settings):
        signup = client.post("/auth/signup", json=make_signup_payload()).json()
        issued_at = datetime.now(timezone.utc) - timedelta(days=8)
        expired = TokenIssuer(settings.jwt_secret, clock=lambda: issued_at).issue(
            signup["user"]["id"], "a@b.com"
        )

        response = client.get("/me", headers=bearer(expired))

        assert response.status_code == 401
        assert response.json() == {"error": "Unauthorized"}

    def test_me_with_foreign_token(self, client):
        signup = client.post("/auth/signup", json=make_signup_payload()).json()
        forged = TokenIssuer("not-the-server-secret").issue(
            signup["user"]["id"], "a@b.com"
        )

        response = client.get("/me", headers=bearer(forged))

        assert response.status_code == 401

    def test_me_for_missing_account(self, client, app):
        """A valid token whose user no longer exists."""
        token = app.state.token_issuer.issue(str(uuid4()), "ghost@b.com")

        response = client.get("/me", headers=bearer(token))

        assert response.status_code == 404
        assert response.json() == {"error": "Not found"}

    def test_me_rejects_everything_without_secret(self, client, database_url):
        signup = client.post("/auth/signup", json=make_signup_payload()).json()
        app = create_app(Settings(jwt_secret="", database_url=database_url))

        with TestClient(app) as unsecured:
            response = unsecured.get("/me", headers=bearer(signup["token"]))

        assert response.status_code == 401


# =============================================================================
# CORS
# =============================================================================


class TestCors:
    def test_preflight_is_empty_204(self, client):
        response = client.options(
            "/auth/signup",
            headers={
                "Origin": "http://localhost:3000",
                "Access-Control-Request-Method": "POST",
                "Access-Control-Request-Headers": "Content-Type, Authorization",
            },
        )

        assert response.status_code == 204
        assert response.content == b""
        assert response.headers["access-control-allow-origin"] == "http://localhost:3000"
        assert response.headers["access-control-allow-credentials"] == "true"
        assert "POST" in response.headers["access-control-allow-methods"]
        assert "authorization" in response.headers["access-control-allow-headers"].lower()

    def test_plain_options_is_204(self, client):
        response = client.options("/me")

        assert response.status_code == 204
        assert response.content == b""

    def test_allowed_origin_on_simple_request(self, client):
        response = client.get("/health", headers={"Origin": "http://localhost:3000"})

        assert response.headers["access-control-allow-origin"] == "http://localhost:3000"

    def test_other_origin_not_allowed(self, client):
        response = client.get("/health", headers={"Origin": "http://evil.test"})

        assert "access-control-allow-origin" not in response.headers

    def test_configured_origins(self, settings):
        custom = Settings(
            jwt_secret=settings.jwt_secret,
            database_url=settings.database_url,
            cors_origins=["http://a.test", "http://b.test"],
        )

        with TestClient(create_app(custom)) as client:
            response = client.get("/health", headers={"Origin": "http://b.test"})

        assert response.headers["access-control-allow-origin"] == "http://b.test"


# =============================================================================
# End-to-end scenario
# =============================================================================


def test_signup_login_scenario(client):
    first = client.post("/auth/signup", json=make_signup_payload())
    assert first.status_code == 201
    assert first.json()["user"]["email"] == "a@b.com"
    assert first.json()["token"]

    again = client.post("/auth/signup", json=make_signup_payload())
    assert again.status_code == 409
    assert again.json() == {"error": "Email already exists"}

    login = client.post("/auth/login", json={"email": "A@B.com", "password": "secret1"})
    assert login.status_code == 200

    bad = client.post("/auth/login", json={"email": "a@b.com", "password": "wrong"})
    assert bad.status_code == 401

    me = client.get("/me", headers=bearer(login.json()["token"]))
    assert me.status_code == 200
    assert me.json()["user"]["id"] == first.json()["user"]["id"]
