"""Tests for authentication endpoints."""

import time
from datetime import UTC, datetime, timedelta

import pytest

from inventory_api.core import settings
from inventory_api.models.user import Role
from inventory_api.services.session_cleanup import SessionCleanupService
from inventory_api.services.tokens import TokenIssuer

TEST_PASSWORD = "password123"

SIGNUP_PAYLOAD = {
    "email": "New.Seller@Example.com",
    "password": "secret123",
    "first_name": "New",
    "last_name": "Seller",
}


async def _login(client, email="seller@example.com", password=TEST_PASSWORD, ip="10.0.0.1"):
    return await client.post(
        "/auth/login",
        json={"email": email, "password": password},
        headers={"X-Real-IP": ip},
    )


class TestSignup:
    @pytest.mark.asyncio
    async def test_signup_creates_user_and_session(self, async_client, registry, audit_store):
        response = await async_client.post("/auth/signup", json=SIGNUP_PAYLOAD)

        assert response.status_code == 201
        data = response.json()
        assert data["message"] == "User registered successfully"
        assert data["user"]["email"] == "new.seller@example.com"
        assert data["user"]["role"] == Role.SALESPERSON.value
        assert "password_hash" not in data["user"]
        assert registry.is_session_active(data["user"]["id"], data["token"]) is True

        await registry.drain()
        assert audit_store.operations() == ["record_login"]

    @pytest.mark.asyncio
    async def test_signup_with_role(self, async_client):
        response = await async_client.post(
            "/auth/signup", json={**SIGNUP_PAYLOAD, "role": "ADMINISTRATOR"}
        )

        assert response.status_code == 201
        assert response.json()["user"]["role"] == "ADMINISTRATOR"

    @pytest.mark.asyncio
    async def test_signup_duplicate_email(self, async_client, user_factory):
        await user_factory(email="new.seller@example.com")

        response = await async_client.post("/auth/signup", json=SIGNUP_PAYLOAD)

        assert response.status_code == 409
        assert response.json()["detail"] == "Email is already registered"

    @pytest.mark.asyncio
    async def test_signup_validation(self, async_client):
        response = await async_client.post(
            "/auth/signup", json={**SIGNUP_PAYLOAD, "password": "123"}
        )
        assert response.status_code == 422

        response = await async_client.post(
            "/auth/signup", json={**SIGNUP_PAYLOAD, "email": "not-an-email"}
        )
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_signup_rate_limited(self, async_client):
        for i in range(3):
            response = await async_client.post(
                "/auth/signup",
                json={**SIGNUP_PAYLOAD, "email": f"user{i}@example.com"},
                headers={"X-Real-IP": "10.9.9.9"},
            )
            assert response.status_code == 201

        response = await async_client.post(
            "/auth/signup",
            json={**SIGNUP_PAYLOAD, "email": "user4@example.com"},
            headers={"X-Real-IP": "10.9.9.9"},
        )
        assert response.status_code == 429


class TestLogin:
    @pytest.mark.asyncio
    async def test_login_success(self, async_client, user_factory, registry):
        user = await user_factory()

        response = await _login(async_client)

        assert response.status_code == 200
        data = response.json()
        assert data["message"] == "Login successful"
        assert data["user"]["id"] == str(user.id)
        assert data["expires_in"] == 3600
        assert registry.is_session_active(str(user.id), data["token"]) is True

    @pytest.mark.asyncio
    async def test_login_is_case_insensitive_on_email(self, async_client, user_factory):
        await user_factory()

        response = await _login(async_client, email="Seller@Example.COM")

        assert response.status_code == 200

    @pytest.mark.asyncio
    async def test_wrong_password(self, async_client, user_factory):
        await user_factory()

        response = await _login(async_client, password="wrong-password")

        assert response.status_code == 401
        assert response.json()["detail"] == "Invalid credentials"

    @pytest.mark.asyncio
    async def test_unknown_user_looks_like_wrong_password(self, async_client):
        response = await _login(async_client, email="ghost@example.com")

        assert response.status_code == 401
        assert response.json()["detail"] == "Invalid credentials"

    @pytest.mark.asyncio
    async def test_inactive_user_cannot_login(self, async_client, user_factory):
        await user_factory(is_active=False)

        response = await _login(async_client)

        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_failed_logins_rate_limited(self, async_client, user_factory):
        await user_factory()

        for _ in range(5):
            response = await _login(async_client, password="wrong-password", ip="10.1.1.1")
            assert response.status_code == 401

        response = await _login(async_client, ip="10.1.1.1")
        assert response.status_code == 429

        # Other clients are unaffected
        response = await _login(async_client, ip="10.1.1.2")
        assert response.status_code == 200

    @pytest.mark.asyncio
    async def test_successful_logins_not_rate_limited(self, async_client, user_factory):
        await user_factory()

        for _ in range(7):
            response = await _login(async_client)
            assert response.status_code == 200


class TestSingleSessionFlow:
    @pytest.mark.asyncio
    async def test_second_login_supersedes_first(
        self, async_client, user_factory, auth_headers, registry, audit_store
    ):
        """Login twice; only the latest token works, logging out leaves nothing."""
        user = await user_factory()

        first = (await _login(async_client)).json()["token"]
        response = await async_client.get("/auth/role", headers=auth_headers(first))
        assert response.status_code == 200
        assert response.json() == {"role": "SALESPERSON"}

        second = (await _login(async_client)).json()["token"]
        assert second != first

        response = await async_client.get("/auth/role", headers=auth_headers(first))
        assert response.status_code == 401
        response = await async_client.get("/auth/role", headers=auth_headers(second))
        assert response.status_code == 200

        response = await async_client.post("/auth/logout", headers=auth_headers(second))
        assert response.status_code == 200
        response = await async_client.get("/auth/role", headers=auth_headers(second))
        assert response.status_code == 401
        assert registry.get_active_sessions(str(user.id)) == 0

        await registry.drain()
        assert audit_store.operations() == ["record_login", "record_login", "close_session"]


class TestLogout:
    @pytest.mark.asyncio
    async def test_logout_response(self, async_client, user_factory, auth_headers):
        await user_factory()
        token = (await _login(async_client)).json()["token"]

        response = await async_client.post("/auth/logout", headers=auth_headers(token))

        assert response.status_code == 200
        data = response.json()
        assert data["message"] == "Successfully logged out"
        assert "logout_time" in data

    @pytest.mark.asyncio
    async def test_logout_twice_is_idempotent(self, async_client, user_factory, auth_headers):
        await user_factory()
        token = (await _login(async_client)).json()["token"]

        first = await async_client.post("/auth/logout", headers=auth_headers(token))
        second = await async_client.post("/auth/logout", headers=auth_headers(token))

        assert first.status_code == second.status_code == 200
        assert second.json()["message"] == "Successfully logged out"

    @pytest.mark.asyncio
    async def test_logout_without_token(self, async_client):
        response = await async_client.post("/auth/logout")

        assert response.status_code == 200
        assert response.json()["message"] == "Successfully logged out"

    @pytest.mark.asyncio
    async def test_logout_with_garbage_token(self, async_client, auth_headers):
        response = await async_client.post("/auth/logout", headers=auth_headers("garbage"))

        assert response.status_code == 200

    @pytest.mark.asyncio
    async def test_forged_and_garbage_logouts_do_not_grow_blacklist(
        self, async_client, auth_headers, registry
    ):
        attacker = TokenIssuer("attacker-secret", lifetime_seconds=3600)
        for i in range(20):
            forged = attacker.issue(f"user-{i}", "x@example.com", "ADMINISTRATOR")
            for token in (forged, f"garbage{i}"):
                response = await async_client.post("/auth/logout", headers=auth_headers(token))
                assert response.status_code == 200

        await SessionCleanupService(registry).run_cleanup_now()

        assert registry._blacklist == {}

    @pytest.mark.asyncio
    async def test_logout_with_expired_token(self, async_client, user_factory, auth_headers):
        user = await user_factory()
        past = datetime.now(UTC) - timedelta(hours=2)
        expired = TokenIssuer(
            settings.effective_jwt_secret_key, lifetime_seconds=3600, clock=lambda: past
        ).issue(str(user.id), user.email, "SALESPERSON")

        response = await async_client.post("/auth/logout", headers=auth_headers(expired))

        assert response.status_code == 200

    @pytest.mark.asyncio
    async def test_stale_logout_keeps_new_session(
        self, async_client, user_factory, auth_headers
    ):
        await user_factory()
        first = (await _login(async_client)).json()["token"]
        second = (await _login(async_client)).json()["token"]

        response = await async_client.post("/auth/logout", headers=auth_headers(first))
        assert response.status_code == 200

        response = await async_client.get("/auth/role", headers=auth_headers(second))
        assert response.status_code == 200

    @pytest.mark.asyncio
    async def test_logout_when_store_is_down(
        self, async_client, user_factory, auth_headers, user_store, registry
    ):
        user = await user_factory()
        token = (await _login(async_client)).json()["token"]
        user_store.fail_lookups = ConnectionError("database down")

        response = await async_client.post("/auth/logout", headers=auth_headers(token))

        assert response.status_code == 200
        assert registry.get_active_sessions(str(user.id)) == 0


class TestProtectedRoutes:
    @pytest.mark.asyncio
    async def test_role_requires_token(self, async_client):
        response = await async_client.get("/auth/role")

        assert response.status_code == 401
        assert response.json()["detail"] == "Unauthorized"
        assert response.headers["WWW-Authenticate"] == "Bearer"

    @pytest.mark.asyncio
    async def test_errors_are_not_distinguished(self, async_client, user_factory, auth_headers):
        """Expired, garbled and superseded tokens get the same response."""
        user = await user_factory()
        first = (await _login(async_client)).json()["token"]
        await _login(async_client)
        expired = TokenIssuer(
            settings.effective_jwt_secret_key,
            lifetime_seconds=60,
            clock=lambda: datetime.now(UTC) - timedelta(hours=1),
        ).issue(str(user.id), user.email, "SALESPERSON")

        bodies = []
        for token in (first, "garbage", expired):
            response = await async_client.get("/auth/role", headers=auth_headers(token))
            assert response.status_code == 401
            bodies.append(response.json())
        assert bodies[0] == bodies[1] == bodies[2]

    @pytest.mark.asyncio
    async def test_admin_route_forbidden_for_salesperson(
        self, async_client, user_factory, auth_headers
    ):
        await user_factory()
        token = (await _login(async_client)).json()["token"]

        response = await async_client.get("/auth/admin", headers=auth_headers(token))

        assert response.status_code == 403
        assert "SALESPERSON" in response.json()["detail"]

    @pytest.mark.asyncio
    async def test_admin_route_allows_administrator(
        self, async_client, user_factory, auth_headers
    ):
        admin = await user_factory(email="admin@example.com", role=Role.ADMINISTRATOR)
        token = (await _login(async_client, email="admin@example.com")).json()["token"]

        response = await async_client.get("/auth/admin", headers=auth_headers(token))

        assert response.status_code == 200
        assert response.json() == {
            "message": "You have access to admin content",
            "user_id": str(admin.id),
        }

    @pytest.mark.asyncio
    async def test_deactivated_user_rejected(self, async_client, user_factory, auth_headers):
        user = await user_factory()
        token = (await _login(async_client)).json()["token"]
        user.is_active = False

        response = await async_client.get("/auth/role", headers=auth_headers(token))

        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_store_outage_is_503(self, async_client, user_factory, auth_headers, user_store):
        await user_factory()
        token = (await _login(async_client)).json()["token"]
        user_store.fail_lookups = ConnectionError("database down")

        response = await async_client.get("/auth/role", headers=auth_headers(token))

        assert response.status_code == 503

    @pytest.mark.asyncio
    async def test_blacklisted_token_rejected(
        self, async_client, user_factory, auth_headers, registry
    ):
        await user_factory()
        token = (await _login(async_client)).json()["token"]
        registry.blacklist_token(token, time.time() + 60)

        response = await async_client.get("/auth/role", headers=auth_headers(token))

        assert response.status_code == 401


@pytest.mark.asyncio
async def test_root(async_client):
    response = await async_client.get("/")

    assert response.status_code == 200
    assert "version" in response.json()
