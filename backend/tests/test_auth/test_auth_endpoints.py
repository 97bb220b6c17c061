"""Tests for authentication endpoints (register, login, me, refresh)."""

import uuid

import pytest
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from stayledger.auth.passwords import hash_password
from stayledger.models.user import User

pytestmark = pytest.mark.asyncio(loop_scope="session")


def _unique_email(prefix: str) -> str:
    return f"{prefix}-{uuid.uuid4().hex[:8]}@test.com"


# ---------------------------------------------------------------------------
# POST /api/v1/auth/register
# ---------------------------------------------------------------------------


class TestRegister:
    """Tests for user registration."""

    async def test_register_success(self, client: AsyncClient) -> None:
        email = _unique_email("newuser")
        response = await client.post(
            "/api/v1/auth/register",
            json={"email": email, "password": "securepass123", "name": "New User"},
        )
        assert response.status_code == 201
        data = response.json()
        assert data["user"]["email"] == email
        assert data["user"]["name"] == "New User"
        assert data["user"]["role"] == "guest"
        assert data["user"]["is_active"] is True
        assert data["tokens"]["access_token"]
        assert data["tokens"]["refresh_token"]
        assert data["tokens"]["token_type"] == "bearer"

    async def test_register_as_host(self, client: AsyncClient) -> None:
        response = await client.post(
            "/api/v1/auth/register",
            json={
                "email": _unique_email("host"),
                "password": "securepass123",
                "name": "New Host",
                "phone": "+62 812 0000",
                "role": "host",
            },
        )
        assert response.status_code == 201
        assert response.json()["user"]["role"] == "host"
        assert response.json()["user"]["phone"] == "+62 812 0000"

    async def test_register_as_admin_rejected(self, client: AsyncClient) -> None:
        response = await client.post(
            "/api/v1/auth/register",
            json={"email": _unique_email("admin"), "password": "securepass123", "name": "Sneaky", "role": "admin"},
        )
        assert response.status_code == 422

    async def test_register_duplicate_email(self, client: AsyncClient) -> None:
        payload = {"email": _unique_email("dup"), "password": "securepass123", "name": "First"}

        resp1 = await client.post("/api/v1/auth/register", json=payload)
        assert resp1.status_code == 201

        resp2 = await client.post("/api/v1/auth/register", json=payload)
        assert resp2.status_code == 409
        assert "already registered" in resp2.json()["detail"].lower()

    async def test_register_short_password(self, client: AsyncClient) -> None:
        response = await client.post(
            "/api/v1/auth/register",
            json={"email": _unique_email("short"), "password": "short", "name": "Short Pass"},
        )
        assert response.status_code == 422

    async def test_register_invalid_email(self, client: AsyncClient) -> None:
        response = await client.post(
            "/api/v1/auth/register",
            json={"email": "not-an-email", "password": "securepass123", "name": "Bad Email"},
        )
        assert response.status_code == 422

    async def test_register_missing_name(self, client: AsyncClient) -> None:
        response = await client.post(
            "/api/v1/auth/register",
            json={"email": _unique_email("noname"), "password": "securepass123"},
        )
        assert response.status_code == 422


# ---------------------------------------------------------------------------
# POST /api/v1/auth/login
# ---------------------------------------------------------------------------


class TestLogin:
    """Tests for email/password login."""

    async def test_login_success(self, client: AsyncClient) -> None:
        email = _unique_email("login")
        password = "securepass123"
        await client.post(
            "/api/v1/auth/register",
            json={"email": email, "password": password, "name": "Login User"},
        )

        response = await client.post("/api/v1/auth/login", json={"email": email, "password": password})
        assert response.status_code == 200
        data = response.json()
        assert data["user"]["email"] == email
        assert data["tokens"]["access_token"]
        assert data["tokens"]["refresh_token"]

    async def test_login_wrong_password(self, client: AsyncClient) -> None:
        email = _unique_email("wrongpw")
        await client.post(
            "/api/v1/auth/register",
            json={"email": email, "password": "correctpass1", "name": "Wrong PW"},
        )

        response = await client.post("/api/v1/auth/login", json={"email": email, "password": "wrongpassword"})
        assert response.status_code == 401
        assert "invalid" in response.json()["detail"].lower()

    async def test_login_nonexistent_user(self, client: AsyncClient) -> None:
        response = await client.post(
            "/api/v1/auth/login",
            json={"email": "nobody@nowhere.com", "password": "irrelevant1"},
        )
        assert response.status_code == 401
        assert "invalid" in response.json()["detail"].lower()

    async def test_login_inactive_account(self, client: AsyncClient, db_session: AsyncSession) -> None:
        email = _unique_email("inactive")
        db_session.add(
            User(email=email, hashed_password=hash_password("securepass123"), name="Gone", is_active=False)
        )
        await db_session.flush()

        response = await client.post("/api/v1/auth/login", json={"email": email, "password": "securepass123"})
        assert response.status_code == 403


# ---------------------------------------------------------------------------
# GET /api/v1/auth/me
# ---------------------------------------------------------------------------


class TestMe:
    """Tests for the authenticated user profile endpoint."""

    async def test_me_authenticated(self, client: AsyncClient, host_headers: dict, host_user: User) -> None:
        response = await client.get("/api/v1/auth/me", headers=host_headers)
        assert response.status_code == 200
        data = response.json()
        assert data["email"] == host_user.email
        assert data["name"] == host_user.name
        assert data["role"] == "host"
        assert data["is_active"] is True

    async def test_me_unauthenticated(self, client: AsyncClient) -> None:
        response = await client.get("/api/v1/auth/me")
        # HTTPBearer answers 401 or 403 depending on the FastAPI version
        assert response.status_code in (401, 403)


# ---------------------------------------------------------------------------
# POST /api/v1/auth/refresh
# ---------------------------------------------------------------------------


class TestRefresh:
    """Tests for token refresh."""

    async def test_refresh_success(self, client: AsyncClient) -> None:
        reg_resp = await client.post(
            "/api/v1/auth/register",
            json={"email": _unique_email("refresh"), "password": "securepass123", "name": "Refresh User"},
        )
        assert reg_resp.status_code == 201
        refresh_token = reg_resp.json()["tokens"]["refresh_token"]

        response = await client.post("/api/v1/auth/refresh", json={"refresh_token": refresh_token})
        assert response.status_code == 200
        data = response.json()
        assert data["access_token"]
        assert data["refresh_token"]
        assert data["token_type"] == "bearer"

    async def test_refresh_invalid_token(self, client: AsyncClient) -> None:
        response = await client.post("/api/v1/auth/refresh", json={"refresh_token": "totally.invalid.token"})
        assert response.status_code == 401

    async def test_refresh_with_access_token_fails(self, client: AsyncClient) -> None:
        """Using an access token (not a refresh token) should be rejected."""
        reg_resp = await client.post(
            "/api/v1/auth/register",
            json={"email": _unique_email("badrefresh"), "password": "securepass123", "name": "Bad Refresh"},
        )
        access_token = reg_resp.json()["tokens"]["access_token"]

        response = await client.post("/api/v1/auth/refresh", json={"refresh_token": access_token})
        assert response.status_code == 401
        assert response.json()["detail"] == "Invalid token type"
