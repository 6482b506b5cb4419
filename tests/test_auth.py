"""Local register / login and token scoping tests."""

import pytest
from httpx import AsyncClient

ADMIN_HEADERS = {"X-API-Key": "test-admin-key"}


async def _register(client: AsyncClient, email: str, password: str = "password123") -> dict:
    resp = await client.post("/v1/auth/register", json={"email": email, "password": password})
    assert resp.status_code == 201, resp.text
    return resp.json()


@pytest.mark.asyncio
async def test_register_login_and_me(client: AsyncClient):
    data = await _register(client, "Reader@Example.com")
    assert data["account"]["username"] == "reader@example.com"
    assert data["account"]["balance"] == 0
    assert data["account"]["provider"] == "local"
    assert client.cookies.get("pointgate_token")

    resp = await client.post("/v1/auth/login", json={
        "email": "reader@example.com",
        "password": "password123",
    })
    assert resp.status_code == 200
    token = resp.json()["access_token"]

    resp = await client.get("/v1/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert resp.status_code == 200
    assert resp.json()["username"] == "reader@example.com"


@pytest.mark.asyncio
async def test_cookie_authenticates(client: AsyncClient):
    await _register(client, "cookie@example.com")
    # The login cookie set by register is sent back automatically
    resp = await client.get("/v1/points/balance")
    assert resp.status_code == 200
    assert resp.json()["balance"] == 0


@pytest.mark.asyncio
async def test_duplicate_registration_rejected(client: AsyncClient):
    await _register(client, "twice@example.com")
    resp = await client.post("/v1/auth/register", json={
        "email": "twice@example.com",
        "password": "password123",
    })
    assert resp.status_code == 409


@pytest.mark.asyncio
async def test_wrong_password_rejected(client: AsyncClient):
    await _register(client, "careful@example.com")
    resp = await client.post("/v1/auth/login", json={
        "email": "careful@example.com",
        "password": "not-the-password",
    })
    assert resp.status_code == 401


@pytest.mark.asyncio
async def test_register_claims_account_created_by_grant(client: AsyncClient):
    resp = await client.post("/v1/admin/grants", json={
        "username": "gifted@example.com",
        "points": 40,
        "description": "pre-launch gift",
    }, headers=ADMIN_HEADERS)
    assert resp.status_code == 200
    granted_id = resp.json()["account"]["id"]

    data = await _register(client, "gifted@example.com")
    assert data["account"]["id"] == granted_id
    assert data["account"]["balance"] == 40


@pytest.mark.asyncio
async def test_token_from_other_site_rejected(client_factory, tenant, tenant_factory):
    await tenant_factory("second.test")
    home = client_factory("test")
    away = client_factory("second.test")

    token = (await _register(home, "roamer@example.com"))["access_token"]

    resp = await away.get("/v1/points/balance", headers={"Authorization": f"Bearer {token}"})
    assert resp.status_code == 401


@pytest.mark.asyncio
async def test_missing_and_garbage_tokens_rejected(client: AsyncClient):
    resp = await client.get("/v1/points/balance")
    assert resp.status_code == 401

    resp = await client.get("/v1/points/balance",
                            headers={"Authorization": "Bearer not.a.jwt"})
    assert resp.status_code == 401


@pytest.mark.asyncio
async def test_logout_clears_cookie(client: AsyncClient):
    await _register(client, "leaving@example.com")
    resp = await client.post("/v1/auth/logout")
    assert resp.status_code == 204
    assert "pointgate_token" not in client.cookies
