"""Pricing configuration and site administration endpoint tests."""

import uuid

import pytest
from httpx import AsyncClient

from pointgate.models.account import Account

ADMIN_HEADERS = {"X-API-Key": "test-admin-key"}


@pytest.mark.asyncio
async def test_configure_and_lookup_price(client: AsyncClient):
    resp = await client.put("/v1/pricing", json={
        "resource": "/videos/intro.mp4",
        "cost": 25,
        "description": "Intro video",
    }, headers=ADMIN_HEADERS)
    assert resp.status_code == 200, resp.text
    assert resp.json()["resource"] == "videos/intro.mp4"

    resp = await client.get("/v1/pricing/lookup", params={"resource": "videos/intro.mp4"})
    assert resp.status_code == 200
    quote = resp.json()
    assert quote["cost"] == 25
    assert quote["file_name"] == "intro.mp4"
    assert quote["is_default"] is False

    resp = await client.get("/v1/pricing/lookup", params={"resource": "unknown.bin"})
    assert resp.json()["cost"] == 10
    assert resp.json()["is_default"] is True


@pytest.mark.asyncio
async def test_reconfigure_updates_in_place(client: AsyncClient):
    for cost in (5, 8, 8):
        resp = await client.put("/v1/pricing", json={"resource": "a.txt", "cost": cost},
                                headers=ADMIN_HEADERS)
        assert resp.status_code == 200

    resp = await client.get("/v1/pricing")
    entries = resp.json()
    assert len(entries) == 1
    assert entries[0]["cost"] == 8


@pytest.mark.asyncio
async def test_negative_price_rejected(client: AsyncClient):
    resp = await client.put("/v1/pricing", json={"resource": "a.txt", "cost": -1},
                            headers=ADMIN_HEADERS)
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_pricing_requires_admin(client: AsyncClient):
    resp = await client.put("/v1/pricing", json={"resource": "a.txt", "cost": 1})
    assert resp.status_code == 401

    await client.post("/v1/auth/register", json={
        "email": "user@example.com",
        "password": "password123",
    })
    # Logged in via cookie, but not an administrator
    resp = await client.put("/v1/pricing", json={"resource": "a.txt", "cost": 1})
    assert resp.status_code == 403


@pytest.mark.asyncio
async def test_admin_account_token_may_manage(client: AsyncClient, session_factory):
    resp = await client.post("/v1/auth/register", json={
        "email": "boss@example.com",
        "password": "password123",
    })
    token = resp.json()["access_token"]

    async with session_factory() as sess:
        account = await sess.get(Account, uuid.UUID(resp.json()["account"]["id"]))
        account.is_admin = True
        sess.add(account)
        await sess.commit()

    resp = await client.post("/v1/admin/grants", json={
        "username": "someone@example.com",
        "points": 15,
    }, headers={"Authorization": f"Bearer {token}"})
    assert resp.status_code == 200
    assert resp.json()["account"]["balance"] == 15


@pytest.mark.asyncio
async def test_grant_creates_account_and_clawback(client: AsyncClient):
    resp = await client.post("/v1/admin/grants", json={
        "username": "Fan@Example.com",
        "points": 40,
        "description": "contest prize",
    }, headers=ADMIN_HEADERS)
    assert resp.status_code == 200
    data = resp.json()
    assert data["account"]["username"] == "fan@example.com"
    assert data["applied_points"] == 40

    resp = await client.post("/v1/admin/grants", json={
        "username": "fan@example.com",
        "points": -100,
    }, headers=ADMIN_HEADERS)
    assert resp.status_code == 402

    resp = await client.post("/v1/admin/grants", json={
        "username": "fan@example.com",
        "points": -100,
        "clamp": True,
    }, headers=ADMIN_HEADERS)
    assert resp.status_code == 200
    assert resp.json()["applied_points"] == -40
    assert resp.json()["account"]["balance"] == 0


@pytest.mark.asyncio
async def test_grant_keeps_oauth_identities_apart(client: AsyncClient):
    for provider, points in (("github", 10), ("google", 20)):
        resp = await client.post("/v1/admin/grants", json={
            "username": "octocat",
            "provider": provider,
            "points": points,
        }, headers=ADMIN_HEADERS)
        assert resp.status_code == 200

    resp = await client.get("/v1/admin/accounts/lookup",
                            params={"username": "octocat", "provider": "github"},
                            headers=ADMIN_HEADERS)
    assert resp.status_code == 200
    assert resp.json()["balance"] == 10

    resp = await client.get("/v1/admin/accounts", headers=ADMIN_HEADERS)
    assert len(resp.json()) == 2


@pytest.mark.asyncio
async def test_lookup_unknown_account_is_404(client: AsyncClient):
    resp = await client.get("/v1/admin/accounts/lookup", params={"username": "ghost"},
                            headers=ADMIN_HEADERS)
    assert resp.status_code == 404
    assert resp.json()["code"] == "account_not_found"


@pytest.mark.asyncio
async def test_tenant_ledger_spans_accounts(client: AsyncClient):
    for name in ("a@example.com", "b@example.com"):
        await client.post("/v1/admin/grants", json={"username": name, "points": 5},
                          headers=ADMIN_HEADERS)

    resp = await client.get("/v1/admin/ledger", headers=ADMIN_HEADERS)
    assert resp.status_code == 200
    assert len(resp.json()) == 2
    assert all(e["action"] == "admin_grant" for e in resp.json())

    resp = await client.get("/v1/admin/ledger", params={"limit": 1}, headers=ADMIN_HEADERS)
    assert len(resp.json()) == 1


@pytest.mark.asyncio
async def test_amounts_beyond_column_range_rejected(client: AsyncClient):
    resp = await client.post("/v1/admin/grants", json={
        "username": "whale@example.com",
        "points": 2**63,
    }, headers=ADMIN_HEADERS)
    assert resp.status_code == 422

    resp = await client.put("/v1/pricing", json={"resource": "gold.bin", "cost": 2**40},
                            headers=ADMIN_HEADERS)
    assert resp.status_code == 422

    resp = await client.get("/v1/admin/accounts", headers=ADMIN_HEADERS)
    assert resp.json() == []
