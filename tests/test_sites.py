"""Site management and tenant resolution tests."""

import pytest
from httpx import AsyncClient

from pointgate.core.errors import TenantNotFound
from pointgate.services.tenants import normalize_host, resolve_tenant

ADMIN_HEADERS = {"X-API-Key": "test-admin-key"}


@pytest.mark.asyncio
async def test_create_and_list_sites(client_factory):
    client: AsyncClient = client_factory("control.test")

    resp = await client.post("/v1/sites", json={
        "name": "Mirror One",
        "domain": "Files.Example.com:8080",
    }, headers=ADMIN_HEADERS)
    assert resp.status_code == 201, resp.text
    data = resp.json()
    assert data["domain"] == "files.example.com"
    assert data["is_active"] is True

    resp = await client.get("/v1/sites", headers=ADMIN_HEADERS)
    assert resp.status_code == 200
    assert [s["domain"] for s in resp.json()] == ["files.example.com"]


@pytest.mark.asyncio
async def test_duplicate_domain_rejected(client_factory):
    client = client_factory("control.test")
    payload = {"name": "First", "domain": "dup.example.com"}

    resp = await client.post("/v1/sites", json=payload, headers=ADMIN_HEADERS)
    assert resp.status_code == 201
    resp = await client.post("/v1/sites", json=payload, headers=ADMIN_HEADERS)
    assert resp.status_code == 409


@pytest.mark.asyncio
async def test_site_management_requires_admin_key(client_factory):
    client = client_factory("control.test")

    resp = await client.post("/v1/sites", json={"name": "x", "domain": "x.test"})
    assert resp.status_code == 401

    resp = await client.get("/v1/sites", headers={"X-API-Key": "wrong"})
    assert resp.status_code == 401


@pytest.mark.asyncio
async def test_current_site_resolved_from_host(client_factory):
    admin = client_factory("control.test")
    await admin.post("/v1/sites", json={"name": "Mirror", "domain": "mirror.test"},
                     headers=ADMIN_HEADERS)

    resp = await client_factory("mirror.test").get("/v1/sites/current")
    assert resp.status_code == 200
    assert resp.json()["name"] == "Mirror"


@pytest.mark.asyncio
async def test_unknown_host_is_site_not_configured(client_factory):
    resp = await client_factory("nowhere.test").get("/v1/sites/current")
    assert resp.status_code == 404
    body = resp.json()
    assert body["code"] == "tenant_not_found"
    assert body["context"]["host"] == "nowhere.test"


@pytest.mark.asyncio
async def test_deactivated_site_stops_resolving(client_factory):
    admin = client_factory("control.test")
    resp = await admin.post("/v1/sites", json={"name": "Old", "domain": "old.test"},
                            headers=ADMIN_HEADERS)
    site_id = resp.json()["id"]

    resp = await admin.patch(f"/v1/sites/{site_id}", json={"is_active": False},
                             headers=ADMIN_HEADERS)
    assert resp.status_code == 200
    assert resp.json()["is_active"] is False

    resp = await client_factory("old.test").get("/v1/sites/current")
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_update_site_domain_conflict(client_factory):
    admin = client_factory("control.test")
    await admin.post("/v1/sites", json={"name": "A", "domain": "a.test"}, headers=ADMIN_HEADERS)
    resp = await admin.post("/v1/sites", json={"name": "B", "domain": "b.test"},
                            headers=ADMIN_HEADERS)
    site_b = resp.json()["id"]

    resp = await admin.patch(f"/v1/sites/{site_b}", json={"domain": "a.test"},
                             headers=ADMIN_HEADERS)
    assert resp.status_code == 409


def test_normalize_host():
    assert normalize_host("Example.COM:8443") == "example.com"
    assert normalize_host(" files.test ") == "files.test"
    assert normalize_host("[::1]:8000") == "[::1]"
    assert normalize_host("") == ""


@pytest.mark.asyncio
async def test_resolver_auto_provisions_in_development(session):
    tenant = await resolve_tenant(session, "dev.local:3000", auto_provision=True)
    assert tenant.domain == "dev.local"
    assert tenant.name == "Default Site"

    again = await resolve_tenant(session, "DEV.local", auto_provision=True)
    assert again.id == tenant.id


@pytest.mark.asyncio
async def test_resolver_without_provisioning_raises(session):
    with pytest.raises(TenantNotFound):
        await resolve_tenant(session, "prod.example.com")


@pytest.mark.asyncio
async def test_health_needs_no_site(client_factory):
    resp = await client_factory("anything.test").get("/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok"}
