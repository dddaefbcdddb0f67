from datetime import datetime, timedelta, timezone

import pytest
from httpx import AsyncClient

from sitepulse.services.credentials import StoreHandle
from sitepulse.services.event_store import open_event_store

TENANTS = "/api/v1/tenants"


@pytest.mark.asyncio
async def test_create_tenant(client: AsyncClient, owner_headers: dict):
    response = await client.post(
        f"{TENANTS}/", headers=owner_headers, json={"name": "Blog", "url": "https://blog.example"}
    )
    assert response.status_code == 201
    data = response.json()
    assert data["name"] == "Blog"
    assert data["owner_id"] == "owner-1"
    assert data["is_configured"] is False
    assert data["api_key"].startswith("site_")
    assert data["api_key"].startswith(data["api_key_prefix"])


@pytest.mark.asyncio
async def test_key_is_only_shown_on_create(client: AsyncClient, owner_headers: dict):
    created = await client.post(
        f"{TENANTS}/", headers=owner_headers, json={"name": "Blog", "url": "https://blog.example"}
    )
    fetched = await client.get(f"{TENANTS}/{created.json()['id']}", headers=owner_headers)
    assert fetched.status_code == 200
    assert "api_key" not in fetched.json()
    assert "store_key" not in fetched.json()


@pytest.mark.asyncio
async def test_requires_authentication(client: AsyncClient):
    response = await client.get(f"{TENANTS}/")
    assert response.status_code == 401
    response = await client.get(f"{TENANTS}/", headers={"Authorization": "Bearer garbage"})
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_list_only_own_sites(
    client: AsyncClient, site: dict, owner_headers: dict, other_owner_headers: dict
):
    mine = await client.get(f"{TENANTS}/", headers=owner_headers)
    theirs = await client.get(f"{TENANTS}/", headers=other_owner_headers)
    assert [t["id"] for t in mine.json()] == [site["id"]]
    assert theirs.json() == []


@pytest.mark.asyncio
async def test_other_owner_is_forbidden(
    client: AsyncClient, site: dict, other_owner_headers: dict
):
    response = await client.get(f"{TENANTS}/{site['id']}", headers=other_owner_headers)
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_unknown_site(client: AsyncClient, owner_headers: dict):
    response = await client.get(f"{TENANTS}/does-not-exist", headers=owner_headers)
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_update_tenant(client: AsyncClient, site: dict, owner_headers: dict):
    response = await client.patch(
        f"{TENANTS}/{site['id']}", headers=owner_headers, json={"name": "Renamed"}
    )
    assert response.status_code == 200
    assert response.json()["name"] == "Renamed"
    assert response.json()["url"] == "https://example.com"


@pytest.mark.asyncio
async def test_attach_store(
    client: AsyncClient, unconfigured_site: dict, owner_headers: dict, store_url: str
):
    response = await client.put(
        f"{TENANTS}/{unconfigured_site['id']}/store",
        headers=owner_headers,
        json={"store_url": store_url, "store_key": "secret"},
    )
    assert response.status_code == 200
    data = response.json()
    assert data["is_configured"] is True
    assert data["store_url"] == store_url


@pytest.mark.asyncio
async def test_attach_store_without_schema_fails(
    client: AsyncClient, unconfigured_site: dict, owner_headers: dict, store_url: str
):
    response = await client.put(
        f"{TENANTS}/{unconfigured_site['id']}/store",
        headers=owner_headers,
        json={"store_url": store_url, "store_key": "secret", "create_schema": False},
    )
    assert response.status_code == 502

    fetched = await client.get(f"{TENANTS}/{unconfigured_site['id']}", headers=owner_headers)
    assert fetched.json()["is_configured"] is False


@pytest.mark.asyncio
async def test_attach_store_rejects_bad_url(
    client: AsyncClient, unconfigured_site: dict, owner_headers: dict
):
    response = await client.put(
        f"{TENANTS}/{unconfigured_site['id']}/store",
        headers=owner_headers,
        json={"store_url": "https:///nohost", "store_key": "secret"},
    )
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_delete_removes_site_and_its_events(
    client: AsyncClient, site: dict, owner_headers: dict, store_handle: StoreHandle, make_event
):
    async with open_event_store(store_handle) as store:
        await store.write(make_event(site["id"]))

    response = await client.delete(f"{TENANTS}/{site['id']}", headers=owner_headers)
    assert response.status_code == 204

    fetched = await client.get(f"{TENANTS}/{site['id']}", headers=owner_headers)
    assert fetched.status_code == 404

    now = datetime.now(timezone.utc)
    async with open_event_store(store_handle) as store:
        remaining = await store.query(site["id"], now - timedelta(days=1), now + timedelta(days=1))
    assert remaining == []


@pytest.mark.asyncio
async def test_delete_by_other_owner_is_forbidden(
    client: AsyncClient, site: dict, other_owner_headers: dict
):
    response = await client.delete(f"{TENANTS}/{site['id']}", headers=other_owner_headers)
    assert response.status_code == 403
