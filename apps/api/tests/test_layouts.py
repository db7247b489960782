"""Tests for forecourt layout versioning."""

import pytest
from httpx import AsyncClient

SCENE = {"width": 800, "height": 480, "objects": [{"id": "pump-1", "type": "pump", "x": 80, "y": 160}]}


@pytest.mark.asyncio
async def test_seeded_site_has_initial_layout(client: AsyncClient, operator_auth):
    response = await client.get("/sites/site-1001/layout", headers=operator_auth.headers)
    assert response.status_code == 200
    data = response.json()
    assert data["id"] == "layout-site-1001-v1"
    assert data["name"] == "Initial Layout"
    assert data["is_active"] is True


@pytest.mark.asyncio
async def test_publishing_appends_a_version(client: AsyncClient, manager_auth, seeded):
    response = await client.post(
        "/sites/site-1001/layout", json={"scene": SCENE}, headers=manager_auth.headers
    )
    assert response.status_code == 201
    data = response.json()
    assert data["id"] == "layout-site-1001-v2"
    assert data["version"] == 2
    assert data["name"] == "Layout v2"
    assert data["created_by"] == "user-manager"

    response = await client.post(
        "/sites/site-1001/layout",
        json={"json": SCENE, "name": "Canopy rework"},
        headers=manager_auth.headers,
    )
    assert response.json()["version"] == 3

    layouts = seeded.list_layouts("site-1001")
    assert [layout.version for layout in layouts] == [3, 2, 1]
    assert [layout.is_active for layout in layouts] == [True, False, False]
    # Earlier versions are kept as published
    assert layouts[2].name == "Initial Layout"
    assert layouts[1].scene == SCENE

    response = await client.get("/sites/site-1001/layout", headers=manager_auth.headers)
    assert response.json()["name"] == "Canopy rework"

    response = await client.get("/sites/site-1001/layouts", headers=manager_auth.headers)
    assert [layout["version"] for layout in response.json()] == [3, 2, 1]


@pytest.mark.asyncio
async def test_missing_active_layout_is_not_found(client: AsyncClient, manager_auth):
    await client.post("/sites", json={"site_code": "2001", "name": "Northgate"}, headers=manager_auth.headers)
    response = await client.get("/sites/site-2001/layout", headers=manager_auth.headers)
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_operator_cannot_publish(client: AsyncClient, operator_auth, seeded):
    response = await client.post(
        "/sites/site-1001/layout", json={"scene": SCENE}, headers=operator_auth.headers
    )
    assert response.status_code == 403
    assert len(seeded.list_layouts("site-1001")) == 1
