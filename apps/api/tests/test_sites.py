"""Tests for site endpoints: visibility, summaries, CRUD and cascade delete."""

import pytest
from httpx import AsyncClient

from app.db.enums import AlertSeverity, AlertState
from app.schemas.alert import AlertFilters
from app.schemas.equipment import PumpRead, PumpSideRead

# Seeded in conftest under a different org
FOREIGN_SITE_ID = "site-9001"


# =============================================================================
# Visibility
# =============================================================================

@pytest.mark.asyncio
async def test_operator_sees_only_assigned_site(client: AsyncClient, operator_auth):
    response = await client.get("/sites", headers=operator_auth.headers)
    assert response.status_code == 200
    assert [s["id"] for s in response.json()] == ["site-1001"]


@pytest.mark.asyncio
async def test_manager_sees_every_org_site_regardless_of_assignments(
    client: AsyncClient, manager_auth
):
    assert manager_auth.session.site_ids == []
    response = await client.get("/sites", headers=manager_auth.headers)
    assert response.status_code == 200
    ids = [s["id"] for s in response.json()]
    # Ordered by site code; the other org's site never shows up
    assert ids == ["site-1001", "site-1002"]
    assert FOREIGN_SITE_ID not in ids


@pytest.mark.asyncio
async def test_sites_requires_credentials(client: AsyncClient):
    response = await client.get("/sites")
    assert response.status_code == 401
    assert response.json()["kind"] == "unauthorized"


@pytest.mark.asyncio
async def test_summary_counts_for_seeded_site(client: AsyncClient, manager_auth):
    response = await client.get("/sites", headers=manager_auth.headers)
    summary = {s["id"]: s for s in response.json()}["site-1001"]

    assert summary["warn_count"] == 1
    assert summary["critical_count"] == 0
    assert summary["pump_sides_expected"] == 8
    assert summary["pump_sides_connected"] == 8
    assert summary["pump_sides_connected"] <= summary["pump_sides_expected"]
    assert summary["atg_last_seen_at"] is not None
    assert summary["atg_stale"] is False


@pytest.mark.asyncio
async def test_side_without_link_row_is_expected_but_not_connected(
    client: AsyncClient, manager_auth, seeded
):
    # Written straight to the store: no connection status row for the side
    seeded.add_pump(
        PumpRead(
            id="pump-site-1002-7",
            site_id="site-1002",
            pump_number=7,
            label="Pump 7",
            sides=[PumpSideRead(id="ps-pump-site-1002-7-a", pump_id="pump-site-1002-7", side="A")],
        )
    )

    response = await client.get("/sites/site-1002", headers=manager_auth.headers)
    summary = response.json()
    assert summary["pump_sides_expected"] == 5
    assert summary["pump_sides_connected"] == 4


# =============================================================================
# Detail & access
# =============================================================================

@pytest.mark.asyncio
async def test_site_detail_includes_equipment(client: AsyncClient, tech_auth):
    response = await client.get("/sites/site-1001", headers=tech_auth.headers)
    assert response.status_code == 200
    data = response.json()
    assert data["site_code"] == "1001"
    assert data["integration"]["atg_host"] == "10.10.1.20"
    assert len(data["tanks"]) == 3
    assert len(data["pumps"]) == 4
    assert {side["side"] for side in data["pumps"][0]["sides"]} == {"A", "B"}


@pytest.mark.asyncio
async def test_operator_forbidden_outside_scope(client: AsyncClient, operator_auth):
    response = await client.get("/sites/site-1002", headers=operator_auth.headers)
    assert response.status_code == 403
    assert response.json()["kind"] == "forbidden"


@pytest.mark.asyncio
async def test_scoped_role_gets_forbidden_for_missing_site(client: AsyncClient, tech_auth):
    response = await client.get("/sites/site-4040", headers=tech_auth.headers)
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_manager_gets_not_found_for_missing_or_foreign_site(
    client: AsyncClient, manager_auth
):
    response = await client.get("/sites/site-4040", headers=manager_auth.headers)
    assert response.status_code == 404
    assert response.json()["kind"] == "not_found"

    response = await client.get(f"/sites/{FOREIGN_SITE_ID}", headers=manager_auth.headers)
    assert response.status_code == 404


# =============================================================================
# Create / update
# =============================================================================

@pytest.mark.asyncio
async def test_create_site_derives_id_and_defaults(client: AsyncClient, manager_auth, seeded):
    response = await client.post(
        "/sites",
        json={"site_code": "2001", "name": "Northgate", "region": "Northeast"},
        headers=manager_auth.headers,
    )
    assert response.status_code == 201
    data = response.json()
    assert data["id"] == "site-2001"
    assert data["org_id"] == "org-demo"
    assert data["timezone"] == "America/New_York"

    integration = seeded.get_integration("site-2001")
    assert integration is not None
    assert integration.atg_stale_sec == 180

    # No ATG reading yet, so the summary reports it stale
    response = await client.get("/sites/site-2001", headers=manager_auth.headers)
    detail = response.json()
    assert detail["atg_last_seen_at"] is None
    assert detail["atg_stale"] is True
    assert detail["pump_sides_expected"] == 0


@pytest.mark.asyncio
async def test_create_site_with_taken_code_conflicts_without_writing(
    client: AsyncClient, manager_auth, seeded
):
    audit_before = len(seeded.list_audit("org-demo", 300))

    response = await client.post(
        "/sites",
        json={"site_code": "1001", "name": "Imposter"},
        headers=manager_auth.headers,
    )

    assert response.status_code == 409
    assert response.json()["kind"] == "conflict"
    site = seeded.get_site("site-1001")
    assert site.name == "Riverside Fuel"
    assert len(seeded.list_audit("org-demo", 300)) == audit_before


@pytest.mark.asyncio
async def test_operator_cannot_create_site(client: AsyncClient, operator_auth):
    response = await client.post(
        "/sites",
        json={"site_code": "3001", "name": "Nope"},
        headers=operator_auth.headers,
    )
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_create_site_rejects_bad_body(client: AsyncClient, manager_auth):
    response = await client.post("/sites", json={"name": "No code"}, headers=manager_auth.headers)
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_update_site_records_audit(client: AsyncClient, tech_auth, seeded):
    response = await client.patch(
        "/sites/site-1002",
        json={"name": "Hillcrest Express 24h", "reason": "rebrand"},
        headers=tech_auth.headers,
    )
    assert response.status_code == 200
    assert response.json()["name"] == "Hillcrest Express 24h"
    assert response.json()["site_code"] == "1002"

    entry = seeded.list_audit("org-demo", 1)[0]
    assert entry.entity_type == "site"
    assert entry.action == "update"
    assert entry.user_id == "user-tech"
    assert entry.reason == "rebrand"
    assert entry.before_json["name"] == "Hillcrest Express"
    assert entry.after_json["name"] == "Hillcrest Express 24h"


@pytest.mark.asyncio
async def test_integration_settings_round_trip(client: AsyncClient, manager_auth):
    response = await client.patch(
        "/sites/site-1001/integrations",
        json={"atg_host": "10.10.1.99", "atg_stale_sec": 600},
        headers=manager_auth.headers,
    )
    assert response.status_code == 200
    assert response.json()["atg_host"] == "10.10.1.99"

    response = await client.get("/sites/site-1001/integrations", headers=manager_auth.headers)
    data = response.json()
    assert data["atg_stale_sec"] == 600
    assert data["atg_port"] == 10001


@pytest.mark.asyncio
async def test_operator_cannot_change_integrations(client: AsyncClient, operator_auth):
    response = await client.patch(
        "/sites/site-1001/integrations",
        json={"atg_host": "1.2.3.4"},
        headers=operator_auth.headers,
    )
    assert response.status_code == 403


# =============================================================================
# Delete
# =============================================================================

@pytest.mark.asyncio
async def test_delete_site_cascades_owned_rows(client: AsyncClient, manager_auth, seeded):
    response = await client.delete(
        "/sites/site-1001", params={"reason": "closed"}, headers=manager_auth.headers
    )
    assert response.status_code == 200
    assert response.json()["id"] == "site-1001"

    assert seeded.get_site("site-1001") is None
    assert seeded.get_integration("site-1001") is None
    assert seeded.list_tanks("site-1001") == []
    assert seeded.list_pumps(["site-1001"]) == []
    assert seeded.list_layouts("site-1001") == []
    assert seeded.list_connection_status(["site-1001"]) == []
    assert seeded.list_alerts(["site-1001"], AlertFilters(), 500) == []
    assert seeded.list_measurements(["site-1001"], limit=300) == []
    assert "site-1001" not in seeded.get_user("user-operator").site_ids

    # The other site is untouched and the audit trail survives
    assert seeded.get_site("site-1002") is not None
    entry = seeded.list_audit("org-demo", 1)[0]
    assert (entry.entity_id, entry.action, entry.reason) == ("site-1001", "delete", "closed")

    response = await client.get("/sites", headers=manager_auth.headers)
    assert [s["id"] for s in response.json()] == ["site-1002"]


@pytest.mark.asyncio
async def test_deleted_site_summary_counts_no_longer_include_alerts(seeded):
    counts = seeded.count_raised_alerts(["site-1001"])
    assert counts["site-1001"][AlertSeverity.WARN] == 1
    alerts = seeded.list_alerts(["site-1001"], AlertFilters(state=AlertState.RAISED), 10)
    assert [a.id for a in alerts] == ["alert-1"]

    seeded.delete_site("site-1001")
    assert seeded.count_raised_alerts(["site-1001"]) == {}
