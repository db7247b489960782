"""Tests for alert queries and the alert lifecycle."""

from datetime import datetime, timedelta, timezone

import pytest
from httpx import AsyncClient

from app.core.config import settings
from app.core.notifications import NotificationBus, site_channel
from app.db.enums import AlertSeverity, AlertSourceType, AlertState
from app.services import alert_service


def _raise(gw, site_id="site-1001", severity=AlertSeverity.CRITICAL, minutes_ago=0, **kwargs):
    alert = alert_service.new_alert(
        site_id,
        component=kwargs.pop("component", "printer"),
        severity=severity,
        message=kwargs.pop("message", "Paper out"),
        now=datetime.now(timezone.utc) - timedelta(minutes=minutes_ago),
        **kwargs,
    )
    return alert_service.raise_alert(gw, alert)


async def _summary(client: AsyncClient, headers: dict, site_id: str) -> dict:
    response = await client.get("/sites", headers=headers)
    return {s["id"]: s for s in response.json()}[site_id]


# =============================================================================
# Acknowledge
# =============================================================================

@pytest.mark.asyncio
async def test_ack_moves_critical_out_of_summary(client: AsyncClient, manager_auth, seeded):
    alert = _raise(seeded)

    before = await _summary(client, manager_auth.headers, "site-1001")
    assert before["critical_count"] >= 1

    response = await client.post(f"/alerts/{alert.id}/ack", headers=manager_auth.headers)
    assert response.status_code == 200
    data = response.json()
    assert data["state"] == "acknowledged"
    assert data["ack_by"] == "user-manager"
    assert data["ack_at"] is not None

    after = await _summary(client, manager_auth.headers, "site-1001")
    assert after["critical_count"] == before["critical_count"] - 1
    assert after["warn_count"] == before["warn_count"]


@pytest.mark.asyncio
async def test_repeated_ack_keeps_first_acknowledgment(
    client: AsyncClient, operator_auth, manager_auth, seeded, bus: NotificationBus
):
    subscription = bus.subscribe([site_channel("site-1001", "alerts")])

    first = await client.post("/alerts/alert-1/ack", headers=operator_auth.headers)
    second = await client.post("/alerts/alert-1/ack", headers=manager_auth.headers)

    assert first.status_code == second.status_code == 200
    assert second.json()["ack_by"] == "user-operator"
    assert second.json()["ack_at"] == first.json()["ack_at"]

    acks = [e for e in seeded.list_audit("org-demo", 300) if e.action == "acknowledge"]
    assert len(acks) == 1

    notification = await subscription.next(timeout=1)
    assert notification.event == "alert.acknowledged"
    assert notification.payload["alertId"] == "alert-1"
    assert await subscription.next(timeout=0.05) is None


@pytest.mark.asyncio
async def test_ack_outside_scope_is_forbidden(client: AsyncClient, operator_auth, seeded):
    alert = _raise(seeded, site_id="site-1002")
    response = await client.post(f"/alerts/{alert.id}/ack", headers=operator_auth.headers)
    assert response.status_code == 403
    assert seeded.get_alert(alert.id).state == AlertState.RAISED


@pytest.mark.asyncio
async def test_ack_unknown_alert(client: AsyncClient, manager_auth):
    response = await client.post("/alerts/alert-missing/ack", headers=manager_auth.headers)
    assert response.status_code == 404


# =============================================================================
# Clear
# =============================================================================

@pytest.mark.asyncio
async def test_clear_from_raised_and_repeat(client: AsyncClient, tech_auth, seeded):
    response = await client.post(
        "/alerts/alert-1/clear", json={"reason": "reader replaced"}, headers=tech_auth.headers
    )
    assert response.status_code == 200
    first = response.json()
    assert first["state"] == "cleared"
    assert first["cleared_at"] is not None
    assert first["ack_at"] is None

    response = await client.post("/alerts/alert-1/clear", headers=tech_auth.headers)
    assert response.status_code == 200
    assert response.json()["cleared_at"] == first["cleared_at"]

    entry = seeded.list_audit("org-demo", 1)[0]
    assert (entry.action, entry.reason) == ("clear", "reader replaced")


@pytest.mark.asyncio
async def test_ack_after_clear_is_a_no_op(client: AsyncClient, tech_auth):
    await client.post("/alerts/alert-1/clear", headers=tech_auth.headers)

    response = await client.post("/alerts/alert-1/ack", headers=tech_auth.headers)
    assert response.status_code == 200
    assert response.json()["state"] == "cleared"
    assert response.json()["ack_at"] is None


@pytest.mark.asyncio
async def test_clear_acknowledged_alert(client: AsyncClient, manager_auth):
    await client.post("/alerts/alert-1/ack", headers=manager_auth.headers)
    response = await client.post("/alerts/alert-1/clear", headers=manager_auth.headers)
    data = response.json()
    assert data["state"] == "cleared"
    assert data["ack_by"] == "user-manager"


@pytest.mark.asyncio
async def test_operator_cannot_clear(client: AsyncClient, operator_auth, seeded):
    response = await client.post("/alerts/alert-1/clear", headers=operator_auth.headers)
    assert response.status_code == 403
    assert seeded.get_alert("alert-1").state == AlertState.RAISED


def test_transition_table():
    assert alert_service.can_transition(AlertState.RAISED, AlertState.ACKNOWLEDGED)
    assert alert_service.can_transition(AlertState.ACKNOWLEDGED, AlertState.CLEARED)
    assert not alert_service.can_transition(AlertState.ACKNOWLEDGED, AlertState.RAISED)
    assert not alert_service.can_transition(AlertState.CLEARED, AlertState.ACKNOWLEDGED)
    assert set(alert_service.sources_for(AlertState.CLEARED)) == {
        AlertState.RAISED,
        AlertState.ACKNOWLEDGED,
    }


# =============================================================================
# Queries
# =============================================================================

@pytest.mark.asyncio
async def test_alert_filters_combine(client: AsyncClient, manager_auth, seeded):
    _raise(seeded, severity=AlertSeverity.WARN, component="printer",
           pump_id="pump-site-1001-1", side="B", source_type=AlertSourceType.PUMP_SIDE)
    _raise(seeded, site_id="site-1002", severity=AlertSeverity.WARN, component="cardreader")

    response = await client.get(
        "/alerts",
        params={"siteId": "site-1001", "severity": "warn", "pumpId": "pump-site-1001-1"},
        headers=manager_auth.headers,
    )
    assert response.status_code == 200
    assert len(response.json()) == 2

    response = await client.get(
        "/alerts",
        params={"siteId": "site-1001", "side": "B", "component": "printer"},
        headers=manager_auth.headers,
    )
    assert [a["side"] for a in response.json()] == ["B"]

    response = await client.get(
        "/alerts", params={"component": "cardreader"}, headers=manager_auth.headers
    )
    assert {a["site_id"] for a in response.json()} == {"site-1001", "site-1002"}

    response = await client.get("/alerts", params={"state": "cleared"}, headers=manager_auth.headers)
    assert response.json() == []


@pytest.mark.asyncio
async def test_alerts_scoped_to_permitted_sites(client: AsyncClient, operator_auth, seeded):
    _raise(seeded, site_id="site-1002")

    response = await client.get("/alerts", headers=operator_auth.headers)
    assert {a["site_id"] for a in response.json()} == {"site-1001"}

    response = await client.get(
        "/alerts", params={"siteId": "site-1002"}, headers=operator_auth.headers
    )
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_alerts_newest_first_and_capped(
    client: AsyncClient, manager_auth, seeded, monkeypatch
):
    older = _raise(seeded, minutes_ago=30)
    newest = _raise(seeded, minutes_ago=1)
    monkeypatch.setattr(settings, "ALERTS_PAGE_LIMIT", 2)

    response = await client.get("/alerts", headers=manager_auth.headers)
    ids = [a["id"] for a in response.json()]
    # alert-1 was seeded just now, after both backdated alerts
    assert ids == ["alert-1", newest.id]
    assert older.id not in ids


@pytest.mark.asyncio
async def test_alerts_reject_unknown_state(client: AsyncClient, manager_auth):
    response = await client.get("/alerts", params={"state": "open"}, headers=manager_auth.headers)
    assert response.status_code == 422
