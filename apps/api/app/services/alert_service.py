"""
Alarm event service.

Lifecycle: raised -> acknowledged -> cleared, or raised -> cleared. Nothing
moves an alert back to raised. Transitions are compare-and-set updates on the
current state, so a repeated or racing acknowledge/clear is a no-op that
returns the stored record and never overwrites ack_at/ack_by.
"""

from datetime import datetime, timezone
from uuid import uuid4

from app.core.exceptions import NotFoundError, ValidationFailedError
from app.core.notifications import NotificationBus, notify_site
from app.core.site_access import check_site_access, permitted_site_ids
from app.db.enums import (
    AlertSeverity,
    AlertSourceType,
    AlertState,
    AuditAction,
    AuditEntityType,
)
from app.db.gateway import PersistenceGateway
from app.schemas.alert import AlarmEventRead, AlertFilters
from app.schemas.auth import UserSession
from app.services import audit_service

# state -> states it may move to
TRANSITIONS: dict[AlertState, frozenset[AlertState]] = {
    AlertState.RAISED: frozenset({AlertState.ACKNOWLEDGED, AlertState.CLEARED}),
    AlertState.ACKNOWLEDGED: frozenset({AlertState.CLEARED}),
    AlertState.CLEARED: frozenset(),
}


def can_transition(current: AlertState, target: AlertState) -> bool:
    return target in TRANSITIONS[current]


def sources_for(target: AlertState) -> list[AlertState]:
    return [state for state, targets in TRANSITIONS.items() if target in targets]


def new_alert(
    site_id: str,
    *,
    component: str,
    severity: AlertSeverity,
    message: str,
    source_type: AlertSourceType = AlertSourceType.SYSTEM,
    code: str | None = None,
    tank_id: str | None = None,
    pump_id: str | None = None,
    side: str | None = None,
    raw_payload: str | None = None,
    alert_id: str | None = None,
    now: datetime | None = None,
) -> AlarmEventRead:
    """Build an alert in its initial state (raised)."""
    now = now or datetime.now(timezone.utc)
    return AlarmEventRead(
        id=alert_id or f"alert-{uuid4().hex}",
        site_id=site_id,
        source_type=source_type.value,
        tank_id=tank_id,
        pump_id=pump_id,
        side=side,
        component=component,
        severity=severity,
        state=AlertState.RAISED,
        code=code,
        message=message,
        raw_payload=raw_payload,
        raised_at=now,
        created_at=now,
    )


def raise_alert(
    gw: PersistenceGateway,
    alert: AlarmEventRead,
    bus: NotificationBus | None = None,
) -> AlarmEventRead:
    if alert.state != AlertState.RAISED:
        raise ValidationFailedError("New alerts must start in the raised state")
    gw.add_alert(alert)
    notify_site(bus, alert.site_id, "alerts", "alert.raised", alertId=alert.id, severity=alert.severity.value)
    return alert


def list_alerts(
    gw: PersistenceGateway,
    session: UserSession,
    filters: AlertFilters,
    limit: int,
) -> list[AlarmEventRead]:
    """Alerts on the caller's permitted sites, newest first, at most limit rows."""
    site_ids = permitted_site_ids(gw, session)
    if filters.site_id:
        check_site_access(gw, session, filters.site_id)
    return gw.list_alerts(site_ids, filters, limit)


def get_alert_in_scope(
    gw: PersistenceGateway,
    session: UserSession,
    alert_id: str,
) -> AlarmEventRead:
    alert = gw.get_alert(alert_id)
    if alert is None:
        raise NotFoundError("Alert not found")
    check_site_access(gw, session, alert.site_id)
    return alert


def _transition(
    gw: PersistenceGateway,
    session: UserSession,
    alert: AlarmEventRead,
    target: AlertState,
    values: dict,
    action: AuditAction,
    event: str,
    bus: NotificationBus | None,
    reason: str | None,
) -> AlarmEventRead:
    if not can_transition(alert.state, target):
        return alert

    changed = gw.transition_alert(alert.id, sources_for(target), target, values)
    updated = gw.get_alert(alert.id)
    if updated is None:
        raise NotFoundError("Alert not found")
    if not changed:
        # Lost a race, or already past this state
        return updated

    audit_service.record(
        gw, session, AuditEntityType.ALARM_EVENT, alert.id, action,
        site_id=alert.site_id, before=alert, after=updated, reason=reason,
    )
    notify_site(bus, alert.site_id, "alerts", event, alertId=alert.id)
    return updated


def acknowledge(
    gw: PersistenceGateway,
    session: UserSession,
    alert: AlarmEventRead,
    bus: NotificationBus | None = None,
    reason: str | None = None,
) -> AlarmEventRead:
    """raised -> acknowledged. Any role with access to the alert's site."""
    return _transition(
        gw, session, alert, AlertState.ACKNOWLEDGED,
        {"ack_at": datetime.now(timezone.utc), "ack_by": session.user_id},
        AuditAction.ACKNOWLEDGE, "alert.acknowledged", bus, reason,
    )


def clear(
    gw: PersistenceGateway,
    session: UserSession,
    alert: AlarmEventRead,
    bus: NotificationBus | None = None,
    reason: str | None = None,
) -> AlarmEventRead:
    """raised|acknowledged -> cleared."""
    return _transition(
        gw, session, alert, AlertState.CLEARED,
        {"cleared_at": datetime.now(timezone.utc)},
        AuditAction.CLEAR, "alert.cleared", bus, reason,
    )
