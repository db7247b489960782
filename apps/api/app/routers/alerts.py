"""Alerts router - alarm event queries and lifecycle actions."""

from fastapi import APIRouter, Depends, Query

from app.core.config import settings
from app.core.deps import get_bus, get_current_session, get_gateway, require_roles
from app.core.notifications import NotificationBus
from app.db.enums import AlertSeverity, AlertState, PumpSideLetter, ROLES_CAN_CLEAR_ALERTS
from app.db.gateway import PersistenceGateway
from app.schemas.alert import AlarmEventRead, AlertAction, AlertFilters
from app.schemas.auth import UserSession
from app.services import alert_service

router = APIRouter(prefix="/alerts", tags=["Alerts"])


@router.get("", response_model=list[AlarmEventRead])
def list_alerts(
    site_id: str | None = Query(None, alias="siteId"),
    state: AlertState | None = Query(None),
    severity: AlertSeverity | None = Query(None),
    component: str | None = Query(None),
    pump_id: str | None = Query(None, alias="pumpId"),
    side: PumpSideLetter | None = Query(None),
    gw: PersistenceGateway = Depends(get_gateway),
    session: UserSession = Depends(get_current_session),
) -> list[AlarmEventRead]:
    """
    Alerts on the caller's permitted sites, newest first.

    Filters combine with AND; the result is capped at ALERTS_PAGE_LIMIT rows.
    """
    filters = AlertFilters(
        site_id=site_id,
        state=state,
        severity=severity,
        component=component,
        pump_id=pump_id,
        side=side.value if side else None,
    )
    return alert_service.list_alerts(gw, session, filters, settings.ALERTS_PAGE_LIMIT)


@router.post("/{alert_id}/ack", response_model=AlarmEventRead)
def acknowledge_alert(
    alert_id: str,
    body: AlertAction | None = None,
    gw: PersistenceGateway = Depends(get_gateway),
    session: UserSession = Depends(get_current_session),
    bus: NotificationBus | None = Depends(get_bus),
) -> AlarmEventRead:
    """Acknowledge an alert. Repeating it returns the stored record unchanged."""
    alert = alert_service.get_alert_in_scope(gw, session, alert_id)
    reason = body.reason if body else None
    return alert_service.acknowledge(gw, session, alert, bus, reason)


@router.post("/{alert_id}/clear", response_model=AlarmEventRead)
def clear_alert(
    alert_id: str,
    body: AlertAction | None = None,
    gw: PersistenceGateway = Depends(get_gateway),
    session: UserSession = Depends(require_roles(ROLES_CAN_CLEAR_ALERTS)),
    bus: NotificationBus | None = Depends(get_bus),
) -> AlarmEventRead:
    alert = alert_service.get_alert_in_scope(gw, session, alert_id)
    reason = body.reason if body else None
    return alert_service.clear(gw, session, alert, bus, reason)
