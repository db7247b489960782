"""Pumps router - update and delete pumps (creation lives under /sites)."""

from fastapi import APIRouter, Depends, Query

from app.core.deps import get_bus, get_gateway, require_roles
from app.core.notifications import NotificationBus
from app.db.enums import ROLES_CAN_MANAGE_SITES
from app.db.gateway import PersistenceGateway
from app.schemas.auth import UserSession
from app.schemas.equipment import PumpRead, PumpUpdate
from app.services import pump_service

router = APIRouter(prefix="/pumps", tags=["Pumps"])


@router.patch("/{pump_id}", response_model=PumpRead)
def update_pump(
    pump_id: str,
    body: PumpUpdate,
    gw: PersistenceGateway = Depends(get_gateway),
    session: UserSession = Depends(require_roles(ROLES_CAN_MANAGE_SITES)),
    bus: NotificationBus | None = Depends(get_bus),
) -> PumpRead:
    """Update label/active and per-side ip, port or active flags."""
    pump = pump_service.get_pump_in_scope(gw, session, pump_id)
    return pump_service.update_pump(gw, session, pump, body, bus)


@router.delete("/{pump_id}", response_model=PumpRead)
def delete_pump(
    pump_id: str,
    reason: str | None = Query(None, max_length=500),
    gw: PersistenceGateway = Depends(get_gateway),
    session: UserSession = Depends(require_roles(ROLES_CAN_MANAGE_SITES)),
    bus: NotificationBus | None = Depends(get_bus),
) -> PumpRead:
    pump = pump_service.get_pump_in_scope(gw, session, pump_id)
    return pump_service.delete_pump(gw, session, pump, reason, bus)
