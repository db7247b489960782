"""Tanks router - update and delete tanks (creation lives under /sites)."""

from fastapi import APIRouter, Depends, Query

from app.core.deps import get_bus, get_gateway, require_roles
from app.core.notifications import NotificationBus
from app.db.enums import ROLES_CAN_MANAGE_SITES
from app.db.gateway import PersistenceGateway
from app.schemas.auth import UserSession
from app.schemas.equipment import TankRead, TankUpdate
from app.services import tank_service

router = APIRouter(prefix="/tanks", tags=["Tanks"])


@router.patch("/{tank_id}", response_model=TankRead)
def update_tank(
    tank_id: str,
    body: TankUpdate,
    gw: PersistenceGateway = Depends(get_gateway),
    session: UserSession = Depends(require_roles(ROLES_CAN_MANAGE_SITES)),
    bus: NotificationBus | None = Depends(get_bus),
) -> TankRead:
    tank = tank_service.get_tank_in_scope(gw, session, tank_id)
    return tank_service.update_tank(gw, session, tank, body, bus)


@router.delete("/{tank_id}", response_model=TankRead)
def delete_tank(
    tank_id: str,
    reason: str | None = Query(None, max_length=500),
    gw: PersistenceGateway = Depends(get_gateway),
    session: UserSession = Depends(require_roles(ROLES_CAN_MANAGE_SITES)),
    bus: NotificationBus | None = Depends(get_bus),
) -> TankRead:
    """Delete a tank and its measurement history."""
    tank = tank_service.get_tank_in_scope(gw, session, tank_id)
    return tank_service.delete_tank(gw, session, tank, reason, bus)
