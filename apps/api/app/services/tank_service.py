"""Tank service."""

from app.core.exceptions import ConflictError, NotFoundError
from app.core.notifications import NotificationBus, notify_site
from app.core.site_access import check_site_access
from app.db import identifiers
from app.db.enums import AuditAction, AuditEntityType
from app.db.gateway import PersistenceGateway
from app.schemas.auth import UserSession
from app.schemas.equipment import TankCreate, TankRead, TankUpdate
from app.schemas.site import SiteRead
from app.services import audit_service


def list_tanks(gw: PersistenceGateway, site: SiteRead) -> list[TankRead]:
    return gw.list_tanks(site.id)


def get_tank_in_scope(gw: PersistenceGateway, session: UserSession, tank_id: str) -> TankRead:
    tank = gw.get_tank(tank_id)
    if tank is None:
        raise NotFoundError("Tank not found")
    check_site_access(gw, session, tank.site_id)
    return tank


def create_tank(
    gw: PersistenceGateway,
    session: UserSession,
    site: SiteRead,
    data: TankCreate,
    bus: NotificationBus | None = None,
) -> TankRead:
    """
    Raises:
        ConflictError: atg_tank_id already used at this site
    """
    tank_id = identifiers.tank_id(site.id, data.atg_tank_id)
    if gw.get_tank(tank_id) is not None:
        raise ConflictError(f"Tank {tank_id} already exists")

    tank = TankRead(
        id=tank_id,
        site_id=site.id,
        active=True,
        **data.model_dump(exclude={"reason"}),
    )
    gw.add_tank(tank)

    audit_service.record(
        gw, session, AuditEntityType.TANK, tank_id, AuditAction.CREATE,
        site_id=site.id, after=tank, reason=data.reason,
    )
    notify_site(bus, site.id, "config", "tank.created", tankId=tank_id)
    return tank


def update_tank(
    gw: PersistenceGateway,
    session: UserSession,
    tank: TankRead,
    data: TankUpdate,
    bus: NotificationBus | None = None,
) -> TankRead:
    values = data.model_dump(exclude_unset=True, exclude={"reason"})
    values = {k: v for k, v in values.items() if v is not None}

    updated = gw.update_tank(tank.id, values) if values else tank
    if updated is None:
        raise NotFoundError("Tank not found")

    audit_service.record(
        gw, session, AuditEntityType.TANK, tank.id, AuditAction.UPDATE,
        site_id=tank.site_id, before=tank, after=updated, reason=data.reason,
    )
    notify_site(bus, tank.site_id, "config", "tank.updated", tankId=tank.id)
    return updated


def delete_tank(
    gw: PersistenceGateway,
    session: UserSession,
    tank: TankRead,
    reason: str | None = None,
    bus: NotificationBus | None = None,
) -> TankRead:
    """Delete a tank and its measurement history."""
    if not gw.delete_tank(tank.id):
        raise NotFoundError("Tank not found")

    audit_service.record(
        gw, session, AuditEntityType.TANK, tank.id, AuditAction.DELETE,
        site_id=tank.site_id, before=tank, reason=reason,
    )
    notify_site(bus, tank.site_id, "config", "tank.deleted", tankId=tank.id)
    return tank
