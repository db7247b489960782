"""Pump service - pumps, their A/B sides, and the sides' connection rows."""

from app.core.exceptions import ConflictError, NotFoundError
from app.core.notifications import NotificationBus, notify_site
from app.core.site_access import check_site_access
from app.db import identifiers
from app.db.enums import AuditAction, AuditEntityType, ConnectionKind, LinkStatus, PumpSideLetter
from app.db.gateway import PersistenceGateway
from app.schemas.auth import UserSession
from app.schemas.equipment import PumpCreate, PumpRead, PumpSideRead, PumpUpdate
from app.schemas.site import SiteRead
from app.schemas.telemetry import ConnectionStatusRead
from app.services import audit_service

SIDES = tuple(letter.value for letter in PumpSideLetter)


def list_pumps(gw: PersistenceGateway, site: SiteRead) -> list[PumpRead]:
    return gw.list_pumps([site.id])


def get_pump_in_scope(
    gw: PersistenceGateway,
    session: UserSession,
    pump_id: str,
) -> PumpRead:
    """Load a pump and check the caller may act on its site."""
    pump = gw.get_pump(pump_id)
    if pump is None:
        raise NotFoundError("Pump not found")
    check_site_access(gw, session, pump.site_id)
    return pump


def create_pump(
    gw: PersistenceGateway,
    session: UserSession,
    site: SiteRead,
    data: PumpCreate,
    bus: NotificationBus | None = None,
) -> PumpRead:
    """
    Create a pump with both sides (A and B) and a connection row per side.

    Raises:
        ConflictError: pump_number already used at this site
    """
    pump_id = identifiers.pump_id(site.id, data.pump_number)
    if gw.get_pump(pump_id) is not None:
        raise ConflictError(f"Pump {pump_id} already exists")

    sides = []
    for letter in SIDES:
        config = data.sides.get(letter)
        sides.append(
            PumpSideRead(
                id=identifiers.pump_side_id(pump_id, letter),
                pump_id=pump_id,
                side=letter,
                ip=(config.ip if config and config.ip else ""),
                port=(config.port if config and config.port else 5201),
                active=(config.active if config and config.active is not None else True),
            )
        )
    pump = PumpRead(
        id=pump_id,
        site_id=site.id,
        pump_number=data.pump_number,
        label=data.label,
        active=True,
        sides=sides,
    )

    with gw.transaction():
        gw.add_pump(pump)
        for side in sides:
            gw.add_connection_status(
                ConnectionStatusRead(
                    id=identifiers.pump_side_connection_id(side.id),
                    site_id=site.id,
                    kind=ConnectionKind.PUMP_SIDE,
                    target_id=side.id,
                    status=LinkStatus.DISCONNECTED,
                    last_seen_at=None,
                    details={"ip": side.ip, "port": side.port},
                )
            )

    audit_service.record(
        gw, session, AuditEntityType.PUMP, pump_id, AuditAction.CREATE,
        site_id=site.id, after=pump, reason=data.reason,
    )
    notify_site(bus, site.id, "config", "pump.created", pumpId=pump_id)
    return pump


def update_pump(
    gw: PersistenceGateway,
    session: UserSession,
    pump: PumpRead,
    data: PumpUpdate,
    bus: NotificationBus | None = None,
) -> PumpRead:
    values = data.model_dump(exclude_unset=True, exclude={"reason", "sides"})
    values = {k: v for k, v in values.items() if v is not None}
    side_ids = {side.side: side.id for side in pump.sides}

    with gw.transaction():
        if values:
            gw.update_pump(pump.id, values)
        for letter, config in data.sides.items():
            side_values = config.model_dump(exclude_unset=True)
            side_values = {k: v for k, v in side_values.items() if v is not None}
            if letter not in side_ids:
                raise NotFoundError(f"Pump side {letter} not found")
            if side_values:
                gw.update_pump_side(side_ids[letter], side_values)

    updated = gw.get_pump(pump.id)
    if updated is None:
        raise NotFoundError("Pump not found")

    audit_service.record(
        gw, session, AuditEntityType.PUMP, pump.id, AuditAction.UPDATE,
        site_id=pump.site_id, before=pump, after=updated, reason=data.reason,
    )
    notify_site(bus, pump.site_id, "config", "pump.updated", pumpId=pump.id)
    return updated


def delete_pump(
    gw: PersistenceGateway,
    session: UserSession,
    pump: PumpRead,
    reason: str | None = None,
    bus: NotificationBus | None = None,
) -> PumpRead:
    if not gw.delete_pump(pump.id):
        raise NotFoundError("Pump not found")

    audit_service.record(
        gw, session, AuditEntityType.PUMP, pump.id, AuditAction.DELETE,
        site_id=pump.site_id, before=pump, reason=reason,
    )
    notify_site(bus, pump.site_id, "config", "pump.deleted", pumpId=pump.id)
    return pump
