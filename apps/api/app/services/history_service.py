"""Tank measurement history."""

from app.core.site_access import check_site_access, permitted_site_ids
from app.db.gateway import PersistenceGateway
from app.schemas.auth import UserSession
from app.schemas.telemetry import TankMeasurementRead


def list_tank_history(
    gw: PersistenceGateway,
    session: UserSession,
    limit: int,
    site_id: str | None = None,
    tank_id: str | None = None,
) -> list[TankMeasurementRead]:
    """Readings on the caller's permitted sites, newest first."""
    site_ids = permitted_site_ids(gw, session)
    if site_id:
        check_site_access(gw, session, site_id)
    return gw.list_measurements(site_ids, site_id=site_id, tank_id=tank_id, limit=limit)
