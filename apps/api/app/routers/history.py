"""History router - tank measurement history."""

from fastapi import APIRouter, Depends, Query

from app.core.config import settings
from app.core.deps import get_current_session, get_gateway
from app.db.gateway import PersistenceGateway
from app.schemas.auth import UserSession
from app.schemas.telemetry import TankMeasurementRead
from app.services import history_service

router = APIRouter(prefix="/history", tags=["History"])


@router.get("/tanks", response_model=list[TankMeasurementRead])
def list_tank_history(
    site_id: str | None = Query(None, alias="siteId"),
    tank_id: str | None = Query(None, alias="tankId"),
    gw: PersistenceGateway = Depends(get_gateway),
    session: UserSession = Depends(get_current_session),
) -> list[TankMeasurementRead]:
    """Newest readings first, capped at HISTORY_PAGE_LIMIT rows."""
    return history_service.list_tank_history(
        gw, session, settings.HISTORY_PAGE_LIMIT, site_id=site_id, tank_id=tank_id
    )
