"""Sites router - sites, integration settings, and site-owned pumps, tanks and layouts."""

from fastapi import APIRouter, Depends, Query

from app.core.deps import get_bus, get_current_session, get_gateway, get_site_in_scope, require_roles
from app.core.notifications import NotificationBus
from app.db.enums import ROLES_CAN_MANAGE_SITES
from app.db.gateway import PersistenceGateway
from app.schemas.auth import UserSession
from app.schemas.equipment import PumpCreate, PumpRead, TankCreate, TankRead
from app.schemas.layout import LayoutCreate, LayoutRead
from app.schemas.site import (
    SiteCreate,
    SiteDetail,
    SiteIntegrationRead,
    SiteIntegrationUpdate,
    SiteRead,
    SiteSummary,
    SiteUpdate,
)
from app.services import layout_service, pump_service, site_service, tank_service

router = APIRouter(prefix="/sites", tags=["Sites"])

can_manage = require_roles(ROLES_CAN_MANAGE_SITES)


# =============================================================================
# Sites
# =============================================================================

@router.get("", response_model=list[SiteSummary])
def list_sites(
    gw: PersistenceGateway = Depends(get_gateway),
    session: UserSession = Depends(get_current_session),
) -> list[SiteSummary]:
    """Summaries of every site the caller may see, ordered by site code."""
    return site_service.list_summaries(gw, session)


@router.post("", response_model=SiteRead, status_code=201)
def create_site(
    body: SiteCreate,
    gw: PersistenceGateway = Depends(get_gateway),
    session: UserSession = Depends(can_manage),
    bus: NotificationBus | None = Depends(get_bus),
) -> SiteRead:
    return site_service.create_site(gw, session, body, bus)


@router.get("/{site_id}", response_model=SiteDetail)
def get_site(
    site: SiteRead = Depends(get_site_in_scope),
    gw: PersistenceGateway = Depends(get_gateway),
) -> SiteDetail:
    return site_service.get_detail(gw, site)


@router.patch("/{site_id}", response_model=SiteRead)
def update_site(
    body: SiteUpdate,
    site: SiteRead = Depends(get_site_in_scope),
    gw: PersistenceGateway = Depends(get_gateway),
    session: UserSession = Depends(can_manage),
    bus: NotificationBus | None = Depends(get_bus),
) -> SiteRead:
    return site_service.update_site(gw, session, site, body, bus)


@router.delete("/{site_id}", response_model=SiteRead)
def delete_site(
    reason: str | None = Query(None, max_length=500),
    site: SiteRead = Depends(get_site_in_scope),
    gw: PersistenceGateway = Depends(get_gateway),
    session: UserSession = Depends(can_manage),
    bus: NotificationBus | None = Depends(get_bus),
) -> SiteRead:
    """Delete the site and everything it owns. Returns the deleted site."""
    return site_service.delete_site(gw, session, site, reason, bus)


# =============================================================================
# Integration settings
# =============================================================================

@router.get("/{site_id}/integrations", response_model=SiteIntegrationRead)
def get_integration(
    site: SiteRead = Depends(get_site_in_scope),
    gw: PersistenceGateway = Depends(get_gateway),
) -> SiteIntegrationRead:
    return site_service.get_integration(gw, site)


@router.patch("/{site_id}/integrations", response_model=SiteIntegrationRead)
def update_integration(
    body: SiteIntegrationUpdate,
    site: SiteRead = Depends(get_site_in_scope),
    gw: PersistenceGateway = Depends(get_gateway),
    session: UserSession = Depends(can_manage),
    bus: NotificationBus | None = Depends(get_bus),
) -> SiteIntegrationRead:
    return site_service.update_integration(gw, session, site, body, bus)


# =============================================================================
# Pumps & tanks
# =============================================================================

@router.get("/{site_id}/pumps", response_model=list[PumpRead])
def list_pumps(
    site: SiteRead = Depends(get_site_in_scope),
    gw: PersistenceGateway = Depends(get_gateway),
) -> list[PumpRead]:
    return pump_service.list_pumps(gw, site)


@router.post("/{site_id}/pumps", response_model=PumpRead, status_code=201)
def create_pump(
    body: PumpCreate,
    site: SiteRead = Depends(get_site_in_scope),
    gw: PersistenceGateway = Depends(get_gateway),
    session: UserSession = Depends(can_manage),
    bus: NotificationBus | None = Depends(get_bus),
) -> PumpRead:
    """Create a pump; sides A and B are always created with it."""
    return pump_service.create_pump(gw, session, site, body, bus)


@router.get("/{site_id}/tanks", response_model=list[TankRead])
def list_tanks(
    site: SiteRead = Depends(get_site_in_scope),
    gw: PersistenceGateway = Depends(get_gateway),
) -> list[TankRead]:
    return tank_service.list_tanks(gw, site)


@router.post("/{site_id}/tanks", response_model=TankRead, status_code=201)
def create_tank(
    body: TankCreate,
    site: SiteRead = Depends(get_site_in_scope),
    gw: PersistenceGateway = Depends(get_gateway),
    session: UserSession = Depends(can_manage),
    bus: NotificationBus | None = Depends(get_bus),
) -> TankRead:
    return tank_service.create_tank(gw, session, site, body, bus)


# =============================================================================
# Layouts
# =============================================================================

@router.get("/{site_id}/layout", response_model=LayoutRead)
def get_active_layout(
    site: SiteRead = Depends(get_site_in_scope),
    gw: PersistenceGateway = Depends(get_gateway),
) -> LayoutRead:
    return layout_service.get_active_layout(gw, site)


@router.post("/{site_id}/layout", response_model=LayoutRead, status_code=201)
def create_layout_version(
    body: LayoutCreate,
    site: SiteRead = Depends(get_site_in_scope),
    gw: PersistenceGateway = Depends(get_gateway),
    session: UserSession = Depends(can_manage),
    bus: NotificationBus | None = Depends(get_bus),
) -> LayoutRead:
    """Publish a new layout version. Existing versions are never modified."""
    return layout_service.create_layout_version(gw, session, site, body, bus)


@router.get("/{site_id}/layouts", response_model=list[LayoutRead])
def list_layouts(
    site: SiteRead = Depends(get_site_in_scope),
    gw: PersistenceGateway = Depends(get_gateway),
) -> list[LayoutRead]:
    return layout_service.list_layouts(gw, site)
