"""Site service - sites, their integration settings, and site detail."""

from datetime import datetime, timezone

from app.core.exceptions import ConflictError, NotFoundError
from app.core.notifications import NotificationBus, notify_site
from app.core.site_access import permitted_site_ids
from app.db import identifiers
from app.db.enums import AuditAction, AuditEntityType, ConnectionKind, LinkStatus
from app.db.gateway import PersistenceGateway
from app.schemas.auth import UserSession
from app.schemas.site import (
    SiteCreate,
    SiteDetail,
    SiteIntegrationRead,
    SiteIntegrationUpdate,
    SiteRead,
    SiteSummary,
    SiteUpdate,
)
from app.schemas.telemetry import ConnectionStatusRead
from app.services import audit_service, site_summary_service


def list_summaries(gw: PersistenceGateway, session: UserSession) -> list[SiteSummary]:
    """Summaries of every site the caller may see, ordered by site_code."""
    return site_summary_service.summarize(gw, session.org_id, permitted_site_ids(gw, session))


def get_detail(gw: PersistenceGateway, site: SiteRead) -> SiteDetail:
    """Summary plus integration, tanks and pumps (with sides)."""
    summary = site_summary_service.summarize_sites(gw, [site])[0]
    return SiteDetail(
        **summary.model_dump(),
        integration=gw.get_integration(site.id),
        tanks=gw.list_tanks(site.id),
        pumps=gw.list_pumps([site.id]),
    )


def create_site(
    gw: PersistenceGateway,
    session: UserSession,
    data: SiteCreate,
    bus: NotificationBus | None = None,
) -> SiteRead:
    """
    Create a site with default integration settings and its ATG link row.

    The three rows are written in one transaction.

    Raises:
        ConflictError: site_code already maps to an existing site
    """
    site_id = identifiers.site_id(data.site_code)
    if gw.get_site(site_id) is not None:
        raise ConflictError(f"Site {site_id} already exists")

    now = datetime.now(timezone.utc)
    site = SiteRead(
        id=site_id,
        org_id=session.org_id,
        created_at=now,
        updated_at=now,
        **data.model_dump(exclude={"reason"}),
    )
    with gw.transaction():
        gw.add_site(site)
        gw.add_integration(SiteIntegrationRead(site_id=site_id))
        gw.add_connection_status(
            ConnectionStatusRead(
                id=identifiers.atg_connection_id(site_id),
                site_id=site_id,
                kind=ConnectionKind.ATG,
                target_id=None,
                status=LinkStatus.DISCONNECTED,
                last_seen_at=None,
            )
        )

    audit_service.record(
        gw, session, AuditEntityType.SITE, site_id, AuditAction.CREATE,
        site_id=site_id, after=site, reason=data.reason,
    )
    notify_site(bus, site_id, "config", "site.created")
    return site


def update_site(
    gw: PersistenceGateway,
    session: UserSession,
    site: SiteRead,
    data: SiteUpdate,
    bus: NotificationBus | None = None,
) -> SiteRead:
    values = data.model_dump(exclude_unset=True, exclude={"reason"})
    values = {k: v for k, v in values.items() if v is not None}
    values["updated_at"] = datetime.now(timezone.utc)

    updated = gw.update_site(site.id, values)
    if updated is None:
        raise NotFoundError("Site not found")

    audit_service.record(
        gw, session, AuditEntityType.SITE, site.id, AuditAction.UPDATE,
        site_id=site.id, before=site, after=updated, reason=data.reason,
    )
    notify_site(bus, site.id, "config", "site.updated")
    return updated


def delete_site(
    gw: PersistenceGateway,
    session: UserSession,
    site: SiteRead,
    reason: str | None = None,
    bus: NotificationBus | None = None,
) -> SiteRead:
    """Delete the site and everything it owns. Audit history is kept."""
    if not gw.delete_site(site.id):
        raise NotFoundError("Site not found")

    audit_service.record(
        gw, session, AuditEntityType.SITE, site.id, AuditAction.DELETE,
        site_id=site.id, before=site, reason=reason,
    )
    notify_site(bus, site.id, "config", "site.deleted")
    return site


# =============================================================================
# Integration settings
# =============================================================================

def get_integration(gw: PersistenceGateway, site: SiteRead) -> SiteIntegrationRead:
    integration = gw.get_integration(site.id)
    if integration is None:
        raise NotFoundError("Integration not found")
    return integration


def update_integration(
    gw: PersistenceGateway,
    session: UserSession,
    site: SiteRead,
    data: SiteIntegrationUpdate,
    bus: NotificationBus | None = None,
) -> SiteIntegrationRead:
    before = get_integration(gw, site)
    values = data.model_dump(exclude_unset=True, exclude={"reason"})
    values = {k: v for k, v in values.items() if v is not None}

    updated = gw.update_integration(site.id, values) if values else before
    if updated is None:
        raise NotFoundError("Integration not found")

    audit_service.record(
        gw, session, AuditEntityType.SITE_INTEGRATION, site.id, AuditAction.UPDATE,
        site_id=site.id, before=before, after=updated, reason=data.reason,
    )
    notify_site(bus, site.id, "config", "integration.updated")
    return updated
