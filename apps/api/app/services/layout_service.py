"""
Forecourt layout versioning.

Publishing never edits an existing version: it appends max(version) + 1 and
makes it the only active row for the site, all in one transaction.
"""

from datetime import datetime, timezone

from app.core.exceptions import NotFoundError
from app.core.notifications import NotificationBus, notify_site
from app.db import identifiers
from app.db.enums import AuditAction, AuditEntityType
from app.db.gateway import PersistenceGateway
from app.schemas.auth import UserSession
from app.schemas.layout import LayoutCreate, LayoutRead
from app.schemas.site import SiteRead
from app.services import audit_service


def default_layout_name(version: int) -> str:
    return f"Layout v{version}"


def get_active_layout(gw: PersistenceGateway, site: SiteRead) -> LayoutRead:
    layout = gw.get_active_layout(site.id)
    if layout is None:
        raise NotFoundError("Layout not found")
    return layout


def list_layouts(gw: PersistenceGateway, site: SiteRead) -> list[LayoutRead]:
    return gw.list_layouts(site.id)


def publish_layout(
    gw: PersistenceGateway,
    created_by: str,
    site_id: str,
    scene: dict,
    name: str | None = None,
) -> LayoutRead:
    """Append the next version for the site and make it the active one."""
    with gw.transaction():
        version = gw.max_layout_version(site_id) + 1
        layout = LayoutRead(
            id=identifiers.layout_id(site_id, version),
            site_id=site_id,
            version=version,
            name=name or default_layout_name(version),
            scene=scene,
            created_by=created_by,
            created_at=datetime.now(timezone.utc),
            is_active=True,
        )
        gw.deactivate_layouts(site_id)
        gw.add_layout(layout)
    return layout


def create_layout_version(
    gw: PersistenceGateway,
    session: UserSession,
    site: SiteRead,
    data: LayoutCreate,
    bus: NotificationBus | None = None,
) -> LayoutRead:
    layout = publish_layout(gw, session.user_id, site.id, data.scene, data.name)

    audit_service.record(
        gw, session, AuditEntityType.FORECOURT_LAYOUT, layout.id, AuditAction.CREATE_VERSION,
        site_id=site.id, after=layout, reason=data.reason,
    )
    notify_site(bus, site.id, "layout", "layout.created", layoutId=layout.id, version=layout.version)
    return layout
