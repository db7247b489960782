"""Site access control - centralized scope checks for site-scoped operations.

Scope rules:
- manager: every site of their org, computed from the site table on each call
- service_tech / operator: the site_ids captured in their credential at login

Denials are ordered so that existence outside the caller's scope is never
revealed: scoped roles get 403 for any out-of-scope site id, existing or not;
managers get 404 for a site that is missing or belongs to another org.
"""

from fastapi import Request

from app.core.exceptions import ForbiddenError, NotFoundError, ValidationFailedError
from app.db.enums import ROLES_SITE_SCOPED, Role
from app.db.gateway import PersistenceGateway
from app.schemas.auth import UserSession
from app.schemas.site import SiteRead

# Where a site id may come from, in priority order
SITE_PATH_PARAMS = ("site_id", "id")
SITE_QUERY_PARAM = "siteId"


def permitted_site_ids(gw: PersistenceGateway, session: UserSession) -> list[str]:
    """Site ids the caller may see."""
    if session.role == Role.MANAGER:
        return gw.list_site_ids(session.org_id)
    return list(dict.fromkeys(session.site_ids))


def can_access_site(gw: PersistenceGateway, session: UserSession, site_id: str) -> bool:
    if session.role in ROLES_SITE_SCOPED:
        return site_id in session.site_ids
    site = gw.get_site(site_id)
    return site is not None and site.org_id == session.org_id


def check_site_access(
    gw: PersistenceGateway,
    session: UserSession,
    site_id: str,
) -> SiteRead:
    """
    Return the site if the caller may act on it.

    Raises:
        ForbiddenError: scoped caller without the site in scope
        NotFoundError: site missing (or in another org)
    """
    if session.role in ROLES_SITE_SCOPED and site_id not in session.site_ids:
        raise ForbiddenError("Forbidden for this site")

    site = gw.get_site(site_id)
    if site is None or site.org_id != session.org_id:
        raise NotFoundError("Site not found")
    return site


def resolve_site_id(request: Request) -> str:
    """Target site id from path (site_id, then id) or query (siteId)."""
    for name in SITE_PATH_PARAMS:
        value = request.path_params.get(name)
        if value:
            return str(value)
    value = request.query_params.get(SITE_QUERY_PARAM)
    if value:
        return value
    raise ValidationFailedError("Missing site id")
