"""FastAPI dependencies for authentication, authorization, and store access."""

from typing import Generator

import jwt
from fastapi import Depends, Request
from pydantic import ValidationError

from app.core.exceptions import ForbiddenError, StoreUnavailableError, UnauthorizedError
from app.core.notifications import NotificationBus
from app.core.security import decode_session_token
from app.core.site_access import check_site_access, resolve_site_id
from app.db.enums import Role
from app.db.gateway import PersistenceGateway
from app.schemas.auth import TokenPayload, UserSession
from app.schemas.site import SiteRead


BEARER_PREFIX = "bearer "
STREAM_TOKEN_PARAM = "token"


def get_gateway(request: Request) -> Generator[PersistenceGateway, None, None]:
    """
    Persistence gateway dependency.

    Yields a gateway for the request and releases it afterwards. Refuses to
    serve while the store is not ready rather than returning empty data.
    """
    state = request.app.state
    if not getattr(state, "store_ready", False):
        raise StoreUnavailableError()
    with state.gateway_source.open() as gw:
        yield gw


def get_bus(request: Request) -> NotificationBus | None:
    """The application's notification bus (None before startup)."""
    return getattr(request.app.state, "bus", None)


def _bearer_token(request: Request) -> str | None:
    header = request.headers.get("Authorization", "")
    if header.lower().startswith(BEARER_PREFIX):
        return header[len(BEARER_PREFIX):].strip() or None
    return None


def _session_from_token(token: str | None) -> UserSession:
    if not token:
        raise UnauthorizedError("Not authenticated")

    try:
        payload = TokenPayload.model_validate(decode_session_token(token))
    except (jwt.InvalidTokenError, ValidationError):
        raise UnauthorizedError("Invalid session")

    # Validate role is a known enum value - return 403 not 500
    if not Role.has_value(payload.role):
        raise ForbiddenError(f"Unknown role '{payload.role}'. Contact administrator.")

    return UserSession(
        user_id=payload.sub,
        org_id=payload.org_id,
        role=Role(payload.role),
        site_ids=payload.site_ids,
    )


def get_current_session(request: Request) -> UserSession:
    """
    Get caller context from the bearer credential: user_id, org_id, role, site_ids.

    This is the PRIMARY auth dependency for most endpoints.

    Raises:
        UnauthorizedError: missing, tampered or expired credential
        ForbiddenError: unknown role
    """
    return _session_from_token(_bearer_token(request))


def get_stream_session(request: Request) -> UserSession:
    """Like get_current_session, also accepting ?token= (EventSource cannot set headers)."""
    token = _bearer_token(request) or request.query_params.get(STREAM_TOKEN_PARAM)
    return _session_from_token(token)


def require_roles(allowed_roles: set | list):
    """
    Dependency factory for role-based authorization.

    Uses enum values (not strings) to prevent drift.

    Usage:
        @router.post("/sites", dependencies=[Depends(require_roles(ROLES_CAN_MANAGE_SITES))])
    """
    def dependency(session: UserSession = Depends(get_current_session)) -> UserSession:
        if session.role not in allowed_roles:
            raise ForbiddenError(
                f"Role '{session.role.value}' not authorized for this action"
            )
        return session
    return dependency


def get_site_in_scope(
    request: Request,
    gw: PersistenceGateway = Depends(get_gateway),
    session: UserSession = Depends(get_current_session),
) -> SiteRead:
    """Resolve the request's target site and check the caller may act on it."""
    return check_site_access(gw, session, resolve_site_id(request))
