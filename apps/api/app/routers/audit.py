"""Audit router - API endpoints for viewing audit logs."""

from fastapi import APIRouter, Depends

from app.core.config import settings
from app.core.deps import get_gateway, require_roles
from app.db.enums import ROLES_CAN_VIEW_AUDIT
from app.db.gateway import PersistenceGateway
from app.schemas.audit import AuditLogRead
from app.schemas.auth import UserSession
from app.services import audit_service

router = APIRouter(prefix="/audit", tags=["Audit"])


@router.get("", response_model=list[AuditLogRead])
def list_audit_logs(
    gw: PersistenceGateway = Depends(get_gateway),
    session: UserSession = Depends(require_roles(list(ROLES_CAN_VIEW_AUDIT))),
) -> list[AuditLogRead]:
    """
    Newest audit entries for the organization.

    Requires: Manager or Service Tech role
    """
    return audit_service.list_entries(gw, session, settings.AUDIT_PAGE_LIMIT)
