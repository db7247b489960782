"""Enum definitions for application constants."""

from app.db.enums.alerts import AlertSeverity, AlertSourceType, AlertState, PumpSideLetter
from app.db.enums.audit import AuditAction, AuditEntityType
from app.db.enums.auth import Role
from app.db.enums.connectivity import ConnectionKind, LinkStatus


# =============================================================================
# Role Permission Sets
# =============================================================================

# Site, pump, tank, integration and layout changes
ROLES_CAN_MANAGE_SITES = {Role.MANAGER, Role.SERVICE_TECH}

ROLES_CAN_VIEW_AUDIT = {Role.MANAGER, Role.SERVICE_TECH}

ROLES_CAN_CLEAR_ALERTS = {Role.MANAGER, Role.SERVICE_TECH}

# Roles whose site scope is the explicit assignment list
ROLES_SITE_SCOPED = {Role.SERVICE_TECH, Role.OPERATOR}


__all__ = [
    "AlertSeverity",
    "AlertSourceType",
    "AlertState",
    "AuditAction",
    "AuditEntityType",
    "ConnectionKind",
    "LinkStatus",
    "PumpSideLetter",
    "Role",
    "ROLES_CAN_CLEAR_ALERTS",
    "ROLES_CAN_MANAGE_SITES",
    "ROLES_CAN_VIEW_AUDIT",
    "ROLES_SITE_SCOPED",
]
