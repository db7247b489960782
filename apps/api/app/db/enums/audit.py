"""Audit enums."""

from enum import Enum


class AuditEntityType(str, Enum):
    """Entity types recorded in the audit log."""

    SITE = "site"
    SITE_INTEGRATION = "site_integrations"
    PUMP = "pump"
    TANK = "tank"
    FORECOURT_LAYOUT = "forecourt_layout"
    ALARM_EVENT = "alarm_event"


class AuditAction(str, Enum):
    """Mutating actions recorded in the audit log."""

    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    CREATE_VERSION = "create_version"
    ACKNOWLEDGE = "acknowledge"
    CLEAR = "clear"
