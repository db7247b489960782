"""SQLAlchemy ORM models."""

from app.db.models.alarms import AlarmEvent
from app.db.models.audit import AuditLog
from app.db.models.auth import Org, User, UserSiteAssignment
from app.db.models.equipment import Pump, PumpSide, Tank
from app.db.models.layouts import ForecourtLayout
from app.db.models.sites import Site, SiteIntegration
from app.db.models.telemetry import ConnectionStatus, TankMeasurement

__all__ = [
    "AlarmEvent",
    "AuditLog",
    "ConnectionStatus",
    "ForecourtLayout",
    "Org",
    "Pump",
    "PumpSide",
    "Site",
    "SiteIntegration",
    "Tank",
    "TankMeasurement",
    "User",
    "UserSiteAssignment",
]
