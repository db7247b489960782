"""Service layer modules."""

# Import service modules (not individual functions) for cleaner access
from app.services import audit_service
from app.services import site_summary_service
from app.services import site_service
from app.services import pump_service
from app.services import tank_service
from app.services import layout_service
from app.services import alert_service
from app.services import history_service
from app.services import auth_service
from app.services import seed_service
from app.services import simulator_service

__all__ = [
    "audit_service",
    "site_summary_service",
    "site_service",
    "pump_service",
    "tank_service",
    "layout_service",
    "alert_service",
    "history_service",
    "auth_service",
    "seed_service",
    "simulator_service",
]
