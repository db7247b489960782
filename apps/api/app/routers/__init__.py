"""API routers."""

from app.routers.alerts import router as alerts_router
from app.routers.audit import router as audit_router
from app.routers.auth import router as auth_router
from app.routers.events import router as events_router
from app.routers.health import router as health_router
from app.routers.history import router as history_router
from app.routers.pumps import router as pumps_router
from app.routers.sites import router as sites_router
from app.routers.tanks import router as tanks_router

__all__ = [
    "alerts_router",
    "audit_router",
    "auth_router",
    "events_router",
    "health_router",
    "history_router",
    "pumps_router",
    "sites_router",
    "tanks_router",
]
