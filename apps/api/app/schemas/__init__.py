"""Pydantic schemas for API request/response models and stored records."""

from app.schemas.alert import AlarmEventRead, AlertFilters
from app.schemas.audit import AuditLogRead
from app.schemas.auth import (
    LoginRequest,
    LoginResponse,
    OrgRecord,
    TokenPayload,
    UserProfile,
    UserRecord,
    UserSession,
)
from app.schemas.equipment import (
    PumpCreate,
    PumpRead,
    PumpSideConfig,
    PumpSideRead,
    PumpUpdate,
    TankCreate,
    TankRead,
    TankUpdate,
)
from app.schemas.layout import LayoutCreate, LayoutRead
from app.schemas.site import (
    SiteCreate,
    SiteDetail,
    SiteIntegrationRead,
    SiteIntegrationUpdate,
    SiteRead,
    SiteSummary,
    SiteUpdate,
)
from app.schemas.telemetry import ConnectionStatusRead, TankMeasurementRead
