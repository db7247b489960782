"""Pydantic schemas for sites, integrations and site summaries."""

from datetime import datetime

from pydantic import BaseModel, Field

from app.schemas.common import ReasonMixin, RecordModel
from app.schemas.equipment import PumpRead, TankRead


class SiteRead(RecordModel):
    id: str
    org_id: str
    site_code: str
    name: str
    address: str = ""
    postal_code: str = ""
    region: str = ""
    lat: float = 0.0
    lon: float = 0.0
    timezone: str = "America/New_York"
    created_at: datetime
    updated_at: datetime


class SiteCreate(ReasonMixin):
    """Request to create a site. The id is derived from site_code."""
    site_code: str = Field(..., min_length=1, max_length=32, pattern=r"^[A-Za-z0-9_-]+$")
    name: str = Field(..., min_length=1, max_length=255)
    address: str = Field("", max_length=500)
    postal_code: str = Field("", max_length=32)
    region: str = Field("", max_length=100)
    lat: float = Field(0.0, ge=-90, le=90)
    lon: float = Field(0.0, ge=-180, le=180)
    timezone: str = Field("America/New_York", max_length=64)


class SiteUpdate(ReasonMixin):
    """Request to update a site (partial). site_code is immutable."""
    name: str | None = Field(None, min_length=1, max_length=255)
    address: str | None = Field(None, max_length=500)
    postal_code: str | None = Field(None, max_length=32)
    region: str | None = Field(None, max_length=100)
    lat: float | None = Field(None, ge=-90, le=90)
    lon: float | None = Field(None, ge=-180, le=180)
    timezone: str | None = Field(None, max_length=64)


class SiteIntegrationRead(RecordModel):
    site_id: str
    atg_host: str = ""
    atg_port: int = 10001
    atg_poll_interval_sec: int = 60
    atg_timeout_sec: int = 5
    atg_retries: int = 3
    atg_stale_sec: int = 180
    pump_timeout_sec: int = 5
    pump_keepalive_enabled: bool = True
    pump_reconnect_enabled: bool = True
    pump_stale_sec: int = 180


class SiteIntegrationUpdate(ReasonMixin):
    """Request to update integration tunables (partial)."""
    atg_host: str | None = Field(None, max_length=255)
    atg_port: int | None = Field(None, ge=1, le=65535)
    atg_poll_interval_sec: int | None = Field(None, ge=1)
    atg_timeout_sec: int | None = Field(None, ge=1)
    atg_retries: int | None = Field(None, ge=0)
    atg_stale_sec: int | None = Field(None, ge=1)
    pump_timeout_sec: int | None = Field(None, ge=1)
    pump_keepalive_enabled: bool | None = None
    pump_reconnect_enabled: bool | None = None
    pump_stale_sec: int | None = Field(None, ge=1)


class SiteSummary(BaseModel):
    """Per-site alert and connectivity rollup."""
    id: str
    site_code: str
    name: str
    address: str
    postal_code: str
    region: str
    lat: float
    lon: float
    critical_count: int
    warn_count: int
    pump_sides_expected: int
    pump_sides_connected: int
    atg_last_seen_at: datetime | None
    atg_stale: bool


class SiteDetail(SiteSummary):
    integration: SiteIntegrationRead | None
    tanks: list[TankRead]
    pumps: list[PumpRead]
