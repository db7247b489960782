"""Pydantic schemas for connectivity rows and tank measurements."""

from datetime import datetime
from typing import Any

from app.db.enums import ConnectionKind, LinkStatus
from app.schemas.common import RecordModel


class ConnectionStatusRead(RecordModel):
    id: str
    site_id: str
    kind: ConnectionKind
    target_id: str | None = None
    status: LinkStatus
    last_seen_at: datetime | None = None
    details: dict[str, Any] = {}


class TankMeasurementRead(RecordModel):
    id: str
    site_id: str
    tank_id: str
    ts: datetime
    fuel_volume_l: float
    fuel_height_mm: float | None = None
    water_height_mm: float | None = None
    temp_c: float | None = None
    ullage_l: float | None = None
    raw_payload: str | None = None
