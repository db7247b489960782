"""Pydantic schemas for alarm events."""

from dataclasses import dataclass
from datetime import datetime

from app.db.enums import AlertSeverity, AlertState
from app.schemas.common import ReasonMixin, RecordModel


class AlarmEventRead(RecordModel):
    id: str
    site_id: str
    source_type: str
    tank_id: str | None = None
    pump_id: str | None = None
    side: str | None = None
    component: str
    severity: AlertSeverity
    state: AlertState
    code: str | None = None
    message: str
    raw_payload: str | None = None
    raised_at: datetime | None = None
    cleared_at: datetime | None = None
    ack_at: datetime | None = None
    ack_by: str | None = None
    assigned_to: str | None = None
    created_at: datetime


@dataclass(frozen=True)
class AlertFilters:
    """Combinable alert query predicates. None means "any"."""
    site_id: str | None = None
    state: AlertState | None = None
    severity: AlertSeverity | None = None
    component: str | None = None
    pump_id: str | None = None
    side: str | None = None


class AlertAction(ReasonMixin):
    """Optional body for acknowledge/clear."""
