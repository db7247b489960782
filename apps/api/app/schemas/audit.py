"""Pydantic schemas for the audit log."""

from datetime import datetime
from typing import Any

from app.schemas.common import RecordModel


class AuditLogRead(RecordModel):
    id: str
    org_id: str
    user_id: str
    site_id: str | None = None
    entity_type: str
    entity_id: str
    action: str
    before_json: dict[str, Any] | None = None
    after_json: dict[str, Any] | None = None
    reason: str | None = None
    created_at: datetime
