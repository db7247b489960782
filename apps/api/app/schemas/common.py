"""Shared schema helpers."""

from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, field_validator


class RecordModel(BaseModel):
    """
    Base for stored entity records.

    Built from ORM rows or from document-store dicts. SQLite hands back naive
    datetimes, so every datetime is normalized to UTC.
    """

    model_config = {"from_attributes": True}

    @field_validator("*", mode="after")
    @classmethod
    def _as_utc(cls, value: Any) -> Any:
        if isinstance(value, datetime) and value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value


class ReasonMixin(BaseModel):
    """Optional free-text reason recorded in the audit log."""
    reason: str | None = None
