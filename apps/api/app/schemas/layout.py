"""Pydantic schemas for forecourt layouts."""

from datetime import datetime
from typing import Any

from pydantic import AliasChoices, Field

from app.schemas.common import ReasonMixin, RecordModel


class LayoutRead(RecordModel):
    id: str
    site_id: str
    version: int
    name: str
    scene: dict[str, Any]
    created_by: str
    created_at: datetime
    is_active: bool


class LayoutCreate(ReasonMixin):
    """Request to publish a new layout version."""
    name: str | None = Field(None, min_length=1, max_length=255)
    scene: dict[str, Any] = Field(..., validation_alias=AliasChoices("scene", "json"))
