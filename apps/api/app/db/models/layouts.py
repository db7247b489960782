"""Forecourt layout model."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import Boolean, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base


class ForecourtLayout(Base):
    """
    Versioned scene graph of a site's forecourt.

    Versions start at 1 and only grow; at most one row per site is active.
    """

    __tablename__ = "forecourt_layouts"
    __table_args__ = (
        UniqueConstraint("site_id", "version", name="uq_forecourt_layouts_site_version"),
    )

    id: Mapped[str] = mapped_column(String(100), primary_key=True)
    site_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("sites.id", ondelete="CASCADE"), nullable=False, index=True
    )
    version: Mapped[int] = mapped_column(Integer, nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    scene: Mapped[dict[str, Any]] = mapped_column(nullable=False)
    created_by: Mapped[str] = mapped_column(String(64), nullable=False)
    created_at: Mapped[datetime] = mapped_column(nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
