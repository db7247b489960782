"""Alarm event model."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base


class AlarmEvent(Base):
    """
    Alarm raised against a site, optionally a tank or a pump side.

    Lifecycle (AlertState): raised -> acknowledged -> cleared.
    """

    __tablename__ = "alarm_events"
    __table_args__ = (
        Index("idx_alarm_events_site_state", "site_id", "state", "severity"),
        Index("idx_alarm_events_created", "created_at"),
    )

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    site_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("sites.id", ondelete="CASCADE"), nullable=False
    )
    source_type: Mapped[str] = mapped_column(String(32), nullable=False)
    tank_id: Mapped[str | None] = mapped_column(String(160), nullable=True)
    pump_id: Mapped[str | None] = mapped_column(String(160), nullable=True)
    side: Mapped[str | None] = mapped_column(String(1), nullable=True)
    component: Mapped[str] = mapped_column(String(64), nullable=False)
    severity: Mapped[str] = mapped_column(String(16), nullable=False)  # AlertSeverity
    state: Mapped[str] = mapped_column(String(16), nullable=False)  # AlertState
    code: Mapped[str | None] = mapped_column(String(64), nullable=True)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    raw_payload: Mapped[str | None] = mapped_column(Text, nullable=True)
    raised_at: Mapped[datetime | None] = mapped_column(nullable=True)
    cleared_at: Mapped[datetime | None] = mapped_column(nullable=True)
    ack_at: Mapped[datetime | None] = mapped_column(nullable=True)
    ack_by: Mapped[str | None] = mapped_column(String(64), nullable=True)
    assigned_to: Mapped[str | None] = mapped_column(String(64), nullable=True)
    created_at: Mapped[datetime] = mapped_column(nullable=False)
