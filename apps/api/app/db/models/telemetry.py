"""Connectivity and tank telemetry models."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import Float, ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base


class ConnectionStatus(Base):
    """
    Link status of one pump side (kind=pump_side, target_id=<pump side id>)
    or of the site's single ATG link (kind=atg, target_id NULL).
    """

    __tablename__ = "connection_status"

    id: Mapped[str] = mapped_column(String(200), primary_key=True)
    site_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("sites.id", ondelete="CASCADE"), nullable=False, index=True
    )
    kind: Mapped[str] = mapped_column(String(16), nullable=False)  # ConnectionKind
    target_id: Mapped[str | None] = mapped_column(String(180), nullable=True)
    status: Mapped[str] = mapped_column(String(16), nullable=False)  # LinkStatus
    last_seen_at: Mapped[datetime | None] = mapped_column(nullable=True)
    details: Mapped[dict[str, Any]] = mapped_column(default=dict, nullable=False)


class TankMeasurement(Base):
    """Gauge reading. The simulator drifts the latest rows in place."""

    __tablename__ = "tank_measurements"
    __table_args__ = (
        Index("idx_tank_measurements_ts", "ts"),
        Index("idx_tank_measurements_tank_ts", "tank_id", "ts"),
    )

    id: Mapped[str] = mapped_column(String(200), primary_key=True)
    site_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("sites.id", ondelete="CASCADE"), nullable=False, index=True
    )
    tank_id: Mapped[str] = mapped_column(
        String(160), ForeignKey("tanks.id", ondelete="CASCADE"), nullable=False
    )
    ts: Mapped[datetime] = mapped_column(nullable=False)
    fuel_volume_l: Mapped[float] = mapped_column(Float, nullable=False)
    fuel_height_mm: Mapped[float | None] = mapped_column(Float, nullable=True)
    water_height_mm: Mapped[float | None] = mapped_column(Float, nullable=True)
    temp_c: Mapped[float | None] = mapped_column(Float, nullable=True)
    ullage_l: Mapped[float | None] = mapped_column(Float, nullable=True)
    raw_payload: Mapped[str | None] = mapped_column(Text, nullable=True)
