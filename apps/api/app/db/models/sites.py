"""Site and site integration models."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, Float, ForeignKey, Integer, String, text
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base


class Site(Base):
    """
    A fuel station.

    id is derived from site_code (site-<code>) and is unique.
    """

    __tablename__ = "sites"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    org_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("orgs.id"), nullable=False, index=True
    )
    site_code: Mapped[str] = mapped_column(String(32), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    address: Mapped[str] = mapped_column(String(500), default="", nullable=False)
    postal_code: Mapped[str] = mapped_column(
        String(32), default="", server_default=text("''"), nullable=False
    )
    region: Mapped[str] = mapped_column(String(100), default="", nullable=False)
    lat: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    lon: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    timezone: Mapped[str] = mapped_column(
        String(64), default="America/New_York", nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(nullable=False)
    updated_at: Mapped[datetime] = mapped_column(nullable=False)


class SiteIntegration(Base):
    """Polling/timeout/staleness tunables for the ATG and pump-side links (1:1 with Site)."""

    __tablename__ = "site_integrations"

    site_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("sites.id", ondelete="CASCADE"), primary_key=True
    )
    atg_host: Mapped[str] = mapped_column(String(255), default="", nullable=False)
    atg_port: Mapped[int] = mapped_column(Integer, default=10001, nullable=False)
    atg_poll_interval_sec: Mapped[int] = mapped_column(Integer, default=60, nullable=False)
    atg_timeout_sec: Mapped[int] = mapped_column(Integer, default=5, nullable=False)
    atg_retries: Mapped[int] = mapped_column(Integer, default=3, nullable=False)
    atg_stale_sec: Mapped[int] = mapped_column(Integer, default=180, nullable=False)
    pump_timeout_sec: Mapped[int] = mapped_column(Integer, default=5, nullable=False)
    pump_keepalive_enabled: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    pump_reconnect_enabled: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    pump_stale_sec: Mapped[int] = mapped_column(Integer, default=180, nullable=False)
