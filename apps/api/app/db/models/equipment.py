"""Tank, pump and pump-side models."""

from __future__ import annotations

from sqlalchemy import Boolean, Float, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db.base import Base


class Tank(Base):
    """Underground tank read by the site's ATG. id = tank-<siteId>-<atgTankId>."""

    __tablename__ = "tanks"
    __table_args__ = (
        UniqueConstraint("site_id", "atg_tank_id", name="uq_tanks_site_atg_tank"),
    )

    id: Mapped[str] = mapped_column(String(160), primary_key=True)
    site_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("sites.id", ondelete="CASCADE"), nullable=False, index=True
    )
    atg_tank_id: Mapped[str] = mapped_column(String(32), nullable=False)
    label: Mapped[str] = mapped_column(String(255), nullable=False)
    product: Mapped[str] = mapped_column(String(100), nullable=False)
    capacity_liters: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)


class Pump(Base):
    """Fuel pump. id = pump-<siteId>-<pumpNumber>."""

    __tablename__ = "pumps"
    __table_args__ = (
        UniqueConstraint("site_id", "pump_number", name="uq_pumps_site_number"),
    )

    id: Mapped[str] = mapped_column(String(160), primary_key=True)
    site_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("sites.id", ondelete="CASCADE"), nullable=False, index=True
    )
    pump_number: Mapped[int] = mapped_column(Integer, nullable=False)
    label: Mapped[str] = mapped_column(String(255), nullable=False)
    active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    sides: Mapped[list["PumpSide"]] = relationship(
        cascade="all, delete-orphan",
        order_by="PumpSide.side",
        lazy="selectin",
    )


class PumpSide(Base):
    """One addressable interface (A or B) of a pump. id = ps-<pumpId>-<side>."""

    __tablename__ = "pump_sides"
    __table_args__ = (
        UniqueConstraint("pump_id", "side", name="uq_pump_sides_pump_side"),
    )

    id: Mapped[str] = mapped_column(String(180), primary_key=True)
    pump_id: Mapped[str] = mapped_column(
        String(160), ForeignKey("pumps.id", ondelete="CASCADE"), nullable=False, index=True
    )
    side: Mapped[str] = mapped_column(String(1), nullable=False)  # PumpSideLetter
    ip: Mapped[str] = mapped_column(String(64), default="", nullable=False)
    port: Mapped[int] = mapped_column(Integer, default=5201, nullable=False)
    active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
