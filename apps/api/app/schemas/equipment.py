"""Pydantic schemas for tanks, pumps and pump sides."""

from typing import Literal

from pydantic import BaseModel, Field

from app.schemas.common import ReasonMixin, RecordModel

SideLetter = Literal["A", "B"]


class TankRead(RecordModel):
    id: str
    site_id: str
    atg_tank_id: str
    label: str
    product: str
    capacity_liters: float = 0.0
    active: bool = True


class TankCreate(ReasonMixin):
    atg_tank_id: str = Field(..., min_length=1, max_length=32)
    label: str = Field(..., min_length=1, max_length=255)
    product: str = Field(..., min_length=1, max_length=100)
    capacity_liters: float = Field(0.0, ge=0)


class TankUpdate(ReasonMixin):
    """Partial update. atg_tank_id is part of the id and cannot change."""
    label: str | None = Field(None, min_length=1, max_length=255)
    product: str | None = Field(None, min_length=1, max_length=100)
    capacity_liters: float | None = Field(None, ge=0)
    active: bool | None = None


class PumpSideRead(RecordModel):
    id: str
    pump_id: str
    side: SideLetter
    ip: str = ""
    port: int = 5201
    active: bool = True


class PumpSideConfig(BaseModel):
    ip: str | None = Field(None, max_length=64)
    port: int | None = Field(None, ge=1, le=65535)
    active: bool | None = None


class PumpRead(RecordModel):
    id: str
    site_id: str
    pump_number: int
    label: str
    active: bool = True
    sides: list[PumpSideRead] = []


class PumpCreate(ReasonMixin):
    pump_number: int = Field(..., ge=1)
    label: str = Field(..., min_length=1, max_length=255)
    sides: dict[SideLetter, PumpSideConfig] = {}


class PumpUpdate(ReasonMixin):
    """Partial update. pump_number is part of the id and cannot change."""
    label: str | None = Field(None, min_length=1, max_length=255)
    active: bool | None = None
    sides: dict[SideLetter, PumpSideConfig] = {}
