"""Alarm event enums."""

from enum import Enum


class AlertSeverity(str, Enum):
    """Severity levels for alarm events."""

    CRITICAL = "critical"
    WARN = "warn"
    INFO = "info"


class AlertState(str, Enum):
    """
    Alarm event lifecycle.

    raised -> acknowledged -> cleared, or raised -> cleared.
    No transition leads back to raised.
    """

    RAISED = "raised"
    ACKNOWLEDGED = "acknowledged"
    CLEARED = "cleared"


class AlertSourceType(str, Enum):
    """Logical origin of an alarm event."""

    ATG = "ATG"
    PUMP_SIDE = "PumpSide"
    SYSTEM = "System"


class PumpSideLetter(str, Enum):
    """Addressable sides of a pump."""

    A = "A"
    B = "B"
