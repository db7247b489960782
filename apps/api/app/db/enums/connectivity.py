"""Connectivity enums."""

from enum import Enum


class ConnectionKind(str, Enum):
    """Kinds of monitored links."""

    PUMP_SIDE = "pump_side"
    ATG = "atg"


class LinkStatus(str, Enum):
    """Status of a monitored link."""

    CONNECTED = "connected"
    DISCONNECTED = "disconnected"

    def flipped(self) -> "LinkStatus":
        if self is LinkStatus.CONNECTED:
            return LinkStatus.DISCONNECTED
        return LinkStatus.CONNECTED
