"""Derived identifiers.

Every entity keyed by a natural key gets an id computed from it, so that
re-deriving from the same natural key always lands on the same row.
"""

from __future__ import annotations


def site_id(site_code: str) -> str:
    return f"site-{site_code}"


def tank_id(site_id: str, atg_tank_id: str) -> str:
    return f"tank-{site_id}-{atg_tank_id}"


def pump_id(site_id: str, pump_number: int) -> str:
    return f"pump-{site_id}-{pump_number}"


def pump_side_id(pump_id: str, side: str) -> str:
    return f"ps-{pump_id}-{side.lower()}"


def layout_id(site_id: str, version: int) -> str:
    return f"layout-{site_id}-v{version}"


def pump_side_connection_id(pump_side_id: str) -> str:
    return f"conn-{pump_side_id}"


def atg_connection_id(site_id: str) -> str:
    return f"conn-atg-{site_id}"
