"""Single-document persistence gateway.

The whole store is one JSON object of collections, each a mapping of id to
record. Every access holds one re-entrant lock; a transaction snapshots the
document on entry, restores it on error and writes it back atomically on
success.
"""

from __future__ import annotations

import copy
import json
import logging
import os
import threading
from collections.abc import Collection, Iterator
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from pydantic import BaseModel

from app.core.exceptions import ConflictError
from app.db.enums import AlertSeverity, AlertState, ConnectionKind, LinkStatus
from app.db.gateway import GatewaySource, PersistenceGateway
from app.schemas.alert import AlarmEventRead, AlertFilters
from app.schemas.audit import AuditLogRead
from app.schemas.auth import OrgRecord, UserRecord
from app.schemas.equipment import PumpRead, PumpSideRead, TankRead
from app.schemas.layout import LayoutRead
from app.schemas.site import SiteIntegrationRead, SiteRead
from app.schemas.telemetry import ConnectionStatusRead, TankMeasurementRead

logger = logging.getLogger(__name__)

COLLECTIONS = (
    "orgs",
    "users",
    "sites",
    "site_integrations",
    "tanks",
    "pumps",
    "pump_sides",
    "connection_status",
    "tank_measurements",
    "alarm_events",
    "forecourt_layouts",
    "audit_log",
)

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def _empty_document() -> dict[str, dict[str, dict[str, Any]]]:
    return {name: {} for name in COLLECTIONS}


def _dump(record: BaseModel) -> dict[str, Any]:
    return record.model_dump(mode="json")


def _as_datetime(value: Any) -> datetime:
    if not value:
        return _EPOCH
    parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _json_value(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, (AlertSeverity, AlertState, ConnectionKind, LinkStatus)):
        return value.value
    return value


class JsonDocumentGateway(PersistenceGateway):
    """
    PersistenceGateway over an in-process JSON document.

    path=None keeps the document in memory only.
    """

    def __init__(self, path: str | Path | None = None):
        self.path = Path(path) if path else None
        self._lock = threading.RLock()
        self._depth = 0
        self._doc = self._load()

    def _load(self) -> dict[str, dict[str, dict[str, Any]]]:
        doc = _empty_document()
        if self.path is None or not self.path.exists():
            return doc
        with self.path.open("r", encoding="utf-8") as fp:
            stored = json.load(fp)
        for name in COLLECTIONS:
            doc[name].update(stored.get(name) or {})
        return doc

    def _persist(self) -> None:
        if self.path is None:
            return
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        with tmp_path.open("w", encoding="utf-8") as fp:
            json.dump(self._doc, fp, separators=(",", ":"))
            fp.write("\n")
        os.replace(tmp_path, self.path)

    # =========================================================================
    # Transaction
    # =========================================================================

    @contextmanager
    def transaction(self) -> Iterator[None]:
        with self._lock:
            if self._depth:
                self._depth += 1
                try:
                    yield
                finally:
                    self._depth -= 1
                return

            snapshot = copy.deepcopy(self._doc)
            self._depth = 1
            try:
                yield
                self._persist()
            except BaseException:
                self._doc = snapshot
                raise
            finally:
                self._depth = 0

    def ping(self) -> None:
        with self._lock:
            if self.path is not None and not self.path.parent.exists():
                raise OSError(f"Store directory {self.path.parent} does not exist")

    def _insert(self, collection: str, record_id: str, record: dict[str, Any], what: str) -> None:
        rows = self._doc[collection]
        if record_id in rows:
            raise ConflictError(f"{what} {record_id} already exists")
        rows[record_id] = record

    def _patch(self, collection: str, record_id: str, values: dict[str, Any]) -> dict | None:
        row = self._doc[collection].get(record_id)
        if row is None:
            return None
        for field, value in values.items():
            row[field] = _json_value(value)
        return row

    # =========================================================================
    # Tenants & users
    # =========================================================================

    def add_org(self, org: OrgRecord) -> None:
        with self.transaction():
            self._insert("orgs", org.id, _dump(org), "Org")

    def add_user(self, user: UserRecord) -> None:
        with self.transaction():
            email = user.email.strip().lower()
            if any(row["email"].lower() == email for row in self._doc["users"].values()):
                raise ConflictError(f"User {user.email} already exists")
            self._insert("users", user.id, _dump(user), "User")

    def get_user(self, user_id: str) -> UserRecord | None:
        with self._lock:
            row = self._doc["users"].get(user_id)
            return UserRecord.model_validate(row) if row else None

    def get_user_by_email(self, email: str) -> UserRecord | None:
        email = email.strip().lower()
        with self._lock:
            for row in self._doc["users"].values():
                if row["email"].lower() == email:
                    return UserRecord.model_validate(row)
        return None

    def count_users(self) -> int:
        with self._lock:
            return len(self._doc["users"])

    # =========================================================================
    # Sites
    # =========================================================================

    def list_sites(
        self, org_id: str, site_ids: Collection[str] | None = None
    ) -> list[SiteRead]:
        with self._lock:
            rows = [
                row for row in self._doc["sites"].values()
                if row["org_id"] == org_id and (site_ids is None or row["id"] in site_ids)
            ]
            rows.sort(key=lambda row: (row["site_code"], row["id"]))
            return [SiteRead.model_validate(row) for row in rows]

    def list_site_ids(self, org_id: str) -> list[str]:
        return [site.id for site in self.list_sites(org_id)]

    def get_site(self, site_id: str) -> SiteRead | None:
        with self._lock:
            row = self._doc["sites"].get(site_id)
            return SiteRead.model_validate(row) if row else None

    def add_site(self, site: SiteRead) -> None:
        with self.transaction():
            self._insert("sites", site.id, _dump(site), "Site")

    def update_site(self, site_id: str, values: dict[str, Any]) -> SiteRead | None:
        with self.transaction():
            row = self._patch("sites", site_id, values)
            return SiteRead.model_validate(row) if row else None

    def delete_site(self, site_id: str) -> bool:
        with self.transaction():
            if self._doc["sites"].pop(site_id, None) is None:
                return False
            pump_ids = {
                pid for pid, row in self._doc["pumps"].items() if row["site_id"] == site_id
            }
            for name in (
                "tanks",
                "pumps",
                "connection_status",
                "tank_measurements",
                "alarm_events",
                "forecourt_layouts",
            ):
                rows = self._doc[name]
                for record_id in [k for k, row in rows.items() if row["site_id"] == site_id]:
                    del rows[record_id]
            sides = self._doc["pump_sides"]
            for side_id in [k for k, row in sides.items() if row["pump_id"] in pump_ids]:
                del sides[side_id]
            self._doc["site_integrations"].pop(site_id, None)
            for user in self._doc["users"].values():
                if site_id in user["site_ids"]:
                    user["site_ids"] = [s for s in user["site_ids"] if s != site_id]
            return True

    # =========================================================================
    # Integrations
    # =========================================================================

    def add_integration(self, integration: SiteIntegrationRead) -> None:
        with self.transaction():
            self._insert(
                "site_integrations", integration.site_id, _dump(integration), "Integration for"
            )

    def get_integration(self, site_id: str) -> SiteIntegrationRead | None:
        with self._lock:
            row = self._doc["site_integrations"].get(site_id)
            return SiteIntegrationRead.model_validate(row) if row else None

    def list_integrations(self, site_ids: Collection[str]) -> list[SiteIntegrationRead]:
        with self._lock:
            return [
                SiteIntegrationRead.model_validate(row)
                for row in self._doc["site_integrations"].values()
                if row["site_id"] in site_ids
            ]

    def update_integration(
        self, site_id: str, values: dict[str, Any]
    ) -> SiteIntegrationRead | None:
        with self.transaction():
            row = self._patch("site_integrations", site_id, values)
            return SiteIntegrationRead.model_validate(row) if row else None

    # =========================================================================
    # Tanks
    # =========================================================================

    def list_tanks(self, site_id: str) -> list[TankRead]:
        with self._lock:
            rows = [row for row in self._doc["tanks"].values() if row["site_id"] == site_id]
            rows.sort(key=lambda row: row["atg_tank_id"])
            return [TankRead.model_validate(row) for row in rows]

    def get_tank(self, tank_id: str) -> TankRead | None:
        with self._lock:
            row = self._doc["tanks"].get(tank_id)
            return TankRead.model_validate(row) if row else None

    def add_tank(self, tank: TankRead) -> None:
        with self.transaction():
            self._insert("tanks", tank.id, _dump(tank), "Tank")

    def update_tank(self, tank_id: str, values: dict[str, Any]) -> TankRead | None:
        with self.transaction():
            row = self._patch("tanks", tank_id, values)
            return TankRead.model_validate(row) if row else None

    def delete_tank(self, tank_id: str) -> bool:
        with self.transaction():
            if self._doc["tanks"].pop(tank_id, None) is None:
                return False
            measurements = self._doc["tank_measurements"]
            for mid in [k for k, row in measurements.items() if row["tank_id"] == tank_id]:
                del measurements[mid]
            return True

    # =========================================================================
    # Pumps
    # =========================================================================

    def _pump_read(self, row: dict[str, Any]) -> PumpRead:
        sides = sorted(
            (side for side in self._doc["pump_sides"].values() if side["pump_id"] == row["id"]),
            key=lambda side: side["side"],
        )
        return PumpRead.model_validate({**row, "sides": sides})

    def list_pumps(self, site_ids: Collection[str] | None = None) -> list[PumpRead]:
        with self._lock:
            rows = [
                row for row in self._doc["pumps"].values()
                if site_ids is None or row["site_id"] in site_ids
            ]
            rows.sort(key=lambda row: (row["site_id"], row["pump_number"]))
            return [self._pump_read(row) for row in rows]

    def get_pump(self, pump_id: str) -> PumpRead | None:
        with self._lock:
            row = self._doc["pumps"].get(pump_id)
            return self._pump_read(row) if row else None

    def add_pump(self, pump: PumpRead) -> None:
        with self.transaction():
            if any(
                row["site_id"] == pump.site_id and row["pump_number"] == pump.pump_number
                for row in self._doc["pumps"].values()
            ):
                raise ConflictError(f"Pump {pump.id} already exists")
            record = _dump(pump)
            sides = record.pop("sides")
            self._insert("pumps", pump.id, record, "Pump")
            for side in sides:
                self._insert("pump_sides", side["id"], side, "Pump side")

    def update_pump(self, pump_id: str, values: dict[str, Any]) -> PumpRead | None:
        with self.transaction():
            row = self._patch("pumps", pump_id, values)
            return self._pump_read(row) if row else None

    def update_pump_side(
        self, side_id: str, values: dict[str, Any]
    ) -> PumpSideRead | None:
        with self.transaction():
            row = self._patch("pump_sides", side_id, values)
            return PumpSideRead.model_validate(row) if row else None

    def delete_pump(self, pump_id: str) -> bool:
        with self.transaction():
            if self._doc["pumps"].pop(pump_id, None) is None:
                return False
            sides = self._doc["pump_sides"]
            side_ids = {k for k, row in sides.items() if row["pump_id"] == pump_id}
            for side_id in side_ids:
                del sides[side_id]
            connections = self._doc["connection_status"]
            for cid in [
                k for k, row in connections.items()
                if row["kind"] == ConnectionKind.PUMP_SIDE.value and row["target_id"] in side_ids
            ]:
                del connections[cid]
            return True

    # =========================================================================
    # Connectivity
    # =========================================================================

    def add_connection_status(self, row: ConnectionStatusRead) -> None:
        with self.transaction():
            self._insert("connection_status", row.id, _dump(row), "Connection row")

    def list_connection_status(
        self,
        site_ids: Collection[str] | None = None,
        kind: ConnectionKind | None = None,
    ) -> list[ConnectionStatusRead]:
        with self._lock:
            rows = [
                row for row in self._doc["connection_status"].values()
                if (site_ids is None or row["site_id"] in site_ids)
                and (kind is None or row["kind"] == kind.value)
            ]
            rows.sort(key=lambda row: row["id"])
            return [ConnectionStatusRead.model_validate(row) for row in rows]

    def flip_connection_status(
        self, status_id: str, expected: LinkStatus, new: LinkStatus, seen_at: datetime
    ) -> bool:
        with self.transaction():
            row = self._doc["connection_status"].get(status_id)
            if row is None or row["status"] != expected.value:
                return False
            row["status"] = new.value
            row["last_seen_at"] = seen_at.isoformat()
            return True

    # =========================================================================
    # Layouts
    # =========================================================================

    def list_layouts(self, site_id: str) -> list[LayoutRead]:
        with self._lock:
            rows = [
                row for row in self._doc["forecourt_layouts"].values()
                if row["site_id"] == site_id
            ]
            rows.sort(key=lambda row: row["version"], reverse=True)
            return [LayoutRead.model_validate(row) for row in rows]

    def get_active_layout(self, site_id: str) -> LayoutRead | None:
        for layout in self.list_layouts(site_id):
            if layout.is_active:
                return layout
        return None

    def max_layout_version(self, site_id: str) -> int:
        with self._lock:
            return max(
                (
                    row["version"] for row in self._doc["forecourt_layouts"].values()
                    if row["site_id"] == site_id
                ),
                default=0,
            )

    def deactivate_layouts(self, site_id: str) -> None:
        with self.transaction():
            for row in self._doc["forecourt_layouts"].values():
                if row["site_id"] == site_id:
                    row["is_active"] = False

    def add_layout(self, layout: LayoutRead) -> None:
        with self.transaction():
            if any(
                row["site_id"] == layout.site_id and row["version"] == layout.version
                for row in self._doc["forecourt_layouts"].values()
            ):
                raise ConflictError(f"Layout {layout.id} already exists")
            self._insert("forecourt_layouts", layout.id, _dump(layout), "Layout")

    # =========================================================================
    # Alarm events
    # =========================================================================

    def add_alert(self, alert: AlarmEventRead) -> None:
        with self.transaction():
            self._insert("alarm_events", alert.id, _dump(alert), "Alert")

    def get_alert(self, alert_id: str) -> AlarmEventRead | None:
        with self._lock:
            row = self._doc["alarm_events"].get(alert_id)
            return AlarmEventRead.model_validate(row) if row else None

    def list_alerts(
        self, site_ids: Collection[str], filters: AlertFilters, limit: int
    ) -> list[AlarmEventRead]:
        def matches(row: dict[str, Any]) -> bool:
            if row["site_id"] not in site_ids:
                return False
            if filters.site_id and row["site_id"] != filters.site_id:
                return False
            if filters.state and row["state"] != filters.state.value:
                return False
            if filters.severity and row["severity"] != filters.severity.value:
                return False
            if filters.component and row["component"] != filters.component:
                return False
            if filters.pump_id and row["pump_id"] != filters.pump_id:
                return False
            if filters.side and row["side"] != filters.side:
                return False
            return True

        with self._lock:
            rows = [row for row in self._doc["alarm_events"].values() if matches(row)]
            rows.sort(key=lambda row: (_as_datetime(row["created_at"]), row["id"]), reverse=True)
            return [AlarmEventRead.model_validate(row) for row in rows[:limit]]

    def count_raised_alerts(
        self, site_ids: Collection[str]
    ) -> dict[str, dict[AlertSeverity, int]]:
        counts: dict[str, dict[AlertSeverity, int]] = {}
        with self._lock:
            for row in self._doc["alarm_events"].values():
                if row["site_id"] not in site_ids or row["state"] != AlertState.RAISED.value:
                    continue
                per_site = counts.setdefault(row["site_id"], {})
                severity = AlertSeverity(row["severity"])
                per_site[severity] = per_site.get(severity, 0) + 1
        return counts

    def transition_alert(
        self,
        alert_id: str,
        from_states: Collection[AlertState],
        to_state: AlertState,
        values: dict[str, Any],
    ) -> bool:
        with self.transaction():
            row = self._doc["alarm_events"].get(alert_id)
            if row is None or row["state"] not in {state.value for state in from_states}:
                return False
            self._patch("alarm_events", alert_id, {**values, "state": to_state})
            return True

    # =========================================================================
    # Measurements
    # =========================================================================

    def add_measurement(self, measurement: TankMeasurementRead) -> None:
        with self.transaction():
            self._insert("tank_measurements", measurement.id, _dump(measurement), "Measurement")

    def _newest_measurements(self, rows: list[dict[str, Any]], limit: int) -> list[TankMeasurementRead]:
        rows.sort(key=lambda row: row["id"])
        rows.sort(key=lambda row: _as_datetime(row["ts"]), reverse=True)
        return [TankMeasurementRead.model_validate(row) for row in rows[:limit]]

    def list_measurements(
        self,
        site_ids: Collection[str],
        site_id: str | None = None,
        tank_id: str | None = None,
        limit: int = 300,
    ) -> list[TankMeasurementRead]:
        with self._lock:
            rows = [
                row for row in self._doc["tank_measurements"].values()
                if row["site_id"] in site_ids
                and (not site_id or row["site_id"] == site_id)
                and (not tank_id or row["tank_id"] == tank_id)
            ]
            return self._newest_measurements(rows, limit)

    def list_recent_measurements(self, limit: int) -> list[TankMeasurementRead]:
        with self._lock:
            return self._newest_measurements(list(self._doc["tank_measurements"].values()), limit)

    def apply_measurement_drift(
        self,
        measurement_id: str,
        delta: float,
        ts: datetime,
        capacity: float | None = None,
    ) -> bool:
        with self.transaction():
            row = self._doc["tank_measurements"].get(measurement_id)
            if row is None:
                return False
            volume = max(0.0, row["fuel_volume_l"] + delta)
            if capacity is not None and capacity > 0:
                volume = min(volume, capacity)
            # Ullage moves by what actually reached the volume, clamp included
            applied = volume - row["fuel_volume_l"]
            row["fuel_volume_l"] = volume
            row["ullage_l"] = max(0.0, (row["ullage_l"] or 0.0) - applied)
            row["ts"] = ts.isoformat()
            return True

    # =========================================================================
    # Audit
    # =========================================================================

    def add_audit(self, entry: AuditLogRead) -> None:
        with self.transaction():
            self._insert("audit_log", entry.id, _dump(entry), "Audit entry")

    def list_audit(self, org_id: str, limit: int) -> list[AuditLogRead]:
        with self._lock:
            rows = [row for row in self._doc["audit_log"].values() if row["org_id"] == org_id]
            rows.sort(key=lambda row: (_as_datetime(row["created_at"]), row["id"]), reverse=True)
            return [AuditLogRead.model_validate(row) for row in rows[:limit]]


class JsonGatewaySource(GatewaySource):
    """Every unit of use shares the one document gateway."""

    def __init__(self, path: str | Path | None = None):
        self.gateway = JsonDocumentGateway(path)

    @contextmanager
    def open(self) -> Iterator[PersistenceGateway]:
        yield self.gateway

    def init_schema(self) -> None:
        with self.gateway.transaction():
            logger.info("JSON store ready at %s", self.gateway.path or "<memory>")

    def reset(self) -> None:
        gw = self.gateway
        with gw.transaction():
            gw._doc = _empty_document()
