"""Persistence gateway interface.

Every read and write of site data goes through a PersistenceGateway. Two
implementations honor the same contract: SqlGateway (relational, one
SQLAlchemy session per unit of work) and JsonDocumentGateway (a single JSON
document, serialized behind one lock).

Contract notes:
- ``transaction()`` scopes a unit of work: it fully commits or fully rolls
  back, and nests (inner blocks join the outer one). Mutating methods called
  outside an explicit transaction commit on their own.
- ``add_*`` methods raise ConflictError on an id or natural-key collision and
  write nothing.
- ``transition_alert``, ``flip_connection_status`` and
  ``apply_measurement_drift`` are compare-and-set style single-row updates; they
  return False when the row is missing or not in the expected state.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Collection
from contextlib import AbstractContextManager
from datetime import datetime
from typing import Any

from app.db.enums import AlertSeverity, AlertState, ConnectionKind, LinkStatus
from app.schemas.alert import AlarmEventRead, AlertFilters
from app.schemas.audit import AuditLogRead
from app.schemas.auth import OrgRecord, UserRecord
from app.schemas.equipment import PumpRead, PumpSideRead, TankRead
from app.schemas.layout import LayoutRead
from app.schemas.site import SiteIntegrationRead, SiteRead
from app.schemas.telemetry import ConnectionStatusRead, TankMeasurementRead


class PersistenceGateway(ABC):
    """Entity-scoped CRUD plus a transaction primitive."""

    @abstractmethod
    def transaction(self) -> AbstractContextManager[None]:
        """Unit of work: commit on normal exit, roll back on any exception."""

    @abstractmethod
    def ping(self) -> None:
        """Raise if the backing store cannot be reached."""

    # -- tenants & users ---------------------------------------------------

    @abstractmethod
    def add_org(self, org: OrgRecord) -> None: ...

    @abstractmethod
    def add_user(self, user: UserRecord) -> None: ...

    @abstractmethod
    def get_user(self, user_id: str) -> UserRecord | None: ...

    @abstractmethod
    def get_user_by_email(self, email: str) -> UserRecord | None: ...

    @abstractmethod
    def count_users(self) -> int: ...

    # -- sites ---------------------------------------------------------------

    @abstractmethod
    def list_sites(
        self, org_id: str, site_ids: Collection[str] | None = None
    ) -> list[SiteRead]:
        """Sites of an org ordered by site_code, optionally restricted to site_ids."""

    @abstractmethod
    def list_site_ids(self, org_id: str) -> list[str]: ...

    @abstractmethod
    def get_site(self, site_id: str) -> SiteRead | None: ...

    @abstractmethod
    def add_site(self, site: SiteRead) -> None: ...

    @abstractmethod
    def update_site(self, site_id: str, values: dict[str, Any]) -> SiteRead | None: ...

    @abstractmethod
    def delete_site(self, site_id: str) -> bool:
        """Delete a site and every row it owns. Audit rows are kept."""

    # -- integrations --------------------------------------------------------

    @abstractmethod
    def add_integration(self, integration: SiteIntegrationRead) -> None: ...

    @abstractmethod
    def get_integration(self, site_id: str) -> SiteIntegrationRead | None: ...

    @abstractmethod
    def list_integrations(self, site_ids: Collection[str]) -> list[SiteIntegrationRead]: ...

    @abstractmethod
    def update_integration(
        self, site_id: str, values: dict[str, Any]
    ) -> SiteIntegrationRead | None: ...

    # -- tanks ---------------------------------------------------------------

    @abstractmethod
    def list_tanks(self, site_id: str) -> list[TankRead]: ...

    @abstractmethod
    def get_tank(self, tank_id: str) -> TankRead | None: ...

    @abstractmethod
    def add_tank(self, tank: TankRead) -> None: ...

    @abstractmethod
    def update_tank(self, tank_id: str, values: dict[str, Any]) -> TankRead | None: ...

    @abstractmethod
    def delete_tank(self, tank_id: str) -> bool: ...

    # -- pumps ---------------------------------------------------------------

    @abstractmethod
    def list_pumps(self, site_ids: Collection[str] | None = None) -> list[PumpRead]:
        """Pumps (with sides) ordered by site and pump number. None means every site."""

    @abstractmethod
    def get_pump(self, pump_id: str) -> PumpRead | None: ...

    @abstractmethod
    def add_pump(self, pump: PumpRead) -> None:
        """Insert a pump together with its sides."""

    @abstractmethod
    def update_pump(self, pump_id: str, values: dict[str, Any]) -> PumpRead | None: ...

    @abstractmethod
    def update_pump_side(
        self, side_id: str, values: dict[str, Any]
    ) -> PumpSideRead | None: ...

    @abstractmethod
    def delete_pump(self, pump_id: str) -> bool:
        """Delete a pump, its sides and their connection rows."""

    # -- connectivity --------------------------------------------------------

    @abstractmethod
    def add_connection_status(self, row: ConnectionStatusRead) -> None: ...

    @abstractmethod
    def list_connection_status(
        self,
        site_ids: Collection[str] | None = None,
        kind: ConnectionKind | None = None,
    ) -> list[ConnectionStatusRead]: ...

    @abstractmethod
    def flip_connection_status(
        self, status_id: str, expected: LinkStatus, new: LinkStatus, seen_at: datetime
    ) -> bool: ...

    # -- layouts -------------------------------------------------------------

    @abstractmethod
    def list_layouts(self, site_id: str) -> list[LayoutRead]:
        """All versions for a site, newest first."""

    @abstractmethod
    def get_active_layout(self, site_id: str) -> LayoutRead | None: ...

    @abstractmethod
    def max_layout_version(self, site_id: str) -> int:
        """Highest stored version for the site, 0 when none."""

    @abstractmethod
    def deactivate_layouts(self, site_id: str) -> None: ...

    @abstractmethod
    def add_layout(self, layout: LayoutRead) -> None: ...

    # -- alarm events --------------------------------------------------------

    @abstractmethod
    def add_alert(self, alert: AlarmEventRead) -> None: ...

    @abstractmethod
    def get_alert(self, alert_id: str) -> AlarmEventRead | None: ...

    @abstractmethod
    def list_alerts(
        self, site_ids: Collection[str], filters: AlertFilters, limit: int
    ) -> list[AlarmEventRead]:
        """Alerts in site_ids matching every set filter, newest created first."""

    @abstractmethod
    def count_raised_alerts(
        self, site_ids: Collection[str]
    ) -> dict[str, dict[AlertSeverity, int]]: ...

    @abstractmethod
    def transition_alert(
        self,
        alert_id: str,
        from_states: Collection[AlertState],
        to_state: AlertState,
        values: dict[str, Any],
    ) -> bool: ...

    # -- measurements --------------------------------------------------------

    @abstractmethod
    def add_measurement(self, measurement: TankMeasurementRead) -> None: ...

    @abstractmethod
    def list_measurements(
        self,
        site_ids: Collection[str],
        site_id: str | None = None,
        tank_id: str | None = None,
        limit: int = 300,
    ) -> list[TankMeasurementRead]:
        """Readings newest first."""

    @abstractmethod
    def list_recent_measurements(self, limit: int) -> list[TankMeasurementRead]:
        """The most recent readings across every site."""

    @abstractmethod
    def apply_measurement_drift(
        self,
        measurement_id: str,
        delta: float,
        ts: datetime,
        capacity: float | None = None,
    ) -> bool:
        """
        volume += delta (floored at 0, capped at capacity when given),
        ullage -= delta (floored at 0), ts = ts.
        """

    # -- audit ---------------------------------------------------------------

    @abstractmethod
    def add_audit(self, entry: AuditLogRead) -> None: ...

    @abstractmethod
    def list_audit(self, org_id: str, limit: int) -> list[AuditLogRead]: ...


class GatewaySource(ABC):
    """Hands out gateways for one unit of use (a request, a tick, a CLI run)."""

    @abstractmethod
    def open(self) -> AbstractContextManager[PersistenceGateway]: ...

    @abstractmethod
    def init_schema(self) -> None:
        """Prepare the backing store. Idempotent."""

    @abstractmethod
    def reset(self) -> None:
        """Drop every stored entity and recreate an empty store."""

    def close(self) -> None:
        """Release process-wide resources."""
