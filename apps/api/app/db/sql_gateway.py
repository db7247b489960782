"""Relational persistence gateway (SQLAlchemy)."""

from __future__ import annotations

from collections.abc import Collection, Iterator
from contextlib import contextmanager
from datetime import datetime
from typing import Any

from sqlalchemy import case, delete, func, select, text, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker

from app.core.exceptions import ConflictError
from app.db.enums import AlertSeverity, AlertState, ConnectionKind, LinkStatus
from app.db.base import Base
from app.db.gateway import GatewaySource, PersistenceGateway
from app.db.init_db import init_db
from app.db.models import (
    AlarmEvent,
    AuditLog,
    ConnectionStatus,
    ForecourtLayout,
    Org,
    Pump,
    PumpSide,
    Site,
    SiteIntegration,
    Tank,
    TankMeasurement,
    User,
    UserSiteAssignment,
)
from app.schemas.alert import AlarmEventRead, AlertFilters
from app.schemas.audit import AuditLogRead
from app.schemas.auth import OrgRecord, UserRecord
from app.schemas.equipment import PumpRead, PumpSideRead, TankRead
from app.schemas.layout import LayoutRead
from app.schemas.site import SiteIntegrationRead, SiteRead
from app.schemas.telemetry import ConnectionStatusRead, TankMeasurementRead


def _user_record(row: User) -> UserRecord:
    return UserRecord(
        id=row.id,
        org_id=row.org_id,
        email=row.email,
        name=row.name,
        role=row.role,
        password_hash=row.password_hash,
        site_ids=sorted(a.site_id for a in row.site_assignments),
    )


class SqlGateway(PersistenceGateway):
    """PersistenceGateway over one SQLAlchemy session."""

    def __init__(self, db: Session):
        self.db = db
        self._depth = 0

    # =========================================================================
    # Transaction
    # =========================================================================

    @contextmanager
    def transaction(self) -> Iterator[None]:
        if self._depth:
            # Joined to the enclosing unit of work
            self._depth += 1
            try:
                yield
            finally:
                self._depth -= 1
            return

        self._depth = 1
        try:
            yield
            self.db.commit()
        except BaseException:
            self.db.rollback()
            raise
        finally:
            self._depth = 0

    def ping(self) -> None:
        self.db.execute(text("SELECT 1"))

    def _flush_or_conflict(self, detail: str) -> None:
        try:
            self.db.flush()
        except IntegrityError as exc:
            raise ConflictError(detail) from exc

    # =========================================================================
    # Tenants & users
    # =========================================================================

    def add_org(self, org: OrgRecord) -> None:
        with self.transaction():
            if self.db.get(Org, org.id):
                raise ConflictError(f"Org {org.id} already exists")
            self.db.add(Org(id=org.id, name=org.name))
            self._flush_or_conflict(f"Org {org.id} already exists")

    def add_user(self, user: UserRecord) -> None:
        with self.transaction():
            row = User(
                id=user.id,
                org_id=user.org_id,
                email=user.email,
                name=user.name,
                role=user.role.value,
                password_hash=user.password_hash,
                site_assignments=[
                    UserSiteAssignment(site_id=site_id) for site_id in user.site_ids
                ],
            )
            self.db.add(row)
            self._flush_or_conflict(f"User {user.email} already exists")

    def get_user(self, user_id: str) -> UserRecord | None:
        row = self.db.get(User, user_id)
        return _user_record(row) if row else None

    def get_user_by_email(self, email: str) -> UserRecord | None:
        row = self.db.execute(
            select(User).where(func.lower(User.email) == email.strip().lower())
        ).scalar_one_or_none()
        return _user_record(row) if row else None

    def count_users(self) -> int:
        return self.db.execute(select(func.count()).select_from(User)).scalar_one()

    # =========================================================================
    # Sites
    # =========================================================================

    def list_sites(
        self, org_id: str, site_ids: Collection[str] | None = None
    ) -> list[SiteRead]:
        query = select(Site).where(Site.org_id == org_id)
        if site_ids is not None:
            if not site_ids:
                return []
            query = query.where(Site.id.in_(list(site_ids)))
        rows = self.db.execute(query.order_by(Site.site_code, Site.id)).scalars().all()
        return [SiteRead.model_validate(row) for row in rows]

    def list_site_ids(self, org_id: str) -> list[str]:
        return list(
            self.db.execute(
                select(Site.id).where(Site.org_id == org_id).order_by(Site.site_code)
            ).scalars()
        )

    def get_site(self, site_id: str) -> SiteRead | None:
        row = self.db.get(Site, site_id)
        return SiteRead.model_validate(row) if row else None

    def add_site(self, site: SiteRead) -> None:
        with self.transaction():
            if self.db.get(Site, site.id):
                raise ConflictError(f"Site {site.id} already exists")
            self.db.add(Site(**site.model_dump()))
            self._flush_or_conflict(f"Site {site.id} already exists")

    def update_site(self, site_id: str, values: dict[str, Any]) -> SiteRead | None:
        with self.transaction():
            row = self.db.get(Site, site_id)
            if not row:
                return None
            for field, value in values.items():
                setattr(row, field, value)
            self.db.flush()
            return SiteRead.model_validate(row)

    def delete_site(self, site_id: str) -> bool:
        with self.transaction():
            row = self.db.get(Site, site_id)
            if not row:
                return False
            pump_ids = select(Pump.id).where(Pump.site_id == site_id)
            self.db.execute(delete(AlarmEvent).where(AlarmEvent.site_id == site_id))
            self.db.execute(delete(TankMeasurement).where(TankMeasurement.site_id == site_id))
            self.db.execute(delete(ConnectionStatus).where(ConnectionStatus.site_id == site_id))
            self.db.execute(delete(ForecourtLayout).where(ForecourtLayout.site_id == site_id))
            self.db.execute(delete(PumpSide).where(PumpSide.pump_id.in_(pump_ids)))
            self.db.execute(delete(Pump).where(Pump.site_id == site_id))
            self.db.execute(delete(Tank).where(Tank.site_id == site_id))
            self.db.execute(delete(SiteIntegration).where(SiteIntegration.site_id == site_id))
            self.db.execute(
                delete(UserSiteAssignment).where(UserSiteAssignment.site_id == site_id)
            )
            self.db.execute(delete(Site).where(Site.id == site_id))
            self.db.expire_all()
            return True

    # =========================================================================
    # Integrations
    # =========================================================================

    def add_integration(self, integration: SiteIntegrationRead) -> None:
        with self.transaction():
            self.db.add(SiteIntegration(**integration.model_dump()))
            self._flush_or_conflict(f"Integration for {integration.site_id} already exists")

    def get_integration(self, site_id: str) -> SiteIntegrationRead | None:
        row = self.db.get(SiteIntegration, site_id)
        return SiteIntegrationRead.model_validate(row) if row else None

    def list_integrations(self, site_ids: Collection[str]) -> list[SiteIntegrationRead]:
        if not site_ids:
            return []
        rows = self.db.execute(
            select(SiteIntegration).where(SiteIntegration.site_id.in_(list(site_ids)))
        ).scalars().all()
        return [SiteIntegrationRead.model_validate(row) for row in rows]

    def update_integration(
        self, site_id: str, values: dict[str, Any]
    ) -> SiteIntegrationRead | None:
        with self.transaction():
            row = self.db.get(SiteIntegration, site_id)
            if not row:
                return None
            for field, value in values.items():
                setattr(row, field, value)
            self.db.flush()
            return SiteIntegrationRead.model_validate(row)

    # =========================================================================
    # Tanks
    # =========================================================================

    def list_tanks(self, site_id: str) -> list[TankRead]:
        rows = self.db.execute(
            select(Tank).where(Tank.site_id == site_id).order_by(Tank.atg_tank_id)
        ).scalars().all()
        return [TankRead.model_validate(row) for row in rows]

    def get_tank(self, tank_id: str) -> TankRead | None:
        row = self.db.get(Tank, tank_id)
        return TankRead.model_validate(row) if row else None

    def add_tank(self, tank: TankRead) -> None:
        with self.transaction():
            if self.db.get(Tank, tank.id):
                raise ConflictError(f"Tank {tank.id} already exists")
            self.db.add(Tank(**tank.model_dump()))
            self._flush_or_conflict(f"Tank {tank.id} already exists")

    def update_tank(self, tank_id: str, values: dict[str, Any]) -> TankRead | None:
        with self.transaction():
            row = self.db.get(Tank, tank_id)
            if not row:
                return None
            for field, value in values.items():
                setattr(row, field, value)
            self.db.flush()
            return TankRead.model_validate(row)

    def delete_tank(self, tank_id: str) -> bool:
        with self.transaction():
            row = self.db.get(Tank, tank_id)
            if not row:
                return False
            self.db.execute(delete(TankMeasurement).where(TankMeasurement.tank_id == tank_id))
            self.db.delete(row)
            self.db.flush()
            return True

    # =========================================================================
    # Pumps
    # =========================================================================

    def list_pumps(self, site_ids: Collection[str] | None = None) -> list[PumpRead]:
        query = select(Pump)
        if site_ids is not None:
            if not site_ids:
                return []
            query = query.where(Pump.site_id.in_(list(site_ids)))
        rows = self.db.execute(query.order_by(Pump.site_id, Pump.pump_number)).scalars().all()
        return [PumpRead.model_validate(row) for row in rows]

    def get_pump(self, pump_id: str) -> PumpRead | None:
        row = self.db.get(Pump, pump_id)
        return PumpRead.model_validate(row) if row else None

    def add_pump(self, pump: PumpRead) -> None:
        with self.transaction():
            if self.db.get(Pump, pump.id):
                raise ConflictError(f"Pump {pump.id} already exists")
            row = Pump(
                id=pump.id,
                site_id=pump.site_id,
                pump_number=pump.pump_number,
                label=pump.label,
                active=pump.active,
                sides=[PumpSide(**side.model_dump()) for side in pump.sides],
            )
            self.db.add(row)
            self._flush_or_conflict(f"Pump {pump.id} already exists")

    def update_pump(self, pump_id: str, values: dict[str, Any]) -> PumpRead | None:
        with self.transaction():
            row = self.db.get(Pump, pump_id)
            if not row:
                return None
            for field, value in values.items():
                setattr(row, field, value)
            self.db.flush()
            return PumpRead.model_validate(row)

    def update_pump_side(
        self, side_id: str, values: dict[str, Any]
    ) -> PumpSideRead | None:
        with self.transaction():
            row = self.db.get(PumpSide, side_id)
            if not row:
                return None
            for field, value in values.items():
                setattr(row, field, value)
            self.db.flush()
            return PumpSideRead.model_validate(row)

    def delete_pump(self, pump_id: str) -> bool:
        with self.transaction():
            row = self.db.get(Pump, pump_id)
            if not row:
                return False
            side_ids = [side.id for side in row.sides]
            if side_ids:
                self.db.execute(
                    delete(ConnectionStatus).where(
                        ConnectionStatus.kind == ConnectionKind.PUMP_SIDE.value,
                        ConnectionStatus.target_id.in_(side_ids),
                    )
                )
            self.db.delete(row)
            self.db.flush()
            return True

    # =========================================================================
    # Connectivity
    # =========================================================================

    def add_connection_status(self, row: ConnectionStatusRead) -> None:
        with self.transaction():
            self.db.add(
                ConnectionStatus(
                    id=row.id,
                    site_id=row.site_id,
                    kind=row.kind.value,
                    target_id=row.target_id,
                    status=row.status.value,
                    last_seen_at=row.last_seen_at,
                    details=row.details,
                )
            )
            self._flush_or_conflict(f"Connection row {row.id} already exists")

    def list_connection_status(
        self,
        site_ids: Collection[str] | None = None,
        kind: ConnectionKind | None = None,
    ) -> list[ConnectionStatusRead]:
        query = select(ConnectionStatus)
        if site_ids is not None:
            if not site_ids:
                return []
            query = query.where(ConnectionStatus.site_id.in_(list(site_ids)))
        if kind is not None:
            query = query.where(ConnectionStatus.kind == kind.value)
        rows = self.db.execute(query.order_by(ConnectionStatus.id)).scalars().all()
        return [ConnectionStatusRead.model_validate(row) for row in rows]

    def flip_connection_status(
        self, status_id: str, expected: LinkStatus, new: LinkStatus, seen_at: datetime
    ) -> bool:
        with self.transaction():
            result = self.db.execute(
                update(ConnectionStatus)
                .where(
                    ConnectionStatus.id == status_id,
                    ConnectionStatus.status == expected.value,
                )
                .values(status=new.value, last_seen_at=seen_at)
                .execution_options(synchronize_session=False)
            )
            return result.rowcount == 1

    # =========================================================================
    # Layouts
    # =========================================================================

    def list_layouts(self, site_id: str) -> list[LayoutRead]:
        rows = self.db.execute(
            select(ForecourtLayout)
            .where(ForecourtLayout.site_id == site_id)
            .order_by(ForecourtLayout.version.desc())
        ).scalars().all()
        return [LayoutRead.model_validate(row) for row in rows]

    def get_active_layout(self, site_id: str) -> LayoutRead | None:
        row = self.db.execute(
            select(ForecourtLayout)
            .where(ForecourtLayout.site_id == site_id, ForecourtLayout.is_active.is_(True))
            .order_by(ForecourtLayout.version.desc())
            .limit(1)
        ).scalar_one_or_none()
        return LayoutRead.model_validate(row) if row else None

    def max_layout_version(self, site_id: str) -> int:
        value = self.db.execute(
            select(func.max(ForecourtLayout.version)).where(ForecourtLayout.site_id == site_id)
        ).scalar_one_or_none()
        return int(value or 0)

    def deactivate_layouts(self, site_id: str) -> None:
        with self.transaction():
            self.db.execute(
                update(ForecourtLayout)
                .where(ForecourtLayout.site_id == site_id, ForecourtLayout.is_active.is_(True))
                .values(is_active=False)
                .execution_options(synchronize_session="fetch")
            )

    def add_layout(self, layout: LayoutRead) -> None:
        with self.transaction():
            if self.db.get(ForecourtLayout, layout.id):
                raise ConflictError(f"Layout {layout.id} already exists")
            self.db.add(ForecourtLayout(**layout.model_dump()))
            self._flush_or_conflict(f"Layout {layout.id} already exists")

    # =========================================================================
    # Alarm events
    # =========================================================================

    def add_alert(self, alert: AlarmEventRead) -> None:
        with self.transaction():
            values = alert.model_dump()
            values["severity"] = alert.severity.value
            values["state"] = alert.state.value
            self.db.add(AlarmEvent(**values))
            self._flush_or_conflict(f"Alert {alert.id} already exists")

    def get_alert(self, alert_id: str) -> AlarmEventRead | None:
        row = self.db.get(AlarmEvent, alert_id)
        if not row:
            return None
        self.db.refresh(row)
        return AlarmEventRead.model_validate(row)

    def list_alerts(
        self, site_ids: Collection[str], filters: AlertFilters, limit: int
    ) -> list[AlarmEventRead]:
        if not site_ids:
            return []
        query = select(AlarmEvent).where(AlarmEvent.site_id.in_(list(site_ids)))
        if filters.site_id:
            query = query.where(AlarmEvent.site_id == filters.site_id)
        if filters.state:
            query = query.where(AlarmEvent.state == filters.state.value)
        if filters.severity:
            query = query.where(AlarmEvent.severity == filters.severity.value)
        if filters.component:
            query = query.where(AlarmEvent.component == filters.component)
        if filters.pump_id:
            query = query.where(AlarmEvent.pump_id == filters.pump_id)
        if filters.side:
            query = query.where(AlarmEvent.side == filters.side)
        rows = self.db.execute(
            query.order_by(AlarmEvent.created_at.desc(), AlarmEvent.id.desc()).limit(limit)
        ).scalars().all()
        return [AlarmEventRead.model_validate(row) for row in rows]

    def count_raised_alerts(
        self, site_ids: Collection[str]
    ) -> dict[str, dict[AlertSeverity, int]]:
        if not site_ids:
            return {}
        rows = self.db.execute(
            select(AlarmEvent.site_id, AlarmEvent.severity, func.count())
            .where(
                AlarmEvent.site_id.in_(list(site_ids)),
                AlarmEvent.state == AlertState.RAISED.value,
            )
            .group_by(AlarmEvent.site_id, AlarmEvent.severity)
        ).all()
        counts: dict[str, dict[AlertSeverity, int]] = {}
        for site_id, severity, count in rows:
            counts.setdefault(site_id, {})[AlertSeverity(severity)] = count
        return counts

    def transition_alert(
        self,
        alert_id: str,
        from_states: Collection[AlertState],
        to_state: AlertState,
        values: dict[str, Any],
    ) -> bool:
        with self.transaction():
            result = self.db.execute(
                update(AlarmEvent)
                .where(
                    AlarmEvent.id == alert_id,
                    AlarmEvent.state.in_([state.value for state in from_states]),
                )
                .values(state=to_state.value, **values)
                .execution_options(synchronize_session=False)
            )
            return result.rowcount == 1

    # =========================================================================
    # Measurements
    # =========================================================================

    def add_measurement(self, measurement: TankMeasurementRead) -> None:
        with self.transaction():
            self.db.add(TankMeasurement(**measurement.model_dump()))
            self._flush_or_conflict(f"Measurement {measurement.id} already exists")

    def list_measurements(
        self,
        site_ids: Collection[str],
        site_id: str | None = None,
        tank_id: str | None = None,
        limit: int = 300,
    ) -> list[TankMeasurementRead]:
        if not site_ids:
            return []
        query = select(TankMeasurement).where(TankMeasurement.site_id.in_(list(site_ids)))
        if site_id:
            query = query.where(TankMeasurement.site_id == site_id)
        if tank_id:
            query = query.where(TankMeasurement.tank_id == tank_id)
        rows = self.db.execute(
            query.order_by(TankMeasurement.ts.desc(), TankMeasurement.id).limit(limit)
        ).scalars().all()
        return [TankMeasurementRead.model_validate(row) for row in rows]

    def list_recent_measurements(self, limit: int) -> list[TankMeasurementRead]:
        rows = self.db.execute(
            select(TankMeasurement)
            .order_by(TankMeasurement.ts.desc(), TankMeasurement.id)
            .limit(limit)
        ).scalars().all()
        return [TankMeasurementRead.model_validate(row) for row in rows]

    def apply_measurement_drift(
        self,
        measurement_id: str,
        delta: float,
        ts: datetime,
        capacity: float | None = None,
    ) -> bool:
        # SET expressions read pre-update column values on both SQLite and PostgreSQL
        volume = TankMeasurement.fuel_volume_l + delta
        if capacity is not None and capacity > 0:
            new_volume = case((volume < 0, 0.0), (volume > capacity, capacity), else_=volume)
        else:
            new_volume = case((volume < 0, 0.0), else_=volume)
        # Ullage moves by what actually reached the volume, clamp included
        ullage = func.coalesce(TankMeasurement.ullage_l, 0.0) - (new_volume - TankMeasurement.fuel_volume_l)
        new_ullage = case((ullage < 0, 0.0), else_=ullage)

        with self.transaction():
            result = self.db.execute(
                update(TankMeasurement)
                .where(TankMeasurement.id == measurement_id)
                .values(fuel_volume_l=new_volume, ullage_l=new_ullage, ts=ts)
                .execution_options(synchronize_session=False)
            )
            return result.rowcount == 1

    # =========================================================================
    # Audit
    # =========================================================================

    def add_audit(self, entry: AuditLogRead) -> None:
        with self.transaction():
            self.db.add(AuditLog(**entry.model_dump()))
            self.db.flush()

    def list_audit(self, org_id: str, limit: int) -> list[AuditLogRead]:
        rows = self.db.execute(
            select(AuditLog)
            .where(AuditLog.org_id == org_id)
            .order_by(AuditLog.created_at.desc(), AuditLog.id.desc())
            .limit(limit)
        ).scalars().all()
        return [AuditLogRead.model_validate(row) for row in rows]


class SqlGatewaySource(GatewaySource):
    """One session-backed gateway per unit of use."""

    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    @contextmanager
    def open(self) -> Iterator[PersistenceGateway]:
        db = self._session_factory()
        try:
            yield SqlGateway(db)
        finally:
            db.close()

    def init_schema(self) -> None:
        init_db(self._session_factory.kw["bind"])

    def reset(self) -> None:
        engine = self._session_factory.kw["bind"]
        Base.metadata.drop_all(engine)
        init_db(engine)
