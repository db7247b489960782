"""
Telemetry simulator tick.

Stands in for real ATG and pump-side polling in demos. Each tick:
1. drifts the most recent measurement rows by a bounded random amount,
   refreshing the ATG heartbeat of every site it touched
2. maybe raises one synthetic pump-side alert (and, separately, an ATG one)
3. flips each pump-side link with a small probability
4. broadcasts one notification per affected site

Every write is a single-row atomic update, so ticks interleave safely with
user requests. Probabilities and magnitudes come from SimulatorConfig so
tests can force outcomes with a seeded or fake random.Random.
"""

import logging
import random
from dataclasses import dataclass, field
from datetime import datetime, timezone

from app.core.config import Settings
from app.core.notifications import NotificationBus, notify_site
from app.db.enums import AlertSeverity, AlertSourceType, ConnectionKind, LinkStatus, PumpSideLetter
from app.db.gateway import PersistenceGateway
from app.services import alert_service

logger = logging.getLogger(__name__)

SIM_PUMP_COMPONENT = "printer"
SIM_PUMP_CODE = "SIM-01"
SIM_PUMP_MESSAGE = "Synthetic connectivity/print fault"
SIM_ATG_COMPONENT = "atg"
SIM_ATG_CODE = "ATG-SIM"
SIM_ATG_MESSAGE = "Synthetic ATG variance alert"
SIM_RAW_PAYLOAD = "simulator"


@dataclass(frozen=True)
class SimulatorConfig:
    drift_liters: float = 100.0
    measurement_window: int = 200
    alert_probability: float = 0.2
    critical_probability: float = 0.3
    atg_alert_probability: float = 0.08
    flip_probability: float = 0.03
    clamp_to_capacity: bool = True

    @classmethod
    def from_settings(cls, settings: Settings) -> "SimulatorConfig":
        return cls(
            drift_liters=settings.SIMULATOR_DRIFT_LITERS,
            measurement_window=settings.SIMULATOR_MEASUREMENT_WINDOW,
            alert_probability=settings.SIMULATOR_ALERT_PROBABILITY,
            critical_probability=settings.SIMULATOR_CRITICAL_PROBABILITY,
            atg_alert_probability=settings.SIMULATOR_ATG_ALERT_PROBABILITY,
            flip_probability=settings.SIMULATOR_CONNECTIVITY_FLIP_PROBABILITY,
            clamp_to_capacity=settings.SIMULATOR_CLAMP_TO_CAPACITY,
        )


@dataclass
class TickResult:
    drifted: int = 0
    alert_ids: list[str] = field(default_factory=list)
    flipped: list[str] = field(default_factory=list)
    # site id -> channel topics touched
    sites: dict[str, set[str]] = field(default_factory=dict)

    def touch(self, site_id: str, topic: str) -> None:
        self.sites.setdefault(site_id, set()).add(topic)


def _drift_measurements(
    gw: PersistenceGateway,
    config: SimulatorConfig,
    rng: random.Random,
    now: datetime,
    result: TickResult,
) -> None:
    measurements = gw.list_recent_measurements(config.measurement_window)
    capacities: dict[str, float | None] = {}
    for row in measurements:
        delta = round(rng.uniform(-config.drift_liters, config.drift_liters), 1)
        capacity = None
        if config.clamp_to_capacity:
            if row.tank_id not in capacities:
                tank = gw.get_tank(row.tank_id)
                capacities[row.tank_id] = tank.capacity_liters if tank else None
            capacity = capacities[row.tank_id]
        if gw.apply_measurement_drift(row.id, delta, now, capacity):
            result.drifted += 1
            result.touch(row.site_id, "telemetry")

    # A fresh reading means the gauge answered
    for row in gw.list_connection_status(list(result.sites), kind=ConnectionKind.ATG):
        if row.status == LinkStatus.CONNECTED:
            gw.flip_connection_status(row.id, LinkStatus.CONNECTED, LinkStatus.CONNECTED, now)


def _maybe_raise_alerts(
    gw: PersistenceGateway,
    config: SimulatorConfig,
    rng: random.Random,
    now: datetime,
    result: TickResult,
) -> None:
    if rng.random() < config.alert_probability:
        pumps = gw.list_pumps()
        if pumps:
            pump = rng.choice(pumps)
            severity = (
                AlertSeverity.CRITICAL
                if rng.random() < config.critical_probability
                else AlertSeverity.WARN
            )
            side = rng.choice([letter.value for letter in PumpSideLetter])
            alert = alert_service.new_alert(
                pump.site_id,
                source_type=AlertSourceType.PUMP_SIDE,
                pump_id=pump.id,
                side=side,
                component=SIM_PUMP_COMPONENT,
                severity=severity,
                code=SIM_PUMP_CODE,
                message=SIM_PUMP_MESSAGE,
                raw_payload=SIM_RAW_PAYLOAD,
                now=now,
            )
            gw.add_alert(alert)
            result.alert_ids.append(alert.id)
            result.touch(pump.site_id, "alerts")

    if config.atg_alert_probability and rng.random() < config.atg_alert_probability:
        measurements = gw.list_recent_measurements(config.measurement_window)
        if measurements:
            row = rng.choice(measurements)
            alert = alert_service.new_alert(
                row.site_id,
                source_type=AlertSourceType.ATG,
                tank_id=row.tank_id,
                component=SIM_ATG_COMPONENT,
                severity=AlertSeverity.WARN,
                code=SIM_ATG_CODE,
                message=SIM_ATG_MESSAGE,
                raw_payload=SIM_RAW_PAYLOAD,
                now=now,
            )
            gw.add_alert(alert)
            result.alert_ids.append(alert.id)
            result.touch(row.site_id, "alerts")


def _flip_connectivity(
    gw: PersistenceGateway,
    config: SimulatorConfig,
    rng: random.Random,
    now: datetime,
    result: TickResult,
) -> None:
    for row in gw.list_connection_status(kind=ConnectionKind.PUMP_SIDE):
        if rng.random() >= config.flip_probability:
            continue
        # Compare-and-set: a concurrent writer that already changed the row wins
        if gw.flip_connection_status(row.id, row.status, row.status.flipped(), now):
            result.flipped.append(row.id)
            result.touch(row.site_id, "alerts")


def run_tick(
    gw: PersistenceGateway,
    config: SimulatorConfig,
    rng: random.Random | None = None,
    bus: NotificationBus | None = None,
    now: datetime | None = None,
) -> TickResult:
    """Run one simulator tick. Exceptions propagate to the caller."""
    rng = rng or random.Random()
    now = now or datetime.now(timezone.utc)
    result = TickResult()

    _drift_measurements(gw, config, rng, now, result)
    _maybe_raise_alerts(gw, config, rng, now, result)
    _flip_connectivity(gw, config, rng, now, result)

    for site_id, topics in result.sites.items():
        for topic in sorted(topics):
            notify_site(bus, site_id, topic, "site:update")

    logger.debug(
        "Simulator tick: drifted=%d alerts=%d flipped=%d",
        result.drifted, len(result.alert_ids), len(result.flipped),
    )
    return result
