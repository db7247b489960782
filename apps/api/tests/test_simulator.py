"""Tests for the simulator tick and its background loop."""

import asyncio
import logging
import random
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone

import pytest

from app.core.notifications import NotificationBus
from app.db.enums import AlertSeverity, AlertSourceType, AlertState, ConnectionKind, LinkStatus
from app.db.json_gateway import JsonGatewaySource
from app.schemas.equipment import TankRead
from app.schemas.telemetry import TankMeasurementRead
from app.services import site_summary_service
from app.services.seed_service import seed_demo_data
from app.services.simulator_service import SimulatorConfig, run_tick
from app.worker import simulator_loop, tick_once

QUIET = SimulatorConfig(
    alert_probability=0.0,
    atg_alert_probability=0.0,
    flip_probability=0.0,
)


class MaxRandom(random.Random):
    """Always drifts by the full positive amount."""

    def uniform(self, a, b):
        return b


def _new_alerts(gw, result):
    return [gw.get_alert(alert_id) for alert_id in result.alert_ids]


# =============================================================================
# Tick
# =============================================================================

def test_drift_touches_every_recent_measurement_within_bounds(seeded):
    before = {m.id: m.fuel_volume_l for m in seeded.list_recent_measurements(200)}
    now = datetime.now(timezone.utc) + timedelta(minutes=5)

    result = run_tick(seeded, QUIET, rng=random.Random(1), now=now)

    assert result.drifted == len(before) == 5
    assert result.alert_ids == []
    assert result.flipped == []
    for row in seeded.list_recent_measurements(200):
        assert abs(row.fuel_volume_l - before[row.id]) <= QUIET.drift_liters
        assert row.ts == now


def test_drift_clamped_to_capacity(seeded):
    seeded.add_tank(TankRead(id="tank-site-1002-9", site_id="site-1002", atg_tank_id="9",
                             label="Tiny", product="ULR", capacity_liters=100))
    seeded.add_measurement(TankMeasurementRead(
        id="tm-tiny", site_id="site-1002", tank_id="tank-site-1002-9",
        ts=datetime.now(timezone.utc), fuel_volume_l=99, ullage_l=1,
    ))

    run_tick(seeded, QUIET, rng=MaxRandom())

    row = seeded.list_measurements(["site-1002"], tank_id="tank-site-1002-9")[0]
    assert row.fuel_volume_l == 100
    assert row.ullage_l == 0


def _drain_nearly_empty_tank(gw):
    gw.add_tank(TankRead(id="tank-site-1002-8", site_id="site-1002", atg_tank_id="8",
                         label="Nearly empty", product="ULR", capacity_liters=10000))
    gw.add_measurement(TankMeasurementRead(
        id="tm-nearly-empty", site_id="site-1002", tank_id="tank-site-1002-8",
        ts=datetime.now(timezone.utc), fuel_volume_l=50, ullage_l=9950,
    ))
    assert gw.apply_measurement_drift("tm-nearly-empty", -100, datetime.now(timezone.utc), 10000)
    return gw.list_measurements(["site-1002"], tank_id="tank-site-1002-8")[0]


def test_ullage_follows_clamped_volume(seeded):
    row = _drain_nearly_empty_tank(seeded)
    assert row.fuel_volume_l == 0
    assert row.ullage_l == 10000


def test_ullage_follows_clamped_volume_on_json_store():
    source = JsonGatewaySource(None)
    with source.open() as gw:
        seed_demo_data(gw)
        row = _drain_nearly_empty_tank(gw)
    assert row.fuel_volume_l == 0
    assert row.ullage_l == 10000


def test_forced_pump_alert(seeded):
    config = SimulatorConfig(
        alert_probability=1.0,
        critical_probability=1.0,
        atg_alert_probability=0.0,
        flip_probability=0.0,
    )
    bus_result = run_tick(seeded, config, rng=random.Random(3))

    (alert,) = _new_alerts(seeded, bus_result)
    assert alert.state == AlertState.RAISED
    assert alert.severity == AlertSeverity.CRITICAL
    assert alert.source_type == AlertSourceType.PUMP_SIDE.value
    assert (alert.component, alert.code, alert.raw_payload) == ("printer", "SIM-01", "simulator")
    assert alert.message == "Synthetic connectivity/print fault"
    assert alert.side in ("A", "B")
    assert seeded.get_pump(alert.pump_id).site_id == alert.site_id
    assert "alerts" in bus_result.sites[alert.site_id]


def test_forced_atg_alert(seeded):
    config = SimulatorConfig(alert_probability=0.0, atg_alert_probability=1.0, flip_probability=0.0)
    result = run_tick(seeded, config, rng=random.Random(5))

    (alert,) = _new_alerts(seeded, result)
    assert alert.source_type == AlertSourceType.ATG.value
    assert (alert.component, alert.code, alert.severity) == ("atg", "ATG-SIM", AlertSeverity.WARN)
    assert seeded.get_tank(alert.tank_id).site_id == alert.site_id


def test_flips_every_side_and_back(seeded):
    config = SimulatorConfig(alert_probability=0.0, atg_alert_probability=0.0, flip_probability=1.0)

    result = run_tick(seeded, config, rng=random.Random(9))
    rows = seeded.list_connection_status(kind=ConnectionKind.PUMP_SIDE)
    assert len(result.flipped) == len(rows) == 12
    assert {r.status for r in rows} == {LinkStatus.DISCONNECTED}
    summaries = site_summary_service.summarize(seeded, "org-demo", ["site-1001", "site-1002"])
    assert [s.pump_sides_connected for s in summaries] == [0, 0]

    run_tick(seeded, config, rng=random.Random(9))
    rows = seeded.list_connection_status(kind=ConnectionKind.PUMP_SIDE)
    assert {r.status for r in rows} == {LinkStatus.CONNECTED}


def test_drift_refreshes_atg_heartbeat(seeded):
    later = datetime.now(timezone.utc) + timedelta(hours=1)
    stale = site_summary_service.summarize(seeded, "org-demo", ["site-1001"], now=later)[0]
    assert stale.atg_stale is True

    run_tick(seeded, QUIET, rng=random.Random(2), now=later)

    fresh = site_summary_service.summarize(seeded, "org-demo", ["site-1001"], now=later)[0]
    assert fresh.atg_last_seen_at == later
    assert fresh.atg_stale is False


@pytest.mark.asyncio
async def test_tick_notifies_each_touched_site(seeded):
    bus = NotificationBus()
    sub = bus.subscribe()
    config = SimulatorConfig(alert_probability=0.0, atg_alert_probability=0.0, flip_probability=0.0)

    run_tick(seeded, config, rng=random.Random(4), bus=bus)

    channels = set()
    while (notification := await sub.next(timeout=0.05)) is not None:
        assert notification.event == "site:update"
        channels.add(notification.channel)
    assert channels == {"site:site-1001:telemetry", "site:site-1002:telemetry"}


def test_same_seed_same_outcome():
    config = SimulatorConfig(alert_probability=0.5, atg_alert_probability=0.5, flip_probability=0.3)
    now = datetime(2026, 1, 1, tzinfo=timezone.utc)
    outcomes = []
    for _ in range(2):
        source = JsonGatewaySource(None)
        with source.open() as gw:
            seed_demo_data(gw)
            result = run_tick(gw, config, rng=random.Random(42), now=now)
            volumes = [(m.id, m.fuel_volume_l) for m in gw.list_recent_measurements(200)]
            alerts = [(a.site_id, a.code, a.side, a.severity) for a in _new_alerts(gw, result)]
            outcomes.append((volumes, alerts, sorted(result.flipped)))

    assert outcomes[0] == outcomes[1]


# =============================================================================
# Background loop
# =============================================================================

class FlakySource:
    """Gateway source whose first open() fails."""

    def __init__(self, gateway):
        self.gateway = gateway
        self.calls = 0

    @contextmanager
    def open(self):
        self.calls += 1
        if self.calls == 1:
            raise ConnectionError("store went away")
        yield self.gateway


def test_tick_once_logs_and_swallows_failures(seeded, caplog):
    source = FlakySource(seeded)
    with caplog.at_level(logging.ERROR, logger="app.worker"):
        assert tick_once(source, QUIET, random.Random(0)) is None
    assert "Simulator tick failed" in caplog.text

    result = tick_once(source, QUIET, random.Random(0))
    assert result is not None
    assert result.drifted == 5


@pytest.mark.asyncio
async def test_loop_keeps_ticking_after_a_failure():
    source = JsonGatewaySource(None)
    with source.open() as gw:
        seed_demo_data(gw)
    flaky = FlakySource(source.gateway)

    task = asyncio.create_task(
        simulator_loop(flaky, config=QUIET, interval_seconds=0.01, rng=random.Random(0))
    )
    for _ in range(200):
        if flaky.calls >= 3:
            break
        await asyncio.sleep(0.01)
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    assert flaky.calls >= 3
