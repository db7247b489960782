"""
Background simulator worker.

Usage:
    python -m app.worker

The API process runs the same loop as an asyncio task (see app.main). Run it
standalone only against a store the API is not already simulating.
"""

import asyncio
import logging
import random

import anyio

from app.core.config import settings
from app.core.notifications import NotificationBus
from app.core.structured_logging import build_log_context
from app.db.gateway import GatewaySource
from app.services.simulator_service import SimulatorConfig, TickResult, run_tick

logger = logging.getLogger(__name__)


def tick_once(
    source: GatewaySource,
    config: SimulatorConfig,
    rng: random.Random,
    bus: NotificationBus | None = None,
) -> TickResult | None:
    """Run one tick in its own unit of use. Failures are logged, never raised."""
    try:
        with source.open() as gw:
            return run_tick(gw, config, rng=rng, bus=bus)
    except Exception:
        logger.exception(
            "Simulator tick failed",
            extra=build_log_context(route="simulator", method="background"),
        )
        return None


async def simulator_loop(
    source: GatewaySource,
    bus: NotificationBus | None = None,
    config: SimulatorConfig | None = None,
    interval_seconds: float | None = None,
    rng: random.Random | None = None,
) -> None:
    """Tick forever on a fixed interval. Each tick is independent of the last."""
    config = config or SimulatorConfig.from_settings(settings)
    interval = interval_seconds if interval_seconds is not None else settings.SIMULATOR_INTERVAL_SECONDS
    rng = rng or random.Random()
    logger.info("Simulator starting (interval: %ss)", interval)

    while True:
        # Store calls block; keep them off the event loop
        await anyio.to_thread.run_sync(tick_once, source, config, rng, bus)
        await asyncio.sleep(interval)


def main() -> None:
    """Entry point for a standalone simulator process."""
    from app.db.session import build_gateway_source

    logging.basicConfig(
        level=settings.LOG_LEVEL,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    source = build_gateway_source(settings)
    source.init_schema()
    try:
        asyncio.run(simulator_loop(source))
    except KeyboardInterrupt:
        logger.info("Simulator shutting down")
    finally:
        source.close()


if __name__ == "__main__":
    main()
