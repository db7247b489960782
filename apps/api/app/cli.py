"""CLI tools for store setup, demo data and the simulator."""

import random

import click

from app.core.config import settings
from app.db.session import build_gateway_source
from app.services.seed_service import DEMO_PASSWORD, DEMO_USERS, seed_demo_data
from app.services.simulator_service import SimulatorConfig, run_tick


@click.group()
def cli():
    """Petroleum monitoring CLI tools."""
    pass


@cli.command("init-db")
def init_db_command():
    """
    Create the schema (or upgrade it in place).

    Safe to run repeatedly.

    Example:
        python -m app.cli init-db
    """
    source = build_gateway_source(settings)
    try:
        source.init_schema()
    finally:
        source.close()
    click.echo(f"✅ Schema ready ({'json' if settings.uses_json_store else 'sql'} backend)")


@cli.command()
@click.option("--force", is_flag=True, help="Wipe existing data before seeding")
def seed(force: bool):
    """
    Load the demo org, users, sites, equipment, layouts and one alert.

    Example:
        python -m app.cli seed --force
    """
    source = build_gateway_source(settings)
    try:
        source.init_schema()
        if force:
            source.reset()
        with source.open() as gw:
            if gw.count_users() > 0:
                click.echo("❌ Store already has data (use --force to wipe it)")
                return
            site_ids = seed_demo_data(gw)
    finally:
        source.close()

    click.echo(f"✅ Seeded {len(site_ids)} sites")
    for _, email, _, role in DEMO_USERS:
        click.echo(f"   {role.value:<13} {email} / {DEMO_PASSWORD}")


@cli.command()
@click.option("--ticks", default=1, show_default=True, type=click.IntRange(min=1), help="Number of ticks")
@click.option("--seed", "rng_seed", type=int, default=None, help="Random seed for repeatable runs")
def simulate(ticks: int, rng_seed: int | None):
    """
    Run simulator ticks synchronously against the configured store.

    Example:
        python -m app.cli simulate --ticks 10
    """
    config = SimulatorConfig.from_settings(settings)
    rng = random.Random(rng_seed)
    source = build_gateway_source(settings)
    try:
        source.init_schema()
        for n in range(1, ticks + 1):
            with source.open() as gw:
                result = run_tick(gw, config, rng=rng)
            click.echo(
                f"tick {n}: drifted={result.drifted} "
                f"alerts={len(result.alert_ids)} flipped={len(result.flipped)}"
            )
    finally:
        source.close()


if __name__ == "__main__":
    cli()
