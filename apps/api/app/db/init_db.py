"""Idempotent schema initialization, safe to run on every startup."""

from __future__ import annotations

import logging

from sqlalchemy import inspect, text
from sqlalchemy.engine import Engine

from app.db.base import Base
import app.db.models  # noqa: F401  (registers tables on Base.metadata)

logger = logging.getLogger(__name__)

# Columns added after the first release: (table, column, DDL fragment)
LATE_COLUMNS: tuple[tuple[str, str, str], ...] = (
    ("sites", "postal_code", "VARCHAR(32) NOT NULL DEFAULT ''"),
)


def init_db(engine: Engine) -> None:
    """Create missing tables, then add any late columns an older schema lacks."""
    Base.metadata.create_all(engine)

    with engine.begin() as conn:
        inspector = inspect(conn)
        for table, column, ddl in LATE_COLUMNS:
            existing = {col["name"] for col in inspector.get_columns(table)}
            if column in existing:
                continue
            logger.info("Adding column %s.%s", table, column)
            conn.execute(text(f"ALTER TABLE {table} ADD COLUMN {column} {ddl}"))
