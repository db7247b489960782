from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.core.config import Settings, settings
from app.db.gateway import GatewaySource
from app.db.json_gateway import JsonGatewaySource
from app.db.sql_gateway import SqlGatewaySource


def build_engine(database_url: str) -> Engine:
    """Create an engine with per-backend connection options."""
    url = make_url(database_url)
    backend = url.get_backend_name()
    kwargs: dict = {"pool_pre_ping": True}
    connect_args: dict = {}

    if backend.startswith("postgresql"):
        connect_args["options"] = "-c timezone=utc"
    elif backend == "sqlite":
        # Request handlers run in a threadpool
        connect_args["check_same_thread"] = False
        if url.database in (None, "", ":memory:"):
            kwargs["poolclass"] = StaticPool

    engine = create_engine(database_url, connect_args=connect_args, **kwargs)

    if backend == "sqlite":
        @event.listens_for(engine, "connect")
        def _enable_foreign_keys(dbapi_connection, connection_record):  # noqa: ARG001
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

    return engine


engine = build_engine(settings.DATABASE_URL)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def build_gateway_source(app_settings: Settings = settings) -> GatewaySource:
    """Gateway source for the configured STORAGE_BACKEND."""
    if app_settings.uses_json_store:
        return JsonGatewaySource(app_settings.JSON_STORE_PATH or None)
    return SqlGatewaySource(SessionLocal)
