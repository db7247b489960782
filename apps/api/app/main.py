"""FastAPI application entry point."""
import asyncio
import contextlib
import logging
from contextlib import asynccontextmanager
from uuid import uuid4

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.core.config import settings
from app.core.exceptions import DomainError
from app.core.notifications import NotificationBus
from app.core.structured_logging import build_log_context

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)

# ============================================================================
# Sentry Integration (optional, for production error tracking)
# ============================================================================

if settings.SENTRY_DSN and settings.ENV != "dev":
    import sentry_sdk
    from sentry_sdk.integrations.fastapi import FastApiIntegration
    from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration

    sentry_sdk.init(
        dsn=settings.SENTRY_DSN,
        environment=settings.ENV,
        integrations=[
            FastApiIntegration(transaction_style="endpoint"),
            SqlalchemyIntegration(),
        ],
        traces_sample_rate=0.1,  # 10% of requests for performance monitoring
        send_default_pii=False,  # Don't send PII to Sentry
    )
    logger.info("Sentry initialized for error tracking")

# ============================================================================
# Rate Limiting
# ============================================================================

from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from app.core.rate_limit import limiter


# ============================================================================
# Lifespan
# ============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Open the store, seed demo data, start the notification bus and simulator.

    A store that fails to initialize leaves the app running but not ready:
    /readyz answers 503 and data endpoints refuse to serve.
    """
    from app.db.session import build_gateway_source
    from app.services.seed_service import seed_if_empty
    from app.worker import simulator_loop

    source = build_gateway_source(settings)
    app.state.gateway_source = source
    app.state.store_ready = False
    try:
        source.init_schema()
        if settings.SEED_ON_STARTUP:
            with source.open() as gw:
                seed_if_empty(gw)
        app.state.store_ready = True
    except Exception:
        logger.exception("Storage backend failed to initialize; serving as not ready")

    bus = NotificationBus(queue_size=settings.EVENTS_SUBSCRIBER_QUEUE_SIZE)
    app.state.bus = bus

    simulator_task = None
    if settings.SIMULATOR_ENABLED and app.state.store_ready:
        simulator_task = asyncio.create_task(simulator_loop(source, bus))

    try:
        yield
    finally:
        if simulator_task is not None:
            simulator_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await simulator_task
        bus.close()
        source.close()


# ============================================================================
# FastAPI App
# ============================================================================

app = FastAPI(
    title="Petroleum Monitoring API",
    description="Multi-tenant fuel-site monitoring and administration API",
    version=settings.VERSION,
    docs_url="/docs" if settings.ENV == "dev" else None,
    redoc_url="/redoc" if settings.ENV == "dev" else None,
    lifespan=lifespan,
)

# Add rate limiter
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


# ============================================================================
# Error Handling
# ============================================================================

def _request_context(request: Request) -> dict:
    return build_log_context(
        request_id=getattr(request.state, "request_id", None),
        route=request.url.path,
        method=request.method,
    )


@app.exception_handler(DomainError)
async def domain_error_handler(request: Request, exc: DomainError) -> JSONResponse:
    """Map a domain error to its status code and kind."""
    if exc.status_code >= 500:
        logger.warning("%s: %s", exc.kind, exc.detail, extra=_request_context(request))
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail, "kind": exc.kind},
    )


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error", exc_info=exc, extra=_request_context(request))
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error", "kind": "internal"},
    )


@app.middleware("http")
async def request_id_middleware(request: Request, call_next):
    """Propagate X-Request-ID (or assign one) and echo it on the response."""
    request_id = request.headers.get("x-request-id") or uuid4().hex
    request.state.request_id = request_id
    response = await call_next(request)
    response.headers["X-Request-ID"] = request_id
    return response


# CORS middleware - must be added before routers
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization", "X-Requested-With", "X-Request-ID"],
    expose_headers=["X-Request-ID"],
)

# ============================================================================
# Routers
# ============================================================================

from app.routers import (
    alerts_router,
    audit_router,
    auth_router,
    events_router,
    health_router,
    history_router,
    pumps_router,
    sites_router,
    tanks_router,
)

app.include_router(health_router)
app.include_router(auth_router)

# Sites, plus their pumps, tanks, integration settings and layouts
app.include_router(sites_router)
app.include_router(pumps_router)
app.include_router(tanks_router)

app.include_router(alerts_router)
app.include_router(history_router)

# Audit Trail (Manager + Service Tech)
app.include_router(audit_router)

# Server-sent events
app.include_router(events_router)
