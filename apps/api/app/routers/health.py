"""Health router - liveness, readiness and status."""

import logging

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from app.core.config import settings

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])


def _is_ready(request: Request) -> bool:
    """Store initialized at startup and still answering now."""
    state = request.app.state
    source = getattr(state, "gateway_source", None)
    if not getattr(state, "store_ready", False) or source is None:
        return False
    try:
        with source.open() as gw:
            gw.ping()
    except Exception:
        logger.warning("Store ping failed", exc_info=True)
        return False
    return True


@router.get("/healthz")
def liveness() -> dict:
    return {"status": "ok"}


@router.get("/readyz")
def readiness(request: Request):
    """503 until the backing store has been initialized."""
    if not _is_ready(request):
        return JSONResponse(status_code=503, content={"status": "not_ready"})
    return {"status": "ready"}


@router.get("/health")
def health(request: Request):
    """
    Health check endpoint.

    Reports readiness rather than failing outright, so a degraded store is
    visible instead of looking healthy with empty data.
    """
    ready = _is_ready(request)
    return JSONResponse(
        status_code=200 if ready else 503,
        content={
            "status": "ok" if ready else "degraded",
            "ready": ready,
            "env": settings.ENV,
            "version": settings.VERSION,
            "storage": "json" if settings.uses_json_store else "sql",
        },
    )
