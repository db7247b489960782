"""Events router - live change notifications over server-sent events."""

import logging
from typing import AsyncIterator, Iterable

import anyio
from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import StreamingResponse

from app.core.config import settings
from app.core.deps import get_bus, get_gateway, get_stream_session
from app.core.exceptions import StoreUnavailableError
from app.core.notifications import NotificationBus, Subscription, parse_channels, utc_now_iso
from app.core.site_access import permitted_site_ids
from app.db.gateway import PersistenceGateway
from app.schemas.auth import UserSession
from app.utils.sse import STREAM_HEADERS, format_sse, format_sse_comment, sse_preamble

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Events"])


async def event_stream(
    bus: NotificationBus,
    keepalive_seconds: float,
    channels: Iterable[str] = (),
    site_ids: Iterable[str] | None = None,
    request: Request | None = None,
) -> AsyncIterator[str]:
    """
    Frames for one subscriber until it disconnects or the bus closes.

    The subscription lives only while the stream is iterated: it is made on
    the first frame and always removed from the bus on exit. A response that
    is dropped before streaming starts never registers.
    """
    subscription: Subscription | None = None
    try:
        subscription = bus.subscribe(channels, site_ids=site_ids)
        yield sse_preamble()
        yield format_sse("connected", {"ok": True, "ts": utc_now_iso()})
        while True:
            if request is not None and await request.is_disconnected():
                break
            try:
                notification = await subscription.next(keepalive_seconds)
            except ConnectionResetError:
                break
            if notification is None:
                yield format_sse_comment()
                continue
            yield format_sse(notification.event, notification.payload)
    finally:
        if subscription is not None:
            bus.unsubscribe(subscription)
            logger.debug("Event stream %s closed", subscription.id)


@router.get("/events", response_class=StreamingResponse)
async def stream_events(
    request: Request,
    channels: str | None = Query(None, description="Comma-separated channel names, or *"),
    gw: PersistenceGateway = Depends(get_gateway),
    session: UserSession = Depends(get_stream_session),
    bus: NotificationBus | None = Depends(get_bus),
) -> StreamingResponse:
    """
    Subscribe to change notifications.

    Events only ever carry ids; clients refetch state through the scoped
    endpoints. Sites outside the caller's scope are filtered out.
    """
    if bus is None or bus.closed:
        raise StoreUnavailableError("Event stream is not available")

    site_ids = await anyio.to_thread.run_sync(permitted_site_ids, gw, session)
    return StreamingResponse(
        event_stream(
            bus,
            settings.EVENTS_KEEPALIVE_SECONDS,
            channels=parse_channels(channels),
            site_ids=site_ids,
            request=request,
        ),
        media_type="text/event-stream",
        headers=STREAM_HEADERS,
    )
