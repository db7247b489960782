"""
Live notification bus for the event stream.

Fans change notifications out to subscribed long-lived connections, each
filtered by a set of channel names. Delivery is fire-and-forget: no replay for
late subscribers, and a subscriber whose buffer is full misses the event.

One bus is created per application (see app.main lifespan) and injected into
handlers through app.core.deps.get_bus.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from itertools import count
from typing import Any

logger = logging.getLogger(__name__)

WILDCARD = "*"


def site_channel(site_id: str, topic: str) -> str:
    """site:<id>:<topic> where topic is alerts, telemetry, config or layout."""
    return f"site:{site_id}:{topic}"


def parse_channels(raw: str | None) -> frozenset[str]:
    """Comma-separated channel names; empty means every channel."""
    if not raw:
        return frozenset()
    return frozenset(part.strip() for part in raw.split(",") if part.strip())


@dataclass(frozen=True)
class Notification:
    event: str
    payload: dict[str, Any]

    @property
    def channel(self) -> str | None:
        return self.payload.get("channel")

    @property
    def site_id(self) -> str | None:
        return self.payload.get("siteId")


_CLOSED = Notification(event="__closed__", payload={})


@dataclass(eq=False)
class Subscription:
    """One subscriber: its channel filter and its buffered notifications."""

    id: int
    channels: frozenset[str]
    queue: asyncio.Queue
    # None means every site; otherwise events tagged with another siteId are skipped
    site_ids: frozenset[str] | None = None
    dropped: int = 0
    closed: bool = field(default=False)

    def accepts(self, channel: str | None, site_id: str | None = None) -> bool:
        if site_id is not None and self.site_ids is not None and site_id not in self.site_ids:
            return False
        if not self.channels or WILDCARD in self.channels:
            return True
        if channel == WILDCARD:
            return True
        return channel is not None and channel in self.channels

    async def next(self, timeout: float | None = None) -> Notification | None:
        """
        Wait for the next notification.

        Returns None when the timeout passes first. Raises ConnectionResetError
        once the bus has closed the subscription.
        """
        try:
            item = await asyncio.wait_for(self.queue.get(), timeout)
        except asyncio.TimeoutError:
            return None
        if item is _CLOSED:
            self.closed = True
            raise ConnectionResetError("Notification bus closed")
        return item


class NotificationBus:
    """In-memory registry of subscribers."""

    def __init__(self, queue_size: int = 100):
        self.queue_size = queue_size
        self._subscribers: dict[int, Subscription] = {}
        self._lock = threading.Lock()
        self._ids = count(1)
        self._loop: asyncio.AbstractEventLoop | None = None
        self._closed = False

    def subscribe(
        self,
        channels: Iterable[str] = (),
        site_ids: Iterable[str] | None = None,
    ) -> Subscription:
        """Register a subscriber. Must be called from the event loop."""
        loop = asyncio.get_running_loop()
        subscription = Subscription(
            id=next(self._ids),
            channels=frozenset(channels),
            queue=asyncio.Queue(maxsize=self.queue_size),
            site_ids=frozenset(site_ids) if site_ids is not None else None,
        )
        with self._lock:
            if self._closed:
                raise RuntimeError("Notification bus is closed")
            self._loop = loop
            self._subscribers[subscription.id] = subscription
        logger.debug("Subscriber %s joined (channels=%s)", subscription.id, sorted(subscription.channels))
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        with self._lock:
            removed = self._subscribers.pop(subscription.id, None)
        if removed is not None:
            logger.debug("Subscriber %s left", subscription.id)

    def broadcast(self, event: str, payload: dict[str, Any]) -> int:
        """
        Deliver payload to every subscriber whose filter accepts its channel.

        Safe to call from request threads, the simulator task or the loop
        itself. Returns the number of subscribers it was queued for.
        """
        notification = Notification(event=event, payload=dict(payload))
        with self._lock:
            targets = [
                sub for sub in self._subscribers.values()
                if sub.accepts(notification.channel, notification.site_id)
            ]
            loop = self._loop
        if not targets or loop is None or loop.is_closed():
            return 0

        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None

        if running is loop:
            self._deliver(targets, notification)
        else:
            loop.call_soon_threadsafe(self._deliver, targets, notification)
        return len(targets)

    def _deliver(self, targets: list[Subscription], notification: Notification) -> None:
        for sub in targets:
            try:
                sub.queue.put_nowait(notification)
            except asyncio.QueueFull:
                sub.dropped += 1
                logger.warning(
                    "Subscriber %s buffer full, dropped %s event", sub.id, notification.event
                )

    def close(self) -> None:
        """Disconnect every subscriber. Later subscribe() calls fail."""
        with self._lock:
            self._closed = True
            subscribers = list(self._subscribers.values())
            self._subscribers.clear()
            loop = self._loop

        def _signal() -> None:
            for sub in subscribers:
                while True:
                    try:
                        sub.queue.put_nowait(_CLOSED)
                        break
                    except asyncio.QueueFull:
                        sub.queue.get_nowait()

        if not subscribers or loop is None or loop.is_closed():
            return
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        if running is loop:
            _signal()
        else:
            loop.call_soon_threadsafe(_signal)

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscribers)

    @property
    def closed(self) -> bool:
        return self._closed


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def notify_site(
    bus: NotificationBus | None,
    site_id: str,
    topic: str,
    event: str,
    **data: Any,
) -> None:
    """Broadcast a change on one of a site's channels."""
    if bus is None:
        return
    bus.broadcast(
        event,
        {"channel": site_channel(site_id, topic), "siteId": site_id, "ts": utc_now_iso(), **data},
    )
