"""Server-sent events framing."""

from __future__ import annotations

import json
from typing import Any

KEEPALIVE_COMMENT = "keepalive"


def format_sse(event_type: str, data: dict[str, Any]) -> str:
    """One named event. Datetimes and enums in data are rendered with str()."""
    return f"event: {event_type}\ndata: {json.dumps(data, default=str, separators=(',', ':'))}\n\n"


def format_sse_comment(comment: str = KEEPALIVE_COMMENT) -> str:
    """A comment line; clients ignore it, proxies see traffic."""
    return f": {comment}\n\n"


def sse_preamble(padding_bytes: int = 2048) -> str:
    """Padding comment so buffering proxies flush the stream early."""
    return format_sse_comment(" " * max(padding_bytes, 1))


STREAM_HEADERS = {
    "Cache-Control": "no-cache, no-transform",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}
