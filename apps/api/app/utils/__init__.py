"""Utility modules."""

from app.utils.sse import (
    STREAM_HEADERS,
    format_sse,
    format_sse_comment,
    sse_preamble,
)

__all__ = [
    "STREAM_HEADERS",
    "format_sse",
    "format_sse_comment",
    "sse_preamble",
]
