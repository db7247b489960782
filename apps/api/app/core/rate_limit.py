"""Rate limiting configuration for the monitoring API."""

import os

from slowapi import Limiter
from slowapi.util import get_remote_address

# Single-process deployment: limits live in process memory
IS_TESTING = os.getenv("TESTING", "").lower() in ("1", "true", "yes")

limiter = Limiter(
    key_func=get_remote_address,
    storage_uri="memory://",
    enabled=not IS_TESTING,
)

