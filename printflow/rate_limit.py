"""Shared rate limiter with in-memory storage.

Applied per endpoint with @limiter.limit(...); PDF rendering is the only
expensive path. Limits are per worker process.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

from .config import settings

limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[settings.rate_limit_default],
    enabled=settings.rate_limit_enabled,
)
