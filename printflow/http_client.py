"""Shared HTTP client — connection pooling for outbound requests.

One module-level httpx.Client used by the email API client. Settlement code
is synchronous (sync SQLAlchemy sessions), so the client is too.

Usage:
    from printflow.http_client import http
    resp = http.post(url, json=payload, timeout=15)
"""

import httpx

_LIMITS = httpx.Limits(
    max_connections=20,
    max_keepalive_connections=10,
    keepalive_expiry=30,
)

http = httpx.Client(
    timeout=30,
    limits=_LIMITS,
    follow_redirects=False,
)


def close_clients():
    """Shut down the shared client. Call from app lifespan shutdown."""
    http.close()
