"""
HTTP client construction for the policy API.

Each PolicyAPIClient owns one httpx.Client so the connection pool lives and
dies with the client, matching the lifetime of its allow-list cache.
"""

from typing import Optional

import httpx
import structlog

from policyfeed.shared.core.config import Settings, get_settings

logger = structlog.get_logger()


def build_http_client(settings: Optional[Settings] = None) -> httpx.Client:
    """Returns a new blocking httpx.Client configured from settings."""
    settings = settings or get_settings()
    client = httpx.Client(
        timeout=httpx.Timeout(settings.HTTP_TIMEOUT_SECONDS, connect=10.0),
        limits=httpx.Limits(max_connections=20, max_keepalive_connections=5),
        headers={"User-Agent": f"{settings.APP_NAME}/{settings.VERSION}"},
    )
    logger.debug(
        "http_client_initialized",
        timeout_seconds=settings.HTTP_TIMEOUT_SECONDS,
    )
    return client


def close_http_client(client: Optional[httpx.Client]) -> None:
    """Closes a client built by build_http_client; tolerates None and double close."""
    if client is None or client.is_closed:
        return
    client.close()
    logger.debug("http_client_closed")
