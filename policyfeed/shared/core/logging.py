import logging
import re
import sys
from typing import Any, Optional, cast

import structlog

from policyfeed.shared.core.config import Settings, get_settings

_SECRET_FIELDS = {
    "api_key",
    "apikey",
    "x_api_key",
    "authorization",
    "token",
    "secret",
    "password",
    "access_token",
    "refresh_token",
}
_SECRET_SUFFIXES = ("_token", "_secret", "_password", "_key")


def _is_secret_key(key: Any) -> bool:
    key_norm = str(key).lower().strip().replace("-", "_")
    if key_norm in _SECRET_FIELDS:
        return True
    if key_norm.endswith(_SECRET_SUFFIXES):
        return True
    tokens = [t for t in re.split(r"[^a-z0-9]+", key_norm) if t]
    return any(t in _SECRET_FIELDS for t in tokens)


def secret_redactor(
    _logger: Any, _method_name: str, event_dict: dict[str, Any]
) -> dict[str, Any]:
    """
    Recursively redact API keys and other credentials from log events.
    Resource values are never logged, but request headers can be.
    """

    def redact_recursive(data: Any) -> Any:
        if isinstance(data, dict):
            return {
                k: ("[REDACTED]" if _is_secret_key(k) else redact_recursive(v))
                for k, v in data.items()
            }
        if isinstance(data, list):
            return [redact_recursive(item) for item in data]
        return data

    redacted = redact_recursive(event_dict)
    if isinstance(redacted, dict):
        return cast(dict[str, Any], redacted)
    return {}


def setup_logging(settings: Optional[Settings] = None) -> None:
    """
    Configures structlog for the host process.

    The library never configures logging on import; the embedding CLI or
    service calls this once at startup, before building a PolicyAPIClient.
    """
    settings = settings or get_settings()

    base_processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        secret_redactor,
    ]

    if settings.DEBUG:
        renderer: Any = structlog.dev.ConsoleRenderer()
        processors = base_processors + [renderer]
    else:
        renderer = structlog.processors.JSONRenderer()
        processors = base_processors + [structlog.processors.dict_tracebacks, renderer]

    min_level = logging.getLevelName((settings.LOG_LEVEL or "").upper())
    if not isinstance(min_level, int):
        min_level = logging.DEBUG if settings.DEBUG else logging.INFO

    structlog.configure(
        processors=cast(Any, processors),
        wrapper_class=structlog.make_filtering_bound_logger(min_level),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )

    # Route library logs (httpx) through the same stream.
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=min_level,
    )
