import time
from collections.abc import Callable

import httpx
import structlog

from policyfeed.shared.core.exceptions import ExternalAPIError

logger = structlog.get_logger()

RETRYABLE_STATUS_CODES = frozenset({429, 500, 502, 503, 504})


def execute_with_http_retry(
    *,
    request: Callable[[], httpx.Response],
    url: str,
    max_retries: int,
    retryable_status_codes: frozenset[int] | set[int] = RETRYABLE_STATUS_CODES,
    retry_http_status_log_event: str,
    retry_transport_log_event: str,
    status_error_prefix: str,
    transport_error_prefix: str,
    retry_sleep_base_seconds: float = 0.05,
) -> httpx.Response:
    """
    Execute a blocking HTTP request with unified retry/error semantics.
    """
    last_error: Exception | None = None
    attempts = max(1, int(max_retries))

    for attempt in range(1, attempts + 1):
        try:
            response = request()
            response.raise_for_status()
            return response
        except httpx.HTTPStatusError as exc:
            last_error = exc
            status_code = exc.response.status_code
            retryable = status_code in retryable_status_codes
            if retryable and attempt < attempts:
                logger.warning(
                    retry_http_status_log_event,
                    attempt=attempt,
                    max_attempts=attempts,
                    status_code=status_code,
                    url=url,
                )
                time.sleep(retry_sleep_base_seconds * attempt)
                continue
            raise ExternalAPIError(
                f"{status_error_prefix} with status {status_code}: {_error_body(exc.response)}",
                details={"status_code": status_code},
            ) from exc
        except (httpx.TimeoutException, httpx.TransportError) as exc:
            last_error = exc
            if attempt < attempts:
                logger.warning(
                    retry_transport_log_event,
                    attempt=attempt,
                    max_attempts=attempts,
                    url=url,
                    error=str(exc),
                )
                time.sleep(retry_sleep_base_seconds * attempt)
                continue
            raise ExternalAPIError(f"{transport_error_prefix}: {exc}") from exc
        except httpx.RequestError as exc:
            # Decoding and redirect failures will not improve on retry.
            raise ExternalAPIError(f"{transport_error_prefix}: {exc}") from exc

    raise ExternalAPIError(f"{transport_error_prefix}: {last_error}") from last_error


def _error_body(response: httpx.Response) -> str:
    """Prefers the API's `error` message; falls back to the raw body."""
    try:
        payload = response.json()
    except ValueError:
        return response.text
    if isinstance(payload, dict) and isinstance(payload.get("error"), str):
        return payload["error"]
    return response.text
