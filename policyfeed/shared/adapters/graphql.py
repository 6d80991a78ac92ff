from __future__ import annotations

import json
import uuid
from dataclasses import dataclass, field
from typing import Any, Optional

import httpx
import structlog

from policyfeed.shared.adapters.http_retry import execute_with_http_retry
from policyfeed.shared.core.config import Settings, get_settings
from policyfeed.shared.core.exceptions import (
    ConfigurationError,
    ExternalAPIError,
    GraphQLResponseError,
)
from policyfeed.shared.core.http import build_http_client, close_http_client

logger = structlog.get_logger()


@dataclass(frozen=True)
class GraphQLQuery:
    query: str
    variables: dict[str, Any] = field(default_factory=dict)

    def to_payload(self) -> dict[str, Any]:
        return {"query": self.query, "variables": self.variables}


def raise_for_graphql_errors(result: dict[str, Any], message: str) -> None:
    """Raises GraphQLResponseError carrying the raw errors text when present."""
    if "errors" not in result:
        return
    raw = json.dumps(result["errors"], separators=(",", ":"))
    raise GraphQLResponseError(f"{message}, received graphql error: {raw}", errors=raw)


class GraphQLClient:
    """
    Posts batches of GraphQL queries to `<endpoint>/graphql`.

    The response body is a JSON array with one envelope per query, in the
    order the queries were sent.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        *,
        http_client: Optional[httpx.Client] = None,
        trace_id: Optional[str] = None,
    ):
        self.settings = settings or get_settings()
        if not self.settings.POLICY_API_ENDPOINT:
            raise ConfigurationError("POLICY_API_ENDPOINT is not configured")
        self.endpoint = self.settings.POLICY_API_ENDPOINT
        self.api_key = self.settings.API_KEY or ""
        self.trace_id = trace_id or str(uuid.uuid4())
        self._owns_http_client = http_client is None
        self._http_client = http_client or build_http_client(self.settings)

    @property
    def url(self) -> str:
        return f"{self.endpoint}/graphql"

    def _headers(self) -> dict[str, str]:
        return {
            "Content-Type": "application/json",
            "User-Agent": f"{self.settings.APP_NAME}/{self.settings.VERSION}",
            "X-Api-Key": self.api_key,
            "X-Trace-Id": f"cli={self.trace_id}",
        }

    def do_queries(self, queries: list[GraphQLQuery]) -> list[dict[str, Any]]:
        payload = [q.to_payload() for q in queries]
        content = json.dumps(payload, separators=(",", ":"))

        response = execute_with_http_retry(
            request=lambda: self._http_client.post(
                self.url, content=content, headers=self._headers()
            ),
            url=self.url,
            max_retries=self.settings.HTTP_MAX_RETRIES,
            retry_http_status_log_event="policy_api_retry_http_status",
            retry_transport_log_event="policy_api_retry_transport_error",
            status_error_prefix="policy API request failed",
            transport_error_prefix="policy API request failed",
            retry_sleep_base_seconds=self.settings.HTTP_RETRY_BACKOFF_SECONDS,
        )

        try:
            body = response.json()
        except ValueError as exc:
            raise ExternalAPIError(
                f"policy API returned invalid JSON: {exc}"
            ) from exc

        if not isinstance(body, list):
            raise ExternalAPIError(
                "policy API returned an unexpected response shape",
                details={"type": type(body).__name__},
            )

        results = [item if isinstance(item, dict) else {} for item in body]
        logger.debug(
            "policy_api_queries_completed",
            queries=len(queries),
            results=len(results),
            trace_id=self.trace_id,
        )
        return results

    def close(self) -> None:
        if self._owns_http_client:
            close_http_client(self._http_client)
