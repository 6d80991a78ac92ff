from __future__ import annotations

import json
from typing import Any, Callable, Mapping, Optional

import structlog

from policyfeed.modules.policy.domain.value_filter import AllowListTree
from policyfeed.shared.core.exceptions import (
    ExternalAPIError,
    PolicyFeedException,
    ResponseDecodeError,
)
from policyfeed.shared.core.once import Once

logger = structlog.get_logger()

AllowListFetcher = Callable[[], dict[str, AllowListTree]]


def parse_allow_lists(data: Any) -> dict[str, AllowListTree]:
    """
    Parses the `data` payload of a policyResourceAllowList query into a
    resource type -> rule tree mapping.
    """
    if not isinstance(data, Mapping):
        raise ResponseDecodeError(
            "failed to unmarshal policyResourceAllowList: missing data payload"
        )
    entries = data.get("policyResourceAllowList") or []
    if not isinstance(entries, list):
        raise ResponseDecodeError(
            "failed to unmarshal policyResourceAllowList: expected a list",
            details={"type": type(entries).__name__},
        )

    allow_lists: dict[str, AllowListTree] = {}
    for entry in entries:
        if not isinstance(entry, Mapping):
            raise ResponseDecodeError(
                "failed to unmarshal policyResourceAllowList: expected an object entry"
            )
        resource_type = entry.get("resourceType")
        if not isinstance(resource_type, str):
            raise ResponseDecodeError(
                "failed to unmarshal policyResourceAllowList: resourceType must be a string"
            )
        allow_lists[resource_type] = _parse_tree(resource_type, entry.get("allowed"))
    return allow_lists


def _parse_tree(resource_type: str, allowed: Any) -> AllowListTree:
    if isinstance(allowed, str):
        try:
            allowed = json.loads(allowed)
        except ValueError:
            allowed = None
    if not isinstance(allowed, Mapping):
        logger.warning(
            "policy_allow_list_not_an_object",
            resource_type=resource_type,
            allowed_type=type(allowed).__name__,
        )
        return {}
    return dict(allowed)


class AllowListCache:
    """
    Resource type -> allow-list mapping, fetched at most once.

    The first `ensure_loaded` call runs the fetcher; concurrent callers wait
    for it and every caller afterwards sees the same mapping or re-raises
    the same error. Nothing is refreshed for the lifetime of the cache.
    """

    def __init__(self, fetcher: AllowListFetcher):
        self._fetcher = fetcher
        self._once = Once()
        self._allow_lists: dict[str, AllowListTree] = {}
        self._error: Optional[PolicyFeedException] = None

    def _load(self) -> None:
        try:
            self._allow_lists = self._fetcher()
            logger.debug(
                "policy_allow_list_loaded", resource_types=len(self._allow_lists)
            )
        except PolicyFeedException as exc:
            self._error = exc
            logger.warning("policy_allow_list_fetch_failed", error=str(exc))
        except Exception as exc:
            self._error = ExternalAPIError(
                f"query policyResourceAllowList failed {type(exc).__name__}: {exc}"
            )
            self._error.__cause__ = exc
            logger.warning(
                "policy_allow_list_fetch_failed",
                error=str(exc),
                error_type=type(exc).__name__,
            )

    def ensure_loaded(self) -> None:
        self._once.do(self._load)
        if self._error is not None:
            # Drop frames from earlier raises so the cached error does not grow.
            raise self._error.with_traceback(None)

    @property
    def loaded(self) -> bool:
        return self._once.done

    @property
    def allow_lists(self) -> Mapping[str, AllowListTree]:
        return self._allow_lists

    def get(self, resource_type: str) -> Optional[AllowListTree]:
        return self._allow_lists.get(resource_type)

    def __contains__(self, resource_type: object) -> bool:
        return resource_type in self._allow_lists
