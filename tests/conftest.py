"""
Global pytest fixtures for the policyfeed test suite.

Provides:
- Isolated settings (no .env or ambient environment leakage)
- Resource record factories
- A respx-backed policy API endpoint
"""
import os
from typing import Any, Generator, Optional

import pytest
import respx

# Set test environment BEFORE any package imports
os.environ["POLICY_API_ENDPOINT"] = "https://policy.test"
os.environ["API_KEY"] = "test-api-key"
os.environ.pop("LOG_LEVEL", None)

from policyfeed.schemas.resources import ResourceRecord  # noqa: E402
from policyfeed.shared.core.config import Settings, get_settings  # noqa: E402


@pytest.fixture(autouse=True)
def clear_settings_cache() -> Generator[None, None, None]:
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def settings() -> Settings:
    return Settings(
        _env_file=None,
        POLICY_API_ENDPOINT="https://policy.test",
        API_KEY="test-api-key",
        HTTP_MAX_RETRIES=1,
        HTTP_RETRY_BACKOFF_SECONDS=0,
    )


@pytest.fixture
def policy_api() -> Generator[respx.MockRouter, None, None]:
    with respx.mock(assert_all_called=False) as router:
        yield router


def make_resource(
    address: str,
    *,
    type: str = "aws_instance",
    provider_name: str = "aws",
    tags: Optional[dict[str, str]] = None,
    raw_values: Any = None,
    metadata: Optional[dict[str, Any]] = None,
) -> ResourceRecord:
    return ResourceRecord(
        type=type,
        provider_name=provider_name,
        address=address,
        tags=tags,
        raw_values={} if raw_values is None else raw_values,
        metadata=dict(metadata or {}),
    )


@pytest.fixture
def resource_factory():
    return make_resource
