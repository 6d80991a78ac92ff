import threading
import time
from concurrent.futures import ThreadPoolExecutor
from unittest.mock import MagicMock, patch

import pytest

from policyfeed.modules.policy.domain.allow_list import AllowListCache, parse_allow_lists
from policyfeed.shared.core.exceptions import ExternalAPIError, ResponseDecodeError


def test_parse_allow_lists_builds_type_mapping():
    data = {
        "policyResourceAllowList": [
            {"resourceType": "aws_instance", "allowed": {"instance_type": True}},
            {"resourceType": "aws_s3_bucket", "allowed": '{"bucket": true, "acl": false}'},
        ]
    }

    allow_lists = parse_allow_lists(data)

    assert allow_lists == {
        "aws_instance": {"instance_type": True},
        "aws_s3_bucket": {"bucket": True, "acl": False},
    }


def test_parse_allow_lists_empty_list_and_null():
    assert parse_allow_lists({"policyResourceAllowList": []}) == {}
    assert parse_allow_lists({"policyResourceAllowList": None}) == {}


def test_parse_allow_lists_non_object_tree_becomes_empty():
    data = {"policyResourceAllowList": [{"resourceType": "aws_instance", "allowed": [1]}]}

    with patch("policyfeed.modules.policy.domain.allow_list.logger") as mock_logger:
        allow_lists = parse_allow_lists(data)

    assert allow_lists == {"aws_instance": {}}
    mock_logger.warning.assert_called_once()


@pytest.mark.parametrize(
    "data",
    [
        None,
        "nope",
        {"policyResourceAllowList": {"resourceType": "aws_instance"}},
        {"policyResourceAllowList": ["aws_instance"]},
        {"policyResourceAllowList": [{"resourceType": 7, "allowed": {}}]},
    ],
)
def test_parse_allow_lists_rejects_malformed_payloads(data):
    with pytest.raises(ResponseDecodeError):
        parse_allow_lists(data)


def test_cache_fetches_once_across_sequential_calls():
    fetcher = MagicMock(return_value={"aws_instance": {"instance_type": True}})
    cache = AllowListCache(fetcher)

    assert not cache.loaded
    cache.ensure_loaded()
    cache.ensure_loaded()
    cache.ensure_loaded()

    assert fetcher.call_count == 1
    assert cache.loaded
    assert "aws_instance" in cache
    assert cache.get("aws_instance") == {"instance_type": True}
    assert cache.get("aws_s3_bucket") is None


def test_cache_fetches_once_under_concurrent_first_access():
    calls = 0
    calls_lock = threading.Lock()
    barrier = threading.Barrier(16)

    def slow_fetch():
        nonlocal calls
        with calls_lock:
            calls += 1
        time.sleep(0.05)
        return {"aws_instance": {"instance_type": True}}

    cache = AllowListCache(slow_fetch)

    def worker():
        barrier.wait()
        cache.ensure_loaded()
        return cache.get("aws_instance")

    with ThreadPoolExecutor(max_workers=16) as executor:
        results = list(executor.map(lambda _: worker(), range(16)))

    assert calls == 1
    assert results == [{"instance_type": True}] * 16


def test_cache_returns_same_error_to_every_caller_without_retrying():
    error = ExternalAPIError("query policyResourceAllowList failed boom")
    fetcher = MagicMock(side_effect=error)
    cache = AllowListCache(fetcher)
    barrier = threading.Barrier(8)

    def worker():
        barrier.wait()
        try:
            cache.ensure_loaded()
        except ExternalAPIError as exc:
            return exc
        return None

    with ThreadPoolExecutor(max_workers=8) as executor:
        raised = list(executor.map(lambda _: worker(), range(8)))

    with pytest.raises(ExternalAPIError) as later:
        cache.ensure_loaded()

    assert fetcher.call_count == 1
    assert all(exc is error for exc in raised)
    assert later.value is error
    assert cache.allow_lists == {}


def test_cache_wraps_unexpected_fetch_error_and_keeps_it():
    cause = RuntimeError("bad gzip")
    fetcher = MagicMock(side_effect=cause)
    cache = AllowListCache(fetcher)

    with pytest.raises(ExternalAPIError, match="RuntimeError: bad gzip") as first:
        cache.ensure_loaded()
    with pytest.raises(ExternalAPIError) as second:
        cache.ensure_loaded()

    assert fetcher.call_count == 1
    assert first.value.__cause__ is cause
    assert second.value is first.value
    assert cache.allow_lists == {}


def _traceback_depth(exc: BaseException) -> int:
    depth = 0
    tb = exc.__traceback__
    while tb is not None:
        depth += 1
        tb = tb.tb_next
    return depth


def test_cached_error_traceback_does_not_grow_across_calls():
    cache = AllowListCache(MagicMock(side_effect=ExternalAPIError("boom")))

    depths = []
    for _ in range(200):
        try:
            cache.ensure_loaded()
        except ExternalAPIError as exc:
            depths.append(_traceback_depth(exc))

    assert len(depths) == 200
    assert depths[0] == depths[1] == depths[-1]
