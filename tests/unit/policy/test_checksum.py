import hashlib

from policyfeed.modules.policy.domain.checksum import calc_checksum
from policyfeed.schemas.resources import ResourceRecord


def _record(provider="aws", address="aws_instance.web", raw='{"ami":"ami-1"}'):
    return ResourceRecord.from_json(
        type="aws_instance",
        provider_name=provider,
        address=address,
        raw_values_json=raw,
    )


def test_checksum_hashes_provider_address_and_raw_payload_in_order():
    expected = hashlib.sha256(b'awsaws_instance.web{"ami":"ami-1"}').hexdigest()

    checksum = calc_checksum(_record())

    assert checksum == expected
    assert len(checksum) == 64


def test_checksum_is_deterministic_for_identical_inputs():
    assert calc_checksum(_record()) == calc_checksum(_record())


def test_checksum_changes_with_each_input():
    base = calc_checksum(_record())

    assert calc_checksum(_record(provider="google")) != base
    assert calc_checksum(_record(address="aws_instance.api")) != base
    assert calc_checksum(_record(raw='{"ami":"ami-2"}')) != base


def test_checksum_uses_original_serialization_not_sorted_values():
    """Raw text is hashed as-is, so key order and whitespace matter."""
    a = _record(raw='{"b":1,"a":2}')
    b = _record(raw='{"a":2,"b":1}')
    c = _record(raw='{"a": 2, "b": 1}')

    assert a.raw_values == b.raw_values == c.raw_values
    assert len({calc_checksum(a), calc_checksum(b), calc_checksum(c)}) == 3


def test_checksum_without_original_text_uses_compact_insertion_order():
    record = ResourceRecord(
        type="aws_instance",
        provider_name="aws",
        address="aws_instance.web",
        raw_values={"b": 1, "a": "é"},
    )
    expected = hashlib.sha256(
        'awsaws_instance.web{"b":1,"a":"é"}'.encode("utf-8")
    ).hexdigest()

    assert calc_checksum(record) == expected
