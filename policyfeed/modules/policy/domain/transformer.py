from __future__ import annotations

import json
from typing import Any, Mapping, Optional

import structlog

from policyfeed.modules.policy.domain.checksum import calc_checksum
from policyfeed.modules.policy.domain.value_filter import AllowListTree, filter_values
from policyfeed.schemas.policy import (
    PolicyMetadata,
    PolicyMetadataCall,
    PolicyReference,
    PolicyResource,
    PolicyTag,
)
from policyfeed.schemas.resources import ResourceRecord

logger = structlog.get_logger()


def _meta_str(metadata: Mapping[str, Any], key: str) -> str:
    value = metadata.get(key)
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, str):
        return value
    if isinstance(value, (int, float)):
        return json.dumps(value)
    return json.dumps(value, separators=(",", ":"), default=str)


def _meta_int(metadata: Mapping[str, Any], key: str) -> int:
    value = metadata.get(key)
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value)
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            try:
                return int(float(value))
            except ValueError:
                return 0
    return 0


def canonical_json(value: Any) -> str:
    """Serializes with keys sorted at every level so output is byte-stable."""
    return json.dumps(
        value,
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
        allow_nan=False,
    )


def _build_tags(tags: Optional[Mapping[str, str]]) -> Optional[list[PolicyTag]]:
    if tags is None:
        return None
    return [PolicyTag(key=k, value=v) for k, v in sorted(tags.items())]


def _build_references(resource: ResourceRecord) -> list[PolicyReference]:
    references = [
        PolicyReference(key=key, addresses=[ref.address for ref in refs])
        for key, refs in resource.references_map.items()
    ]
    return sorted(references, key=lambda ref: ref.key)


def _build_metadata(resource: ResourceRecord) -> PolicyMetadata:
    metadata = resource.metadata
    filename = _meta_str(metadata, "filename")
    start_line = _meta_int(metadata, "startLine")
    end_line = _meta_int(metadata, "endLine")

    # Calls carry their own blockName but the resource's location.
    calls: list[PolicyMetadataCall] = []
    raw_calls = metadata.get("calls")
    if isinstance(raw_calls, list):
        for call in raw_calls:
            block_name = _meta_str(call, "blockName") if isinstance(call, Mapping) else ""
            calls.append(
                PolicyMetadataCall(
                    filename=filename,
                    block_name=block_name,
                    start_line=start_line,
                    end_line=end_line,
                )
            )

    checksum = _meta_str(metadata, "checksum")
    if not checksum:
        # Plan JSON runs carry no checksum; derive one from the raw values.
        checksum = calc_checksum(resource)

    return PolicyMetadata(
        calls=calls,
        checksum=checksum,
        end_line=end_line,
        filename=filename,
        start_line=start_line,
    )


def transform_resource(
    resource: ResourceRecord, allow_list: AllowListTree
) -> PolicyResource:
    """Builds the filtered wire representation of a single resource."""
    values_json: Optional[str] = None
    try:
        values_json = canonical_json(filter_values(resource.raw_values, allow_list))
    except (TypeError, ValueError) as exc:
        logger.warning(
            "policy_values_marshal_failed",
            address=resource.address,
            error=str(exc),
        )

    return PolicyResource(
        resource_type=resource.type,
        provider_name=resource.provider_name,
        address=resource.address,
        tags=_build_tags(resource.tags),
        values=values_json,
        references=_build_references(resource),
        metadata=_build_metadata(resource),
    )
