"""
Resource Graph Input Schemas

Read-only views of the resources produced by the cost-estimation pipeline.
References point at other records in the same graph and may form cycles,
which is why these are plain dataclasses rather than validated models.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Optional


@dataclass(eq=False)
class ResourceRecord:
    type: str
    provider_name: str
    address: str
    tags: Optional[dict[str, str]] = None
    raw_values: Any = field(default_factory=dict)
    # Original serialization of raw_values, when the upstream parser kept it.
    raw_values_json: Optional[str] = None
    references_map: dict[str, list["ResourceRecord"]] = field(default_factory=dict)
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def raw_values_payload(self) -> str:
        """Raw values as they were serialized upstream, unfiltered and unsorted."""
        if self.raw_values_json is not None:
            return self.raw_values_json
        return json.dumps(
            self.raw_values, separators=(",", ":"), ensure_ascii=False, default=str
        )

    @classmethod
    def from_json(
        cls,
        *,
        type: str,
        provider_name: str,
        address: str,
        raw_values_json: str,
        tags: Optional[dict[str, str]] = None,
        metadata: Optional[dict[str, Any]] = None,
    ) -> "ResourceRecord":
        """
        Builds a record from serialized values, keeping the original text.

        Upstream parsers should use this when they have the raw JSON at hand:
        the fallback checksum hashes that exact text, so records built from
        re-encoded values would checksum differently across runs.
        """
        return cls(
            type=type,
            provider_name=provider_name,
            address=address,
            tags=tags,
            raw_values=json.loads(raw_values_json),
            raw_values_json=raw_values_json,
            metadata=dict(metadata or {}),
        )


@dataclass
class ProjectMetadata:
    policy_sha: str = ""
    past_policy_sha: str = ""


@dataclass
class ProjectRecord:
    name: str
    partial_resources: list[Optional[ResourceRecord]] = field(default_factory=list)
    partial_past_resources: list[Optional[ResourceRecord]] = field(default_factory=list)
    metadata: Optional[ProjectMetadata] = None
