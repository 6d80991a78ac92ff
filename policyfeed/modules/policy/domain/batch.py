from __future__ import annotations

from typing import Iterable, Mapping, Optional

from policyfeed.modules.policy.domain.transformer import transform_resource
from policyfeed.modules.policy.domain.value_filter import AllowListTree
from policyfeed.schemas.policy import PolicyResource
from policyfeed.schemas.resources import ResourceRecord


def assemble_batch(
    resources: Iterable[Optional[ResourceRecord]],
    allow_lists: Mapping[str, AllowListTree],
) -> list[PolicyResource]:
    """
    Filters every resource whose type has an allow-list, sorted by address.

    Resource types without an allow-list never leave the machine. An empty
    result is valid.
    """
    batch = [
        transform_resource(resource, allow_lists[resource.type])
        for resource in resources
        if resource is not None and resource.type in allow_lists
    ]
    batch.sort(key=lambda policy_resource: policy_resource.address)
    return batch
