"""
Policy API Wire Schemas

GraphQL does not accept map-shaped arguments, so tags, references and
metadata calls are carried as key/value arrays. Result models mirror the
`evaluatePolicies` selection set.
"""

from __future__ import annotations

import json
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_serializer, model_validator

POLICY_SHA_NOT_UPLOADED = "0"


class _WireModel(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)


class PolicyTag(_WireModel):
    key: str
    value: str


class PolicyReference(_WireModel):
    key: str
    addresses: list[str] = Field(default_factory=list)


class PolicyMetadataCall(_WireModel):
    filename: str = ""
    block_name: str = Field(default="", alias="blockName")
    start_line: int = Field(default=0, alias="startLine")
    end_line: int = Field(default=0, alias="endLine")


class PolicyMetadata(_WireModel):
    calls: list[PolicyMetadataCall] = Field(default_factory=list)
    checksum: str = ""
    end_line: int = Field(default=0, alias="endLine")
    filename: str = ""
    start_line: int = Field(default=0, alias="startLine")


class PolicyResource(_WireModel):
    """Filtered, canonicalized representation of one resource."""

    resource_type: str = Field(alias="resourceType")
    provider_name: str = Field(alias="providerName")
    address: str
    # None and [] are distinct: None drops the field from the wire payload.
    tags: Optional[list[PolicyTag]] = None
    # Canonical JSON text (keys sorted at every level); None if serialization failed.
    values: Optional[str] = None
    references: list[PolicyReference] = Field(default_factory=list)
    metadata: PolicyMetadata = Field(
        default_factory=PolicyMetadata, alias="infracostMetadata"
    )

    @field_serializer("values")
    def _serialize_values(self, values: Optional[str]) -> Any:
        if values is None:
            return None
        return json.loads(values)

    def to_wire(self) -> dict[str, Any]:
        exclude = {"tags"} if self.tags is None else None
        return self.model_dump(by_alias=True, exclude=exclude)


class _PolicyResultModel(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    @model_validator(mode="before")
    @classmethod
    def _nulls_to_defaults(cls, data: Any) -> Any:
        if isinstance(data, dict):
            return {k: v for k, v in data.items() if v is not None}
        return data


class InvalidTag(_PolicyResultModel):
    key: str = ""
    value: str = ""
    valid_values: list[str] = Field(default_factory=list, alias="validValues")
    valid_regex: str = Field(default="", alias="validRegex")


class TagPolicyResource(_PolicyResultModel):
    address: str = ""
    resource_type: str = Field(default="", alias="resourceType")
    path: str = ""
    line: int = 0
    project_names: list[str] = Field(default_factory=list, alias="projectNames")
    missing_mandatory_tags: list[str] = Field(
        default_factory=list, alias="missingMandatoryTags"
    )
    invalid_tags: list[InvalidTag] = Field(default_factory=list, alias="invalidTags")


class TagPolicy(_PolicyResultModel):
    name: str = ""
    tag_policy_id: str = Field(default="", alias="tagPolicyId")
    message: str = ""
    pr_comment: bool = Field(default=False, alias="prComment")
    block_pr: bool = Field(default=False, alias="blockPr")
    total_detected_resources: int = Field(default=0, alias="totalDetectedResources")
    total_taggable_resources: int = Field(default=0, alias="totalTaggableResources")
    resources: list[TagPolicyResource] = Field(default_factory=list)


class FinOpsResourceIssue(_PolicyResultModel):
    attribute: str = ""
    value: str = ""
    description: str = ""


class FinOpsPolicyResource(_PolicyResultModel):
    checksum: str = ""
    address: str = ""
    resource_type: str = Field(default="", alias="resourceType")
    path: str = ""
    start_line: int = Field(default=0, alias="startLine")
    end_line: int = Field(default=0, alias="endLine")
    project_name: str = Field(default="", alias="projectName")
    issues: list[FinOpsResourceIssue] = Field(default_factory=list)
    exclusion_id: str = Field(default="", alias="exclusionId")


class FinOpsPolicy(_PolicyResultModel):
    name: str = ""
    policy_id: str = Field(default="", alias="policyId")
    message: str = ""
    block_pr: bool = Field(default=False, alias="blockPr")
    pr_comment: bool = Field(default=False, alias="prComment")
    total_applicable_resources: int = Field(
        default=0, alias="totalApplicableResources"
    )
    resources: list[FinOpsPolicyResource] = Field(default_factory=list)


class PolicyOutput(_PolicyResultModel):
    tag_policies: list[TagPolicy] = Field(
        default_factory=list, alias="tagPolicyResults"
    )
    finops_policies: list[FinOpsPolicy] = Field(
        default_factory=list, alias="finopsPolicyResults"
    )
