from __future__ import annotations

from typing import Any, Iterable, Mapping, Optional

import httpx
import structlog

from policyfeed.modules.policy.domain.allow_list import AllowListCache, parse_allow_lists
from policyfeed.modules.policy.domain.batch import assemble_batch
from policyfeed.modules.policy.domain.results import (
    CHECK_POLICIES_ERROR,
    decode_policy_results,
    pluralize_checked,
)
from policyfeed.modules.policy.domain.value_filter import AllowListTree
from policyfeed.schemas.policy import (
    POLICY_SHA_NOT_UPLOADED,
    PolicyOutput,
    PolicyResource,
)
from policyfeed.schemas.resources import ProjectMetadata, ProjectRecord, ResourceRecord
from policyfeed.shared.adapters.graphql import (
    GraphQLClient,
    GraphQLQuery,
    raise_for_graphql_errors,
)
from policyfeed.shared.core.config import Settings, get_settings
from policyfeed.shared.core.exceptions import ExternalAPIError, ResponseDecodeError
from policyfeed.shared.core.progress import ProgressReporter

logger = structlog.get_logger()

ALLOW_LIST_QUERY = """
query {
    policyResourceAllowList {
        resourceType
        allowed
    }
}
"""

STORE_POLICY_RESOURCES_MUTATION = """
mutation($policyResources: [PolicyResourceInput!]!) {
    storePolicyResources(policyResources: $policyResources) {
        sha
    }
}
"""

EVALUATE_POLICIES_QUERY = """
query($run: RunInput!) {
    evaluatePolicies(run: $run) {
        tagPolicyResults {
            name
            tagPolicyId
            message
            prComment
            blockPr
            totalDetectedResources
            totalTaggableResources
            resources {
                address
                resourceType
                path
                line
                projectNames
                missingMandatoryTags
                invalidTags {
                    key
                    value
                    validValues
                    validRegex
                }
            }
        }
        finopsPolicyResults {
            name
            policyId
            message
            blockPr
            prComment
            totalApplicableResources
            resources {
                checksum
                address
                resourceType
                path
                startLine
                endLine
                projectName
                issues {
                    attribute
                    value
                    description
                }
                exclusionId
            }
        }
    }
}
"""


class PolicyAPIClient:
    """
    Uploads allow-listed resource data for policy evaluation and fetches
    the evaluation results.

    The allow-list is fetched from the API on first use and kept for the
    lifetime of the client; a failed fetch is not retried.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        *,
        transport: Optional[GraphQLClient] = None,
        http_client: Optional[httpx.Client] = None,
        trace_id: Optional[str] = None,
        progress: Optional[ProgressReporter] = None,
    ):
        self.settings = settings or get_settings()
        self.transport = transport or GraphQLClient(
            self.settings, http_client=http_client, trace_id=trace_id
        )
        self.progress = progress or ProgressReporter(self.settings.is_logging)
        self.allow_list_cache = AllowListCache(self._get_policy_resource_allow_list)

    def __enter__(self) -> "PolicyAPIClient":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def close(self) -> None:
        self.transport.close()

    def _get_policy_resource_allow_list(self) -> dict[str, AllowListTree]:
        try:
            results = self.transport.do_queries([GraphQLQuery(ALLOW_LIST_QUERY)])
        except ExternalAPIError as exc:
            raise ExternalAPIError(
                f"query policyResourceAllowList failed {exc.message}",
                details=exc.details,
            ) from exc

        if not results:
            return {}

        raise_for_graphql_errors(results[0], "query policyResourceAllowList failed")
        return parse_allow_lists(results[0].get("data"))

    def fetch_allow_list(self) -> None:
        self.allow_list_cache.ensure_loaded()

    def filter_resources(
        self, resources: Iterable[Optional[ResourceRecord]]
    ) -> list[PolicyResource]:
        return assemble_batch(resources, self.allow_list_cache.allow_lists)

    def upload_batch(self, policy_resources: list[PolicyResource]) -> str:
        """Stores a filtered batch and returns the sha the API assigned to it."""
        variables = {"policyResources": [pr.to_wire() for pr in policy_resources]}
        try:
            results = self.transport.do_queries(
                [GraphQLQuery(STORE_POLICY_RESOURCES_MUTATION, variables)]
            )
        except ExternalAPIError as exc:
            raise ExternalAPIError(
                f"query storePolicyResources failed {exc.message}",
                details=exc.details,
            ) from exc

        if not results:
            return ""

        raise_for_graphql_errors(results[0], "query storePolicyResources failed")

        data = results[0].get("data")
        if not isinstance(data, Mapping):
            raise ResponseDecodeError(
                "failed to unmarshal storePolicyResources: missing data payload"
            )
        stored = data.get("storePolicyResources") or {}
        sha = stored.get("sha") if isinstance(stored, Mapping) else None
        if sha is not None and not isinstance(sha, str):
            raise ResponseDecodeError(
                "failed to unmarshal storePolicyResources: sha must be a string"
            )
        return sha or ""

    def _upload_filtered(
        self, resources: Iterable[Optional[ResourceRecord]], error_message: str
    ) -> str:
        filtered = self.filter_resources(resources)
        if not filtered:
            # Marks that policy checks ran even though nothing was uploaded.
            return POLICY_SHA_NOT_UPLOADED
        try:
            return self.upload_batch(filtered)
        except ExternalAPIError as exc:
            raise ExternalAPIError(
                f"{error_message} {exc.message}", details=exc.details
            ) from exc

    def upload_policy_data(self, project: ProjectRecord) -> None:
        """
        Sends a filtered set of the project's resources for policy evaluation
        and records the resulting shas on the project's metadata.
        """
        if project.metadata is None:
            project.metadata = ProjectMetadata()

        self.fetch_allow_list()

        project.metadata.policy_sha = self._upload_filtered(
            project.partial_resources, "failed to upload filtered partial resources"
        )
        project.metadata.past_policy_sha = self._upload_filtered(
            project.partial_past_resources,
            "failed to upload filtered past partial resources",
        )
        logger.info(
            "policy_data_uploaded",
            project=project.name,
            policy_sha=project.metadata.policy_sha,
            past_policy_sha=project.metadata.past_policy_sha,
        )

    def check_policies(self, run: Mapping[str, Any]) -> PolicyOutput:
        """Evaluates tag and finops policies for a run."""
        try:
            results = self.transport.do_queries(
                [GraphQLQuery(EVALUATE_POLICIES_QUERY, {"run": dict(run)})]
            )
        except ExternalAPIError as exc:
            raise ExternalAPIError(
                f"{CHECK_POLICIES_ERROR} {exc.message}", details=exc.details
            ) from exc

        if not results:
            return PolicyOutput()

        output = decode_policy_results(results[0])

        if output.tag_policies:
            self.progress.report(
                pluralize_checked(len(output.tag_policies), "tag policy", "tag policies")
            )
        if output.finops_policies:
            self.progress.report(
                pluralize_checked(
                    len(output.finops_policies), "finops policy", "finops policies"
                )
            )
        return output
