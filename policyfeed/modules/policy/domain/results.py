from __future__ import annotations

from typing import Any, Mapping

from pydantic import ValidationError

from policyfeed.schemas.policy import PolicyOutput
from policyfeed.shared.adapters.graphql import raise_for_graphql_errors
from policyfeed.shared.core.exceptions import ResponseDecodeError

CHECK_POLICIES_ERROR = "query failed when checking tag policies"


def decode_policy_results(result: Mapping[str, Any]) -> PolicyOutput:
    """
    Decodes an evaluatePolicies response envelope. All or nothing: any
    reported error or malformed payload raises, nothing partial is returned.
    """
    raise_for_graphql_errors(dict(result), CHECK_POLICIES_ERROR)

    data = result.get("data")
    if not isinstance(data, Mapping):
        raise ResponseDecodeError(
            "failed to unmarshal tag policies: missing data payload"
        )

    evaluated = data.get("evaluatePolicies")
    if evaluated is None:
        return PolicyOutput()
    try:
        return PolicyOutput.model_validate(evaluated)
    except ValidationError as exc:
        raise ResponseDecodeError(
            f"failed to unmarshal tag policies: {exc.error_count()} invalid field(s)",
            details={"errors": exc.errors(include_url=False)},
        ) from exc


def pluralize_checked(count: int, singular: str, plural: str) -> str:
    return f"{count} {singular if count == 1 else plural} checked"
