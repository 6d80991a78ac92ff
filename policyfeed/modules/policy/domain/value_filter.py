from __future__ import annotations

from typing import Any, Mapping, Union

import structlog

logger = structlog.get_logger()

AllowListTree = Mapping[str, Union[bool, "AllowListTree"]]


def _rule_type(rule: Any) -> str:
    if rule is None:
        return "null"
    if isinstance(rule, str):
        return "string"
    if isinstance(rule, (int, float)):
        return "number"
    if isinstance(rule, list):
        return "array"
    return type(rule).__name__


def filter_values(value: Any, allow_list: AllowListTree) -> dict[str, Any]:
    """
    Keep only the fields of `value` named in `allow_list`.

    A `True` leaf keeps the field verbatim, `False` drops it, and a nested
    tree recurses into the field (element-wise when the field is a list).
    Fields missing from the allow-list never survive. A value that is not
    an object has no fields, so it filters to an empty object.
    """
    values: dict[str, Any] = {}
    if not isinstance(value, Mapping):
        return values

    for key, raw in value.items():
        if key not in allow_list:
            continue
        rule = allow_list[key]

        if isinstance(rule, bool):
            if rule:
                values[key] = raw
        elif isinstance(rule, Mapping):
            if isinstance(raw, list):
                values[key] = [filter_values(item, rule) for item in raw]
            else:
                values[key] = filter_values(raw, rule)
        else:
            logger.warning(
                "policy_allow_list_unknown_rule", key=key, rule_type=_rule_type(rule)
            )
    return values
