"""Wait criteria for user accounts, template sets and namespaces."""

from __future__ import annotations

import difflib
import json
import pprint
from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

import yaml

LAST_APPLIED_SPACE_ROLES_ANNOTATION_KEY = "toolchain.dev.openshift.com/last-applied-space-roles"
NAMESPACE_ACTIVE = "Active"

_CONDITION_FIELDS = ("status", "reason", "message")


@dataclass(frozen=True)
class WaitCriterion:
    """A check on an object, with an optional explanation of a mismatch."""

    match: Callable[[Any], bool]
    diff: Callable[[Any], str] | None = None


def match_all(actual: Any, criteria: Iterable[WaitCriterion]) -> bool:
    """Return True when every criterion matches ``actual``."""
    return all(criterion.match(actual) for criterion in criteria)


def _nested(obj: Any, *path: str, default: Any = None) -> Any:
    current = obj
    for key in path:
        if not isinstance(current, Mapping):
            return default
        current = current.get(key)
        if current is None:
            return default
    return current


def _labels(obj: Any) -> Mapping[str, str]:
    return _nested(obj, "metadata", "labels", default={})


def _annotations(obj: Any) -> Mapping[str, str]:
    return _nested(obj, "metadata", "annotations", default={})


def _conditions(obj: Any) -> list:
    return list(_nested(obj, "status", "conditions", default=[]))


def _diff(expected: Any, actual: Any) -> str:
    left = pprint.pformat(expected, width=100).splitlines()
    right = pprint.pformat(actual, width=100).splitlines()
    return "\n".join(
        difflib.unified_diff(left, right, fromfile="expected", tofile="actual", lineterm="")
    )


def _field(condition: Mapping, name: str) -> str:
    return condition.get(name) or ""


def contains_condition(conditions: Sequence[Mapping], expected: Mapping) -> bool:
    """Return True if a condition of the expected type has the same status, reason and message."""
    for condition in conditions:
        if _field(condition, "type") == _field(expected, "type"):
            return all(_field(condition, f) == _field(expected, f) for f in _CONDITION_FIELDS)
    return False


def conditions_match(actual: Sequence[Mapping], *args: Mapping) -> bool:
    """Return True if ``actual`` holds exactly the expected conditions, timestamps aside."""
    actual = list(actual or [])
    if len(actual) != len(args):
        return False
    return all(contains_condition(actual, c) for c in args) and all(
        contains_condition(args, c) for c in actual
    )


def _parse_time(value: Any) -> datetime | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        moment = value
    else:
        moment = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment


def _yaml(value: Any) -> str:
    return yaml.safe_dump(value, default_flow_style=False, sort_keys=True)


# UserAccount


def until_user_account_has_label_with_value(key: str, value: str) -> WaitCriterion:
    """UserAccount has the label ``key`` set to ``value``."""
    return WaitCriterion(
        match=lambda actual: _labels(actual).get(key, "") == value,
        diff=lambda actual: (
            f"expected useraccount to contain label {key}:{value}:\n"
            f"{pprint.pformat(dict(_labels(actual)))}"
        ),
    )


def until_user_account_has_annotation(key: str, value: str) -> WaitCriterion:
    """UserAccount has the annotation ``key`` set to ``value``."""
    return WaitCriterion(
        match=lambda actual: key in _annotations(actual) and _annotations(actual)[key] == value,
        diff=lambda actual: (
            f"expected UserAccount annotation '{key}' to be '{value}'\n"
            f"but it was '{_annotations(actual).get(key, '')}'"
        ),
    )


def until_user_account_has_spec(expected: Mapping) -> WaitCriterion:
    """UserAccount has exactly the expected spec."""
    return WaitCriterion(
        match=lambda actual: _nested(actual, "spec", default={}) == expected,
        diff=lambda actual: (
            f"expected specs to match: {_diff(expected, _nested(actual, 'spec', default={}))}"
        ),
    )


def until_user_account_matches_mur(host_awaitility: Any) -> WaitCriterion:
    """UserAccount's user ID and disabled flag match those of its MasterUserRecord."""

    def _name(actual: Any) -> str:
        return _nested(actual, "metadata", "name", default="")

    def _mur(actual: Any) -> Any:
        try:
            return host_awaitility.get_master_user_record(_name(actual))
        except Exception:  # noqa: BLE001 - any lookup failure means no match
            return None

    def match(actual: Any) -> bool:
        mur = _mur(actual)
        if mur is None:
            return False
        return _nested(actual, "spec", "userID", default="") == _nested(
            mur, "spec", "userID", default=""
        ) and bool(_nested(actual, "spec", "disabled", default=False)) == bool(
            _nested(mur, "spec", "disabled", default=False)
        )

    def diff(actual: Any) -> str:
        mur = _mur(actual)
        if mur is None:
            return f"could not find mur for user account '{_name(actual)}'"
        disabled = str(bool(_nested(actual, "spec", "disabled", default=False))).lower()
        mur_disabled = str(bool(_nested(mur, "spec", "disabled", default=False))).lower()
        return (
            "expected mur to match with useraccount:\n"
            f"\tUserID: {_nested(actual, 'spec', 'userID', default='')}/"
            f"{_nested(mur, 'spec', 'userID', default='')}\n"
            f"\tDisabled: {disabled}/{mur_disabled}\n"
        )

    return WaitCriterion(match=match, diff=diff)


def until_user_account_has_conditions(*args: Mapping) -> WaitCriterion:
    """UserAccount has exactly the given status conditions."""
    return WaitCriterion(
        match=lambda actual: conditions_match(_conditions(actual), *args),
        diff=lambda actual: f"expected conditions to match: {_diff(list(args), _conditions(actual))}",
    )


def until_user_account_contains_condition(expected: Mapping) -> WaitCriterion:
    """UserAccount contains the given condition."""
    return WaitCriterion(
        match=lambda actual: contains_condition(_conditions(actual), expected),
        diff=lambda actual: (
            f"expected conditions to contain: {_yaml(dict(expected))}.\n"
            f"\tactual: {_yaml(_conditions(actual))}"
        ),
    )


def until_user_account_is_being_deleted() -> WaitCriterion:
    """UserAccount has a deletion timestamp."""
    return WaitCriterion(
        match=lambda actual: _nested(actual, "metadata", "deletionTimestamp") is not None
    )


def until_user_account_is_created_after(timestamp: Any) -> WaitCriterion:
    """UserAccount was created after ``timestamp``."""
    threshold = _parse_time(timestamp)

    def match(actual: Any) -> bool:
        created = _parse_time(_nested(actual, "metadata", "creationTimestamp"))
        if created is None or threshold is None:
            return False
        return created > threshold

    return WaitCriterion(match=match)


# NSTemplateSet


def until_nstemplate_set_has_no_owner_references() -> WaitCriterion:
    """NSTemplateSet has no owner references."""
    return WaitCriterion(
        match=lambda actual: not _nested(actual, "metadata", "ownerReferences", default=[]),
        diff=lambda actual: (
            f"expected no owner refs: {_nested(actual, 'metadata', 'ownerReferences', default=[])}"
        ),
    )


def until_nstemplate_set_is_being_deleted() -> WaitCriterion:
    """NSTemplateSet has a deletion timestamp."""
    return WaitCriterion(
        match=lambda actual: _nested(actual, "metadata", "deletionTimestamp") is not None,
        diff=lambda _actual: "expected deletion timestamp to be set",
    )


def until_nstemplate_set_has_conditions(*args: Mapping) -> WaitCriterion:
    """NSTemplateSet has exactly the given status conditions."""
    return WaitCriterion(
        match=lambda actual: conditions_match(_conditions(actual), *args),
        diff=lambda actual: f"expected conditions to match:\n{_diff(list(args), _conditions(actual))}",
    )


def until_nstemplate_set_has_tier(expected: str) -> WaitCriterion:
    """NSTemplateSet refers to the expected tier."""
    return WaitCriterion(
        match=lambda actual: _nested(actual, "spec", "tierName", default="") == expected,
        diff=lambda actual: (
            f"expected tier name to be '{expected}'\n"
            f"but it was '{_nested(actual, 'spec', 'tierName', default='')}'"
        ),
    )


# Namespace and object metadata


def until_namespace_is_active() -> WaitCriterion:
    """Namespace is in the Active phase."""
    return WaitCriterion(
        match=lambda actual: _nested(actual, "status", "phase", default="") == NAMESPACE_ACTIVE,
        diff=lambda actual: (
            f"expected namespace to be active:\n{_nested(actual, 'status', 'phase', default='')}"
        ),
    )


def until_object_has_label(label_key: str, label_value: str) -> WaitCriterion:
    """Object metadata has the label ``label_key`` set to ``label_value``.

    The criterion is applied to an object's ``metadata`` mapping.
    """

    def labels(metadata: Any) -> Mapping[str, str]:
        return _nested(metadata, "labels", default={})

    return WaitCriterion(
        match=lambda metadata: labels(metadata).get(label_key, "") == label_value,
        diff=lambda metadata: (
            "expected object to be match label,\n"
            f"Expected: {label_key}:{label_value}\nActual labels:{dict(labels(metadata))}"
        ),
    )


def until_has_last_applied_space_roles(expected: Sequence[Mapping]) -> WaitCriterion:
    """Namespace carries the given space roles as its last-applied annotation."""
    encoded = json.dumps(
        [
            {"templateRef": role.get("templateRef", ""), "usernames": list(role.get("usernames") or [])}
            for role in expected
        ],
        separators=(",", ":"),
    )

    def match(actual: Any) -> bool:
        annotations = _annotations(actual)
        if LAST_APPLIED_SPACE_ROLES_ANNOTATION_KEY not in annotations:
            return False
        return annotations[LAST_APPLIED_SPACE_ROLES_ANNOTATION_KEY] == encoded

    return WaitCriterion(
        match=match,
        diff=lambda actual: (
            "expected namespace to be match annotation,\n"
            f"Expected: {encoded}\nActual annotations:{dict(_annotations(actual))}"
        ),
    )