"""Wait criteria for idlers, pods, users, identities, member status and member config."""

from __future__ import annotations

import pprint
from collections.abc import Callable, Mapping
from typing import Any

from memberwait.criteria import (
    WaitCriterion,
    _annotations,
    _conditions,
    _diff,
    _labels,
    _nested,
    _yaml,
    conditions_match,
)

TIER_LABEL_KEY = "toolchain.dev.openshift.com/tier"
POD_RUNNING = "Running"

SANDBOX_PRIORITY_CLASS = "sandbox-users-pods"
SANDBOX_PRIORITY = -3
IDLER_TEST_POD = "idler-test-pod-1"
SYSTEM_CRITICAL_PRIORITY_CLASS = "system-cluster-critical"
SYSTEM_CRITICAL_PRIORITY = 2000000000


# Idler


def idler_conditions(*args: Mapping) -> WaitCriterion:
    """Idler has exactly the given status conditions."""
    return WaitCriterion(
        match=lambda actual: conditions_match(_conditions(actual), *args),
        diff=lambda actual: f"expected conditions to match: {_diff(list(args), _conditions(actual))}",
    )


def idler_has_timeout_seconds(timeout_seconds: int) -> WaitCriterion:
    """Idler has the given timeout in its spec."""

    def actual_timeout(actual: Any) -> int:
        return _nested(actual, "spec", "timeoutSeconds", default=0)

    return WaitCriterion(
        match=lambda actual: actual_timeout(actual) == timeout_seconds,
        diff=lambda actual: (
            f"expected Idler timeoutSeconds to be '{timeout_seconds}' "
            f"but it was '{actual_timeout(actual)}'"
        ),
    )


def idler_has_tier(expected: str) -> WaitCriterion:
    """Idler carries the given tier name as a label."""

    def match(actual: Any) -> bool:
        labels = _nested(actual, "metadata", "labels")
        return labels is not None and labels.get(TIER_LABEL_KEY, "") == expected

    return WaitCriterion(
        match=match,
        diff=lambda actual: (
            f"expected Idler '{TIER_LABEL_KEY}' label to be '{expected}' "
            f"but it was '{_labels(actual).get(TIER_LABEL_KEY, '')}'"
        ),
    )


# Pod


def _priority_class(pod: Any) -> str:
    return _nested(pod, "spec", "priorityClassName", default="")


def _priority(pod: Any) -> Any:
    return _nested(pod, "spec", "priority")


def _has_priority_class(pod: Any, name: str, priority: int) -> bool:
    return _priority_class(pod) == name and _priority(pod) == priority


def _pod_name(pod: Any) -> str:
    return _nested(pod, "metadata", "name", default="")


def pod_running() -> WaitCriterion:
    """Pod is in the Running phase."""
    return WaitCriterion(
        match=lambda actual: _nested(actual, "status", "phase", default="") == POD_RUNNING,
        diff=lambda actual: (
            "expected Pod to be 'Running'\n"
            f"but it was '{_nested(actual, 'status', 'phase', default='')}'"
        ),
    )


def with_pod_name(expected: str) -> WaitCriterion:
    """Pod has the expected name."""
    return WaitCriterion(
        match=lambda actual: _pod_name(actual) == expected,
        diff=lambda actual: f"expected Pod to be name '{expected}'\nbut it was '{_pod_name(actual)}'",
    )


def with_pod_label(key: str, value: str) -> WaitCriterion:
    """Pod has the label ``key`` set to ``value``."""
    return WaitCriterion(
        match=lambda actual: _labels(actual).get(key, "") == value,
        diff=lambda actual: (
            f"expected Pod label '{key}' to be '{value}'\n"
            f"but it was '{_labels(actual).get(key, '')}'"
        ),
    )


def with_sandbox_priority_class() -> WaitCriterion:
    """Pod runs with the sandbox users' priority class."""
    return WaitCriterion(
        match=lambda actual: _has_priority_class(actual, SANDBOX_PRIORITY_CLASS, SANDBOX_PRIORITY),
        diff=lambda actual: (
            f"expected priorityClass to be '{SANDBOX_PRIORITY_CLASS}'/'{SANDBOX_PRIORITY}'\n"
            f"but it was '{_priority_class(actual)}'/'{_priority(actual)}'"
        ),
    )


def with_original_priority_class() -> WaitCriterion:
    """Pod keeps its original priority class.

    The idler test pod runs as system-cluster-critical; every other pod has
    no priority class and a priority of zero.
    """

    def match(actual: Any) -> bool:
        if _pod_name(actual) != IDLER_TEST_POD:
            return _has_priority_class(actual, "", 0)
        return _has_priority_class(actual, SYSTEM_CRITICAL_PRIORITY_CLASS, SYSTEM_CRITICAL_PRIORITY)

    def diff(actual: Any) -> str:
        found = f"but it was '{_priority_class(actual)}'/'{_priority(actual)}'"
        if _pod_name(actual) != IDLER_TEST_POD:
            return f"expected priorityClass to be '(unamed)'/'0'\n{found}"
        return (
            f"expected priorityClass to be '{SYSTEM_CRITICAL_PRIORITY_CLASS}'/"
            f"'{SYSTEM_CRITICAL_PRIORITY}'\n{found}"
        )

    return WaitCriterion(match=match, diff=diff)


# User and Identity


def until_user_has_label(key: str, value: str) -> WaitCriterion:
    """User has the label ``key`` set to ``value``."""
    return WaitCriterion(
        match=lambda actual: _labels(actual).get(key, "") == value,
        diff=lambda actual: (
            f"expected User label '{key}' to be '{value}'\n"
            f"but it was '{_labels(actual).get(key, '')}'"
        ),
    )


def until_user_has_annotation(key: str, value: str) -> WaitCriterion:
    """User has the annotation ``key`` set to ``value``."""
    return WaitCriterion(
        match=lambda actual: key in _annotations(actual) and _annotations(actual)[key] == value,
        diff=lambda actual: (
            f"expected User annotation '{key}' to be '{value}'\n"
            f"but it was '{_annotations(actual).get(key, '')}'"
        ),
    )


def until_identity_has_label(key: str, value: str) -> WaitCriterion:
    """Identity has the label ``key`` set to ``value``."""
    return WaitCriterion(
        match=lambda actual: _labels(actual).get(key, "") == value,
        diff=lambda actual: (
            f"expected Identity label '{key}' to be '{value}'\n"
            f"but it was '{_labels(actual).get(key, '')}'"
        ),
    )


# MemberStatus


def until_member_status_has_conditions(*args: Mapping) -> WaitCriterion:
    """MemberStatus has exactly the given status conditions."""
    return WaitCriterion(
        match=lambda actual: conditions_match(_conditions(actual), *args),
        diff=lambda actual: f"expected conditions to match:\n{_diff(list(args), _conditions(actual))}",
    )


def _memory_usage(actual: Any) -> Mapping:
    return _nested(actual, "status", "resourceUsage", "memoryUsagePerNodeRole", default={})


def until_member_status_has_usage_set() -> WaitCriterion:
    """MemberStatus reports non-zero memory usage for both master and worker nodes."""

    def match(actual: Any) -> bool:
        usage = _memory_usage(actual)
        return len(usage) == 2 and usage.get("worker", 0) > 0 and usage.get("master", 0) > 0

    return WaitCriterion(
        match=match,
        diff=lambda actual: (
            "expected MemberStatus to have 'master' and 'worker' usages set: "
            f"{pprint.pformat(dict(_memory_usage(actual)))}"
        ),
    )


def until_member_status_has_console_url_set(
    expected_url: str, expected_condition: Mapping
) -> WaitCriterion:
    """MemberStatus has the expected console URL and route condition."""

    def match(actual: Any) -> bool:
        routes = _nested(actual, "status", "routes")
        if routes is None:
            return False
        return routes.get("consoleURL", "") == expected_url and conditions_match(
            routes.get("conditions") or [], expected_condition
        )

    def diff(actual: Any) -> str:
        routes = _nested(actual, "status", "routes")
        return (
            f"expected MemberStatus route for Console to be '{expected_url}' with condition\n"
            f"{_yaml(dict(expected_condition))}\nbut it was: \n{_yaml(routes)}"
        )

    return WaitCriterion(match=match, diff=diff)


# MemberOperatorConfig


def until_member_config_matches(expected_spec: Mapping) -> Callable[[Any, Any, Any], bool]:
    """Return a check ``(host_await, member_await, config) -> bool`` on the config's spec."""

    def check(_host_await: Any, _member_await: Any, config: Any) -> bool:
        return _nested(config, "spec", default={}) == expected_spec

    return check