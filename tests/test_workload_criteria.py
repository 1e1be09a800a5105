import pytest

from memberwait.workload_criteria import (
    idler_conditions,
    idler_has_tier,
    idler_has_timeout_seconds,
    pod_running,
    until_identity_has_label,
    until_member_config_matches,
    until_member_status_has_conditions,
    until_member_status_has_console_url_set,
    until_member_status_has_usage_set,
    until_user_has_annotation,
    until_user_has_label,
    with_original_priority_class,
    with_pod_label,
    with_pod_name,
    with_sandbox_priority_class,
)

TIER = "toolchain.dev.openshift.com/tier"

READY = {"type": "Ready", "status": "True", "reason": "Provisioned"}
NOT_READY = {"type": "Ready", "status": "False", "reason": "Provisioning"}


def obj(name="obj", labels=None, annotations=None, spec=None, status=None):
    metadata = {"name": name}
    if labels is not None:
        metadata["labels"] = labels
    if annotations is not None:
        metadata["annotations"] = annotations
    result = {"metadata": metadata}
    if spec is not None:
        result["spec"] = spec
    if status is not None:
        result["status"] = status
    return result


def test_idler_conditions():
    criterion = idler_conditions(READY)
    assert criterion.match(obj(status={"conditions": [READY]}))
    assert not criterion.match(obj(status={"conditions": [NOT_READY]}))
    assert not criterion.match(obj())
    assert criterion.diff(obj()).startswith("expected conditions to match: ")


def test_idler_has_timeout_seconds():
    criterion = idler_has_timeout_seconds(30)
    assert criterion.match(obj(spec={"timeoutSeconds": 30}))
    assert not criterion.match(obj(spec={"timeoutSeconds": 60}))
    assert criterion.diff(obj(spec={"timeoutSeconds": 60})) == (
        "expected Idler timeoutSeconds to be '30' but it was '60'"
    )


def test_idler_has_tier():
    criterion = idler_has_tier("base")
    assert criterion.match(obj(labels={TIER: "base"}))
    assert not criterion.match(obj(labels={TIER: "advanced"}))
    assert not criterion.match(obj())
    assert "'base' but it was 'advanced'" in criterion.diff(obj(labels={TIER: "advanced"}))


def test_idler_has_empty_tier_needs_labels():
    criterion = idler_has_tier("")
    assert not criterion.match(obj())
    assert criterion.match(obj(labels={}))


def test_pod_running():
    criterion = pod_running()
    assert criterion.match(obj(status={"phase": "Running"}))
    assert not criterion.match(obj(status={"phase": "Pending"}))
    assert criterion.diff(obj(status={"phase": "Pending"})) == (
        "expected Pod to be 'Running'\nbut it was 'Pending'"
    )


def test_with_pod_name():
    criterion = with_pod_name("p1")
    assert criterion.match(obj(name="p1"))
    assert not criterion.match(obj(name="p2"))
    assert criterion.diff(obj(name="p2")) == "expected Pod to be name 'p1'\nbut it was 'p2'"


def test_with_pod_label():
    criterion = with_pod_label("app", "web")
    assert criterion.match(obj(labels={"app": "web"}))
    assert not criterion.match(obj(labels={"app": "db"}))
    assert not criterion.match(obj())


def test_with_sandbox_priority_class():
    criterion = with_sandbox_priority_class()
    good = obj(spec={"priorityClassName": "sandbox-users-pods", "priority": -3})
    assert criterion.match(good)
    assert not criterion.match(obj(spec={"priorityClassName": "sandbox-users-pods", "priority": 0}))
    assert not criterion.match(obj(spec={"priorityClassName": ""}))
    assert "'sandbox-users-pods'/'-3'" in criterion.diff(good)


def test_with_original_priority_class_regular_pod():
    criterion = with_original_priority_class()
    assert criterion.match(obj(name="other", spec={"priorityClassName": "", "priority": 0}))
    assert not criterion.match(
        obj(name="other", spec={"priorityClassName": "sandbox-users-pods", "priority": -3})
    )
    assert "'(unamed)'/'0'" in criterion.diff(obj(name="other", spec={"priority": -3}))


def test_with_original_priority_class_idler_test_pod():
    criterion = with_original_priority_class()
    pod = obj(
        name="idler-test-pod-1",
        spec={"priorityClassName": "system-cluster-critical", "priority": 2000000000},
    )
    assert criterion.match(pod)
    assert not criterion.match(obj(name="idler-test-pod-1", spec={"priorityClassName": "", "priority": 0}))
    assert "'system-cluster-critical'/'2000000000'" in criterion.diff(pod)


def test_until_user_has_label():
    criterion = until_user_has_label("owner", "john")
    assert criterion.match(obj(labels={"owner": "john"}))
    assert not criterion.match(obj(labels={"owner": "jane"}))
    assert criterion.diff(obj(labels={"owner": "jane"})) == (
        "expected User label 'owner' to be 'john'\nbut it was 'jane'"
    )


def test_until_user_has_annotation():
    criterion = until_user_has_annotation("note", "")
    assert criterion.match(obj(annotations={"note": ""}))
    assert not criterion.match(obj(annotations={}))
    assert not until_user_has_annotation("note", "x").match(obj(annotations={"note": "y"}))


def test_until_identity_has_label():
    criterion = until_identity_has_label("owner", "john")
    assert criterion.match(obj(labels={"owner": "john"}))
    assert not criterion.match(obj())
    assert "Identity label 'owner'" in criterion.diff(obj())


def test_until_member_status_has_conditions():
    criterion = until_member_status_has_conditions(READY)
    assert criterion.match(obj(status={"conditions": [READY]}))
    assert not criterion.match(obj(status={"conditions": [READY, {"type": "Other"}]}))
    assert criterion.diff(obj()).startswith("expected conditions to match:\n")


@pytest.mark.parametrize(
    "usage, expected",
    [
        ({"master": 10, "worker": 20}, True),
        ({"master": 0, "worker": 20}, False),
        ({"worker": 20}, False),
        ({"master": 10, "worker": 20, "infra": 5}, False),
        ({}, False),
    ],
)
def test_until_member_status_has_usage_set(usage, expected):
    status = {"resourceUsage": {"memoryUsagePerNodeRole": usage}}
    assert until_member_status_has_usage_set().match(obj(status=status)) is expected


def test_until_member_status_has_console_url_set():
    criterion = until_member_status_has_console_url_set("https://console.example.com/", READY)
    good = obj(status={"routes": {"consoleURL": "https://console.example.com/", "conditions": [READY]}})
    assert criterion.match(good)
    assert not criterion.match(obj(status={}))
    assert not criterion.match(
        obj(status={"routes": {"consoleURL": "https://other.example.com/", "conditions": [READY]}})
    )
    assert not criterion.match(
        obj(status={"routes": {"consoleURL": "https://console.example.com/", "conditions": [NOT_READY]}})
    )
    assert "https://console.example.com/" in criterion.diff(obj(status={}))


def test_until_member_config_matches():
    spec = {"autoscaler": {"deploy": True}}
    check = until_member_config_matches(spec)
    assert check(None, None, {"spec": {"autoscaler": {"deploy": True}}})
    assert not check(None, None, {"spec": {"autoscaler": {"deploy": False}}})
    assert not check(None, None, {})
    assert until_member_config_matches({})(None, None, {})