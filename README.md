# memberwait

Helpers for end-to-end tests that wait for resources on a member cluster to
reach an expected state. Objects are plain dictionaries shaped like cluster
resources (`kind`, `metadata`, `spec`, `status`).

## Modules

- `memberwait.polling`
  - `poll(interval, timeout, condition)` calls `condition` once per interval
    until it returns true. It raises `WaitTimeoutError` when the timeout runs
    out. Any exception that `condition` raises is passed on.
  - `InMemoryClient` stores objects by kind, namespace and name. It provides
    `get`, `list` (with namespace and label filters), `create`, `update` (with
    a resource-version conflict check) and `delete`. A missing object raises
    `NotFoundError`.
  - `Awaitility` is a frozen dataclass holding a client, a namespace, a
    retry interval, a timeout and a `log` callable. It offers
    `with_retry_options`, `poll`, `get_or_none`, and `create`, which retries
    until it succeeds.
- `memberwait.criteria` defines `WaitCriterion`, which pairs a `match`
  function with an optional `diff` message. It also has `match_all`,
  `conditions_match` and `contains_condition`. The criteria for user accounts,
  NSTemplateSets and namespaces include
  `until_user_account_has_label_with_value`,
  `until_user_account_has_conditions`, `until_nstemplate_set_has_tier`,
  `until_namespace_is_active`, `until_object_has_label` and
  `until_has_last_applied_space_roles`.
- `memberwait.workload_criteria` holds criteria for idlers, pods, users,
  identities and member status. Examples are `idler_has_tier`, `pod_running`,
  `with_pod_label`, `with_sandbox_priority_class`, `until_user_has_label`,
  `until_identity_has_label` and `until_member_status_has_usage_set`.
  `until_member_config_matches(expected_spec)` returns a plain check function
  `(host_await, member_await, config) -> bool`, not a `WaitCriterion`.
- `memberwait.member_core.MemberResourceAwaitility` waits for user accounts,
  NSTemplateSets, namespaces, role bindings, service accounts, limit ranges,
  network policies, roles, cluster resource quotas and idlers. It also updates
  idlers and NSTemplateSets, retrying until the update succeeds.
- `memberwait.member.MemberAwaitility` extends it. It adds waits for pods,
  config maps, users, identities, member status and the member operator
  config, and waits for deletions. It also provides `get_console_url`,
  `get_member_operator_pod`, `wait_for_expected_number_of_resources`,
  `update_pod` and `update_config_map`.
- `memberwait.stringify` has `stringify_object` and `stringify_objects`. Both
  return YAML text and leave out `metadata.managedFields`.
- `memberwait.templateref.split(template_ref)` returns the tier, type and
  revision parts of `<tier>-<type>-<revision>`.

## Installing

```
pip install .
```

For the test suite:

```
pip install ".[test]"
pytest
```

## Example

```python
from memberwait.polling import InMemoryClient
from memberwait.member import MemberAwaitility
from memberwait.criteria import until_user_account_has_label_with_value

client = InMemoryClient()
client.create({
    "kind": "UserAccount",
    "metadata": {"name": "alice", "namespace": "member", "labels": {"tier": "base"}},
    "spec": {},
})

member = MemberAwaitility(client, namespace="member", cluster_name="member-1")
account = member.wait_for_user_account(
    "alice", until_user_account_has_label_with_value("tier", "base")
)
```

A wait returns the object once every criterion matches. If the timeout runs
out first, the wait logs a report through the awaitility's `log` callable and
then raises `WaitTimeoutError`. The report lists the criteria that did not
match, or the objects present when none was found.

```python
from memberwait.templateref import split

split("base-dev-abc123")  # ("base", "dev", "abc123")
```

A reference that does not split into three parts raises `ValueError`.

## What it does not do

The package has no client for a live cluster. It talks only to the object it
is given as `client`. That is either the bundled `InMemoryClient` or another
object with the same `get`, `list`, `create` and `update` methods that raises
`NotFoundError` for missing objects. It does not deploy or check operator
webhooks, services, deployments or priority classes, and it has no
command-line tool.