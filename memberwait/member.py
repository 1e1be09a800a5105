"""Waiting for member-cluster workloads, users, identities, status and configuration."""

from __future__ import annotations

from collections.abc import Callable, Mapping
from typing import Any

from memberwait.criteria import WaitCriterion, _diff, match_all
from memberwait.member_core import MemberResourceAwaitility
from memberwait.polling import NotFoundError, WaitTimeoutError

OWNER_LABEL_KEY = "toolchain.dev.openshift.com/owner"
TYPE_LABEL_KEY = "toolchain.dev.openshift.com/type"
MEMBER_STATUS_NAME = "toolchain-member-status"
MEMBER_OPERATOR_CONFIG_NAME = "config"
CONSOLE_NAMESPACE = "openshift-console"
CONSOLE_ROUTE_NAME = "console"
CONTROLLER_MANAGER_LABEL = {"control-plane": "controller-manager"}


def _metadata(obj: Mapping) -> Mapping:
    return obj.get("metadata") or {}


def _is_being_deleted(obj: Mapping) -> bool:
    return _metadata(obj).get("deletionTimestamp") is not None


class MemberAwaitility(MemberResourceAwaitility):
    """Waits for objects in a member cluster to reach a wanted state."""

    # helpers

    def _poll_existing(
        self,
        kind: str,
        name: str,
        namespace: str | None,
        check: Callable[[dict], bool],
        timeout: float | None = None,
    ) -> tuple[dict | None, WaitTimeoutError | None]:
        seen: dict[str, dict] = {}

        def condition() -> bool:
            try:
                obj = self.client.get(kind, name, namespace)
            except NotFoundError:
                return False
            seen["obj"] = obj
            return check(obj)

        try:
            self.poll(condition, timeout)
        except WaitTimeoutError as exc:
            return seen.get("obj"), exc
        return seen["obj"], None

    def _wait_until_released(
        self, kind: str, name: str, namespace: str | None, still_owned: Callable[[dict], bool]
    ) -> None:
        def condition() -> bool:
            try:
                obj = self.client.get(kind, name, namespace)
            except NotFoundError:
                return True
            return not still_owned(obj)

        self.poll(condition)

    def _update_with_retry(
        self, kind: str, namespace: str | None, name: str, modify: Callable[[dict], None]
    ) -> dict:
        result: dict[str, dict] = {}

        def attempt() -> bool:
            fresh = self.client.get(kind, name, namespace)
            modify(fresh)
            try:
                result["obj"] = self.client.update(fresh)
            except Exception:  # noqa: BLE001 - every update failure is retried
                self.log(f"error updating {kind} '{name}' Will retry again...")
                return False
            return True

        self.poll(attempt)
        return result["obj"]

    # Pod and ConfigMap

    def wait_for_pod(self, namespace: str, name: str, *args: WaitCriterion) -> dict:
        """Wait for the named pod in the namespace to match every criterion."""
        self.log(f"waiting for Pod '{name}' in namespace '{namespace}' with matching criteria")
        obj, err = self._poll_existing("Pod", name, namespace, lambda o: match_all(o, args))
        if err is not None:
            self._report_mismatch("Pod", obj, args, namespace, show_actual=False)
            raise err
        return obj

    def wait_for_config_map(self, namespace: str, name: str) -> dict:
        """Wait until the named ConfigMap exists in the namespace."""
        self.log(f"waiting for ConfigMap '{name}' in namespace '{namespace}'")
        obj, err = self._poll_existing("ConfigMap", name, namespace, lambda _o: True)
        if err is not None:
            raise err
        return obj

    def wait_for_pods(self, namespace: str, n: int, *args: WaitCriterion) -> list[dict]:
        """Wait until exactly ``n`` pods in the namespace match every criterion."""
        self.log(f"waiting for Pods in namespace '{namespace}' with matching criteria")
        found: dict[str, list[dict]] = {}

        def condition() -> bool:
            matching = [p for p in self.client.list("Pod", namespace) if match_all(p, args)]
            if len(matching) != n:
                return False
            found["pods"] = matching
            return True

        self.poll(condition)
        return found["pods"]

    def wait_until_pods_deleted(self, namespace: str, *args: WaitCriterion) -> None:
        """Wait until the namespace has no pods, or every remaining pod matches the criteria."""
        self.log(f"waiting until Pods with matching criteria in namespace '{namespace}' are deleted")

        def condition() -> bool:
            pods = self.client.list("Pod", namespace)
            return all(match_all(p, args) for p in pods)

        self.poll(condition)

    def wait_until_pod_deleted(self, namespace: str, name: str) -> None:
        """Wait until the pod is gone or has a deletion timestamp."""
        self.log(f"waiting until Pod '{name}' in namespace '{namespace}' is deleted")
        self._wait_until_released("Pod", name, namespace, lambda o: not _is_being_deleted(o))

    # Namespaces

    def wait_until_namespace_deleted(self, username: str, type_name: str) -> None:
        """Wait until no namespace with the owner and type labels is left."""
        self.log(f"waiting until namespace for user '{username}' and type '{type_name}' is deleted")
        labels = {OWNER_LABEL_KEY: username, TYPE_LABEL_KEY: type_name}
        self.poll(lambda: not self.client.list("Namespace", None, labels))

    # User and Identity

    def wait_for_user(self, name: str, *args: WaitCriterion) -> dict:
        """Wait for the User to match every criterion and to have at least one identity."""
        self.log(f"waiting for User '{name}'")

        def ready(user: dict) -> bool:
            if not match_all(user, args):
                return False
            return bool(_metadata(user).get("name")) and bool(user.get("identities"))

        obj, err = self._poll_existing("User", name, None, ready)
        if err is not None:
            self._report_mismatch("User", obj, args, None, show_actual=False)
            raise err
        return obj

    def wait_for_identity(self, name: str, *args: WaitCriterion) -> dict:
        """Wait for the Identity to match every criterion and to refer to a user."""
        self.log(f"waiting for Identity '{name}'")

        def ready(identity: dict) -> bool:
            if not match_all(identity, args):
                return False
            user_name = (identity.get("user") or {}).get("name")
            return bool(_metadata(identity).get("name")) and bool(user_name)

        obj, err = self._poll_existing("Identity", name, None, ready)
        if err is not None:
            self.log(f"failed to find Identity '{name}'\n" + self._list_content("Identity"))
            raise err
        return obj

    def wait_until_user_account_deleted(self, name: str) -> None:
        """Wait until the UserAccount is not found."""
        self.log(f"waiting until UserAccount '{name}' in namespace '{self.namespace}' is deleted")
        self._wait_until_gone("UserAccount", name, self.namespace)

    def wait_until_user_deleted(self, name: str) -> None:
        """Wait until the User is gone or no longer carries an owner label."""
        self.log(f"waiting until User is deleted '{name}'")
        self._wait_until_released(
            "User", name, None, lambda o: OWNER_LABEL_KEY in (_metadata(o).get("labels") or {})
        )

    def wait_until_identity_deleted(self, name: str) -> None:
        """Wait until the Identity is gone or no longer carries an owner label."""
        self.log(f"waiting until Identity is deleted '{name}'")
        self._wait_until_released(
            "Identity", name, None, lambda o: OWNER_LABEL_KEY in (_metadata(o).get("labels") or {})
        )

    # Console and quotas

    def get_console_url(self) -> str:
        """Return the web console URL from its route; raise NotFoundError if absent."""
        route = self.client.get("Route", CONSOLE_ROUTE_NAME, CONSOLE_NAMESPACE)
        spec = route.get("spec") or {}
        return f"https://{spec.get('host', '')}/{spec.get('path', '')}"

    def wait_until_cluster_resource_quotas_deleted(self, username: str) -> None:
        """Wait until no ClusterResourceQuota with the owner label is left."""
        self.log(f"waiting for deletion of ClusterResourceQuotas for user '{username}'")
        labels = {OWNER_LABEL_KEY: username}
        self.poll(lambda: not self.client.list("ClusterResourceQuota", None, labels))

    # MemberStatus and MemberOperatorConfig

    def wait_for_member_status(self, *args: WaitCriterion) -> dict:
        """Wait for the member status to match every criterion, for twice the timeout."""
        name = MEMBER_STATUS_NAME
        self.log(f"waiting for MemberStatus '{name}' to match criteria")
        obj, err = self._poll_existing(
            "MemberStatus", name, self.namespace, lambda o: match_all(o, args), 2 * self.timeout
        )
        if err is not None:
            self._report_mismatch("MemberStatus", obj, args, None)
            if obj is None:
                self.log(self._list_content("ToolchainCluster"))
            raise err
        return obj

    def get_member_operator_config(self) -> dict | None:
        """Return the MemberOperatorConfig, or None if it does not exist."""
        return self.get_or_none("MemberOperatorConfig", MEMBER_OPERATOR_CONFIG_NAME, self.namespace)

    def wait_for_member_operator_config(
        self, host_await: Any, *args: Callable[[Any, Any, dict], bool]
    ) -> dict:
        """Wait for the MemberOperatorConfig to pass every check, for twice the timeout."""
        name = MEMBER_OPERATOR_CONFIG_NAME
        self.log(f"waiting for MemberOperatorConfig '{name}'")
        obj, err = self._poll_existing(
            "MemberOperatorConfig",
            name,
            self.namespace,
            lambda o: all(check(host_await, self, o) for check in args),
            2 * self.timeout,
        )
        if err is not None:
            raise err
        return obj

    def get_member_operator_pod(self) -> dict:
        """Return the single pod running the member operator controllers.

        Raises LookupError unless exactly one such pod exists.
        """
        pods = self.client.list("Pod", self.namespace, CONTROLLER_MANAGER_LABEL)
        if len(pods) != 1:
            raise LookupError(
                "unexpected number of pods with label 'control-plane=controller-manager' "
                f"in namespace '{self.namespace}': {len(pods)} "
            )
        return pods[0]

    def wait_for_expected_number_of_resources(
        self, kind: str, expected: int, list_fn: Callable[[], int]
    ) -> None:
        """Wait until ``list_fn`` reports the expected count; its errors propagate."""
        last: dict[str, int] = {}

        def condition() -> bool:
            last["actual"] = list_fn()
            return last["actual"] == expected

        try:
            self.poll(condition)
        except WaitTimeoutError:
            self.log(
                f"expected number of resources of kind '{kind}' to match: "
                f"{_diff(expected, last.get('actual', 0))}"
            )
            raise

    # updates

    def update_pod(self, namespace: str, pod_name: str, modify: Callable[[dict], None]) -> dict:
        """Apply ``modify`` to the latest pod and store it, retrying on update failures."""
        return self._update_with_retry("Pod", namespace, pod_name, modify)

    def update_config_map(
        self, namespace: str, cm_name: str, modify: Callable[[dict], None]
    ) -> dict:
        """Apply ``modify`` to the latest ConfigMap and store it, retrying on update failures."""
        return self._update_with_retry("ConfigMap", namespace, cm_name, modify)