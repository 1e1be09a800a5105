"""Waiting for the core member-cluster resources: accounts, template sets, namespaces and RBAC."""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping
from typing import Any

from memberwait.criteria import WaitCriterion, match_all
from memberwait.polling import Awaitility, NotFoundError, WaitTimeoutError
from memberwait.stringify import stringify_object
from memberwait.templateref import split

PROVIDER_LABEL_KEY = "toolchain.dev.openshift.com/provider"
PROVIDER_LABEL_VALUE = "codeready-toolchain"
CODEREADY_TOOLCHAIN_PROVIDER_LABEL = {PROVIDER_LABEL_KEY: PROVIDER_LABEL_VALUE}
NAMESPACE_TERMINATING = "Terminating"


def _name_of(obj: Mapping) -> str:
    return (obj.get("metadata") or {}).get("name", "")


class MemberResourceAwaitility(Awaitility):
    """Waits for the resources the member operator manages in its cluster."""

    # reporting

    def _report_mismatch(
        self,
        kind: str,
        actual: Mapping | None,
        criteria: Iterable[WaitCriterion],
        list_namespace: str | None,
        *,
        not_found: str | None = None,
        mismatch: str | None = None,
        show_actual: bool = True,
        subject: Callable[[Mapping], Any] = lambda obj: obj,
    ) -> None:
        lines: list[str] = []
        if actual is None:
            lines.append(not_found or f"failed to find {kind}\n")
            lines.append(self._list_content(kind, list_namespace))
        else:
            lines.append(mismatch or f"failed to find {kind} with matching criteria:\n")
            if show_actual:
                lines.append("----\n")
                lines.append("actual:\n")
                lines.append(stringify_object(actual))
                lines.append("\n----\n")
                lines.append("diffs:\n")
            target = subject(actual)
            for criterion in criteria:
                if not criterion.match(target) and criterion.diff is not None:
                    lines.append(criterion.diff(target))
                    lines.append("\n")
        self.log("".join(lines))

    def _wait_for_existing(
        self,
        kind: str,
        name: str,
        namespace: str | None,
        check: Callable[[dict], bool] = lambda _obj: True,
        on_missing: Callable[[], None] | None = None,
    ) -> tuple[dict | None, WaitTimeoutError | None]:
        """Poll until the object exists and passes ``check``.

        Returns the last object seen and the timeout error, if any.
        """
        seen: dict[str, dict] = {}

        def condition() -> bool:
            try:
                obj = self.client.get(kind, name, namespace)
            except NotFoundError:
                if on_missing is not None:
                    on_missing()
                return False
            seen["obj"] = obj
            return check(obj)

        try:
            self.poll(condition)
        except WaitTimeoutError as exc:
            return seen.get("obj"), exc
        return seen["obj"], None

    def _wait_until_gone(self, kind: str, name: str, namespace: str | None) -> None:
        def condition() -> bool:
            try:
                self.client.get(kind, name, namespace)
            except NotFoundError:
                return True
            return False

        self.poll(condition)

    def _list_provider_objects(self, kind: str) -> Callable[[], None]:
        return lambda: self.client.list(kind, None, CODEREADY_TOOLCHAIN_PROVIDER_LABEL) and None

    # UserAccount

    def wait_for_user_account(self, name: str, *args: WaitCriterion) -> dict:
        """Wait for the UserAccount with the given name to match every criterion."""
        obj, err = self._wait_for_existing(
            "UserAccount", name, self.namespace, lambda o: match_all(o, args)
        )
        if err is not None:
            self._report_mismatch("UserAccount", obj, args, self.namespace)
            raise err
        return obj

    # NSTemplateSet

    def wait_for_nstmpl_set(self, name: str, *args: WaitCriterion) -> dict:
        """Wait for the NSTemplateSet with the given name to match every criterion."""
        self.log(f"waiting for NSTemplateSet '{name}' to match criteria")
        obj, err = self._wait_for_existing(
            "NSTemplateSet", name, self.namespace, lambda o: match_all(o, args)
        )
        if err is not None:
            self._report_mismatch(
                "NSTemplateSet",
                obj,
                args,
                self.namespace,
                not_found="failed to find NSTemplateSet at all\n",
                mismatch=(
                    "failed to find NSTemplateSet with matching criteria "
                    f"after {self.timeout:f}s:\n"
                ),
            )
            raise err
        return obj

    def wait_until_nstemplate_set_deleted(self, name: str) -> None:
        """Wait until the NSTemplateSet with the given name is not found."""
        self.log(f"waiting for until NSTemplateSet '{name}' in namespace '{self.namespace}' is deleted")
        self._wait_until_gone("NSTemplateSet", name, self.namespace)

    # Namespace

    def wait_for_namespace(
        self, owner: str, tmpl_ref: str, tier_name: str, *args: WaitCriterion
    ) -> dict:
        """Wait for the single namespace with the owner, template and tier labels to match.

        Raises ValueError if ``tmpl_ref`` is not a valid template reference.
        """
        _, kind, _ = split(tmpl_ref)
        labels = {
            "toolchain.dev.openshift.com/owner": owner,
            "toolchain.dev.openshift.com/templateref": tmpl_ref,
            "toolchain.dev.openshift.com/tier": tier_name,
            "toolchain.dev.openshift.com/type": kind,
            PROVIDER_LABEL_KEY: PROVIDER_LABEL_VALUE,
        }
        self.log(f"waiting for namespace with custom criteria and labels {labels}")
        seen: dict[str, dict] = {}

        def condition() -> bool:
            found = self.client.list("Namespace", None, labels)
            if len(found) != 1:
                return False
            seen["ns"] = found[0]
            return match_all(found[0], args)

        try:
            self.poll(condition)
        except WaitTimeoutError:
            self.log(f"failed to wait for namespace with labels: {labels}")
            self.log(self._list_content("Namespace", None, CODEREADY_TOOLCHAIN_PROVIDER_LABEL))
            ns = seen.get("ns")
            if ns is None:
                self.log(f"a namespace with the following labels was not found: {labels}")
            else:
                for criterion in args:
                    if criterion.diff is not None:
                        self.log(criterion.diff(ns))
            raise
        return seen["ns"]

    def wait_for_namespace_with_name(self, name: str, *args: WaitCriterion) -> dict:
        """Wait for the named namespace; the criteria are applied to its metadata."""
        obj, err = self._wait_for_existing(
            "Namespace", name, None, lambda o: match_all(o.get("metadata") or {}, args)
        )
        if err is not None:
            self.log("failed to wait for namespace")
            self._report_mismatch(
                "Namespace",
                obj,
                args,
                None,
                mismatch="failed to find Namespace with matching label criteria:\n",
                subject=lambda o: o.get("metadata") or {},
            )
            raise err
        return obj

    def wait_for_namespace_in_terminating(self, ns_name: str) -> dict:
        """Wait until the namespace has a deletion timestamp and is in the Terminating phase."""

        def terminating(obj: dict) -> bool:
            deleting = (obj.get("metadata") or {}).get("deletionTimestamp") is not None
            phase = (obj.get("status") or {}).get("phase", "")
            return deleting and phase == NAMESPACE_TERMINATING

        obj, err = self._wait_for_existing("Namespace", ns_name, None, terminating)
        if err is not None:
            self.log(f"failed to wait for namespace '{ns_name}' to be in 'Terminating' phase")
            raise err
        return obj

    # RBAC and other namespaced resources

    def _wait_for_in_namespace(
        self, kind: str, namespace: Mapping, name: str, list_on_missing: bool = True
    ) -> dict:
        ns_name = _name_of(namespace)
        self.log(f"waiting for {kind} '{name}' in namespace '{ns_name}'")
        on_missing = self._list_provider_objects(kind) if list_on_missing else None
        obj, err = self._wait_for_existing(kind, name, ns_name, on_missing=on_missing)
        if err is not None:
            self.log(f"failed to wait for {kind} '{name}' in namespace '{ns_name}'")
            raise err
        return obj

    def wait_for_role_binding(self, namespace: Mapping, name: str) -> dict:
        """Wait until a RoleBinding with the given name exists in the given namespace."""
        return self._wait_for_in_namespace("RoleBinding", namespace, name)

    def wait_until_role_binding_deleted(self, namespace: Mapping, name: str) -> None:
        """Wait until the RoleBinding is gone.

        The lookup happens in this awaitility's own namespace.
        """
        self.log(f"waiting for RoleBinding '{name}' in namespace '{_name_of(namespace)}' to be deleted")
        self._wait_until_gone("RoleBinding", name, self.namespace)

    def wait_for_service_account(self, namespace: Mapping, name: str) -> dict:
        """Wait until a ServiceAccount with the given name exists in the given namespace."""
        return self._wait_for_in_namespace("ServiceAccount", namespace, name, list_on_missing=False)

    def wait_for_limit_range(self, namespace: Mapping, name: str) -> dict:
        """Wait until a LimitRange with the given name exists in the given namespace."""
        return self._wait_for_in_namespace("LimitRange", namespace, name)

    def wait_for_network_policy(self, namespace: Mapping, name: str) -> dict:
        """Wait until a NetworkPolicy with the given name exists in the given namespace."""
        return self._wait_for_in_namespace("NetworkPolicy", namespace, name)

    def wait_for_role(self, namespace: Mapping, name: str) -> dict:
        """Wait until a Role with the given name exists in the given namespace."""
        return self._wait_for_in_namespace("Role", namespace, name)

    def wait_until_role_deleted(self, namespace: Mapping, name: str) -> None:
        """Wait until the Role is gone.

        The lookup happens in this awaitility's own namespace.
        """
        self.log(f"waiting for Role '{name}' in namespace '{_name_of(namespace)}' to be deleted")
        self._wait_until_gone("Role", name, self.namespace)

    # ClusterResourceQuota

    def wait_for_cluster_resource_quota(self, name: str, *args: WaitCriterion) -> dict:
        """Wait for the named ClusterResourceQuota to match every criterion."""
        self.log(f"waiting for ClusterResourceQuota '{name}' to match criteria")
        obj, err = self._wait_for_existing(
            "ClusterResourceQuota",
            name,
            None,
            lambda o: match_all(o, args),
            on_missing=self._list_provider_objects("ClusterResourceQuota"),
        )
        if err is not None:
            self._report_mismatch("ClusterResourceQuota", obj, args, None)
            raise err
        return obj

    # Idler

    def wait_for_idler(self, name: str, *args: WaitCriterion) -> dict:
        """Wait for the named Idler to match every criterion."""
        self.log(f"waiting for Idler '{name}' to match criteria")
        obj, err = self._wait_for_existing("Idler", name, None, lambda o: match_all(o, args))
        if err is not None:
            self._report_mismatch("Idler", obj, args, None)
            raise err
        return obj

    def update_idler_spec(self, idler: Mapping) -> dict:
        """Copy the spec of ``idler`` onto the stored Idler, retrying until the update succeeds.

        Raises NotFoundError if the Idler does not exist.
        """
        name = _name_of(idler)
        result: dict[str, dict] = {}

        def attempt() -> bool:
            obj = self.client.get("Idler", name)
            obj["spec"] = dict(idler.get("spec") or {})
            try:
                result["idler"] = self.client.update(obj)
            except Exception as exc:  # noqa: BLE001 - every update failure is retried
                self.log(f"trying to update Idler {name}. Error: {exc}. Will try to update again.")
                return False
            return True

        self.poll(attempt)
        return result["idler"]

    def update_nstemplate_set(self, space_name: str, modify: Callable[[dict], None]) -> dict:
        """Apply ``modify`` to the latest NSTemplateSet and store it, retrying on conflicts.

        Raises NotFoundError if the NSTemplateSet does not exist.
        """
        result: dict[str, dict] = {}

        def attempt() -> bool:
            fresh = self.client.get("NSTemplateSet", space_name, self.namespace)
            modify(fresh)
            try:
                result["set"] = self.client.update(fresh)
            except Exception as exc:  # noqa: BLE001 - every update failure is retried
                self.log(f"error updating NSTemplateSet '{space_name}': {exc}. Will retry again...")
                return False
            return True

        self.poll(attempt)
        return result["set"]