"""Polling primitives and an in-memory object store to poll against."""

from __future__ import annotations

import copy
import dataclasses
import logging
import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any

from memberwait.stringify import stringify_objects

_logger = logging.getLogger(__name__)

DEFAULT_RETRY_INTERVAL = 0.1
DEFAULT_TIMEOUT = 30.0


class NotFoundError(LookupError):
    """Raised when an object does not exist."""

    def __init__(self, kind: str, name: str, namespace: str = "") -> None:
        where = f" in namespace '{namespace}'" if namespace else ""
        super().__init__(f"{kind} '{name}'{where} not found")
        self.kind = kind
        self.name = name
        self.namespace = namespace


class WaitTimeoutError(TimeoutError):
    """Raised when a condition was not met in time."""

    def __init__(self, message: str = "timed out waiting for the condition") -> None:
        super().__init__(message)


def _key_of(obj: Mapping) -> tuple[str, str, str]:
    try:
        kind = obj["kind"]
        metadata = obj["metadata"]
        name = metadata["name"]
    except (KeyError, TypeError) as exc:
        raise ValueError("object needs 'kind' and 'metadata.name'") from exc
    return kind, metadata.get("namespace") or "", name


class InMemoryClient:
    """A small object store keyed by kind, namespace and name."""

    def __init__(self) -> None:
        self._objects: dict[tuple[str, str, str], dict] = {}
        self._version = 0

    def _next_version(self) -> str:
        self._version += 1
        return str(self._version)

    def get(self, kind: str, name: str, namespace: str | None = None) -> dict:
        """Return a copy of the object, or raise NotFoundError."""
        key = (kind, namespace or "", name)
        try:
            return copy.deepcopy(self._objects[key])
        except KeyError:
            raise NotFoundError(kind, name, namespace or "") from None

    def list(
        self,
        kind: str,
        namespace: str | None = None,
        labels: Mapping[str, str] | None = None,
    ) -> list[dict]:
        """Return copies of the objects of a kind, filtered by namespace and labels."""
        wanted = dict(labels or {})
        found = []
        for (obj_kind, obj_ns, _), obj in sorted(self._objects.items()):
            if obj_kind != kind:
                continue
            if namespace is not None and obj_ns != namespace:
                continue
            obj_labels = obj["metadata"].get("labels") or {}
            if all(obj_labels.get(k) == v for k, v in wanted.items()):
                found.append(copy.deepcopy(obj))
        return found

    def create(self, obj: Mapping) -> dict:
        """Store a new object; raise ValueError if it already exists."""
        key = _key_of(obj)
        if key in self._objects:
            raise ValueError(f"{key[0]} '{key[2]}' already exists")
        stored = copy.deepcopy(dict(obj))
        stored["metadata"] = dict(stored["metadata"])
        stored["metadata"]["resourceVersion"] = self._next_version()
        self._objects[key] = stored
        return copy.deepcopy(stored)

    def update(self, obj: Mapping) -> dict:
        """Replace a stored object; raise on a missing object or a stale version."""
        key = _key_of(obj)
        current = self._objects.get(key)
        if current is None:
            raise NotFoundError(key[0], key[2], key[1])
        given_version = obj["metadata"].get("resourceVersion")
        if given_version is not None and given_version != current["metadata"]["resourceVersion"]:
            raise ValueError(
                f"conflict: {key[0]} '{key[2]}' has been modified, apply changes to the latest version"
            )
        stored = copy.deepcopy(dict(obj))
        stored["metadata"] = dict(stored["metadata"])
        stored["metadata"]["resourceVersion"] = self._next_version()
        self._objects[key] = stored
        return copy.deepcopy(stored)

    def delete(self, kind: str, name: str, namespace: str | None = None) -> None:
        """Remove an object, or raise NotFoundError."""
        key = (kind, namespace or "", name)
        if self._objects.pop(key, None) is None:
            raise NotFoundError(kind, name, namespace or "")


def poll(interval: float, timeout: float, condition: Callable[[], bool]) -> None:
    """Call ``condition`` every ``interval`` seconds until it returns true.

    The first call happens after one interval. Exceptions raised by the
    condition stop the polling and propagate. WaitTimeoutError is raised
    once ``timeout`` seconds have gone by without success.
    """
    deadline = time.monotonic() + timeout
    while True:
        time.sleep(interval)
        if condition():
            return
        if time.monotonic() >= deadline:
            raise WaitTimeoutError()


@dataclass(frozen=True)
class Awaitility:
    """Waits for objects of one cluster namespace to reach a wanted state."""

    client: InMemoryClient
    namespace: str
    cluster_name: str = ""
    cluster_type: str = "member"
    retry_interval: float = DEFAULT_RETRY_INTERVAL
    timeout: float = DEFAULT_TIMEOUT
    log: Callable[[str], None] = field(default=_logger.info, repr=False, compare=False)

    def with_retry_options(
        self, *, retry_interval: float | None = None, timeout: float | None = None
    ):
        """Return a copy with other polling interval and/or timeout."""
        changes: dict[str, Any] = {}
        if retry_interval is not None:
            changes["retry_interval"] = retry_interval
        if timeout is not None:
            changes["timeout"] = timeout
        return dataclasses.replace(self, **changes)

    def poll(self, condition: Callable[[], bool], timeout: float | None = None) -> None:
        """Poll ``condition`` with this instance's interval and timeout."""
        poll(self.retry_interval, self.timeout if timeout is None else timeout, condition)

    def get_or_none(self, kind: str, name: str, namespace: str | None = None) -> dict | None:
        """Return the object, or None when it does not exist."""
        try:
            return self.client.get(kind, name, namespace)
        except NotFoundError:
            return None

    def create(self, obj: Mapping) -> dict:
        """Create the object, retrying on any failure until the timeout."""
        created: dict = {}

        def attempt() -> bool:
            try:
                created.update(self.client.create(obj))
            except Exception as exc:  # noqa: BLE001 - every failure is retried
                self.log(f"trying to create {dict(obj)!r}. Error: {exc}. Will try to create again.")
                return False
            return True

        self.poll(attempt)
        return created

    def _list_content(
        self,
        kind: str,
        namespace: str | None = None,
        labels: Mapping[str, str] | None = None,
    ) -> str:
        """Describe every object of a kind, for failure reports."""
        items = self.client.list(kind, namespace, labels)
        where = f" in namespace '{namespace}'" if namespace else ""
        return f"\n{kind} present{where}:\n{stringify_objects(items)}\n"