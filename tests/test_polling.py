import pytest

from memberwait.polling import (
    Awaitility,
    InMemoryClient,
    NotFoundError,
    WaitTimeoutError,
    poll,
)


def _obj(kind, name, namespace=None, labels=None):
    metadata = {"name": name}
    if namespace:
        metadata["namespace"] = namespace
    if labels:
        metadata["labels"] = labels
    return {"kind": kind, "metadata": metadata}


def _awaitility(client, logs=None):
    return Awaitility(
        client=client,
        namespace="member-ns",
        retry_interval=0.001,
        timeout=0.05,
        log=(logs.append if logs is not None else lambda _msg: None),
    )


def test_poll_returns_once_condition_holds():
    client = InMemoryClient()
    calls = []

    def condition():
        calls.append(1)
        if len(calls) == 3:
            client.create(_obj("ConfigMap", "late", "ns1"))
        return len(client.list("ConfigMap", "ns1")) == 1

    poll(0.001, 1.0, condition)
    assert len(calls) == 3
    assert client.get("ConfigMap", "late", "ns1")["metadata"]["name"] == "late"


def test_poll_times_out():
    with pytest.raises(WaitTimeoutError, match="timed out waiting for the condition"):
        poll(0.001, 0.02, lambda: False)


def test_poll_propagates_condition_error():
    def condition():
        raise RuntimeError("boom")

    with pytest.raises(RuntimeError, match="boom"):
        poll(0.001, 1.0, condition)


def test_client_get_returns_created_copy():
    client = InMemoryClient()
    client.create(_obj("Pod", "p1", "ns1"))
    fetched = client.get("Pod", "p1", "ns1")
    assert fetched["metadata"]["name"] == "p1"
    fetched["metadata"]["name"] = "changed"
    assert client.get("Pod", "p1", "ns1")["metadata"]["name"] == "p1"


def test_client_get_missing_raises_not_found():
    client = InMemoryClient()
    with pytest.raises(NotFoundError):
        client.get("Pod", "missing", "ns1")


def test_client_create_twice_is_rejected():
    client = InMemoryClient()
    client.create(_obj("Namespace", "n1"))
    with pytest.raises(ValueError):
        client.create(_obj("Namespace", "n1"))


def test_client_list_filters_namespace_and_labels():
    client = InMemoryClient()
    client.create(_obj("Pod", "a", "ns1", {"app": "web"}))
    client.create(_obj("Pod", "b", "ns1", {"app": "db"}))
    client.create(_obj("Pod", "c", "ns2", {"app": "web"}))
    client.create(_obj("Role", "d", "ns1", {"app": "web"}))
    names = [o["metadata"]["name"] for o in client.list("Pod", "ns1", {"app": "web"})]
    assert names == ["a"]
    all_web = [o["metadata"]["name"] for o in client.list("Pod", labels={"app": "web"})]
    assert sorted(all_web) == ["a", "c"]


def test_client_update_with_stale_version_conflicts():
    client = InMemoryClient()
    client.create(_obj("Pod", "p1", "ns1"))
    first = client.get("Pod", "p1", "ns1")
    second = client.get("Pod", "p1", "ns1")
    first["spec"] = {"x": 1}
    client.update(first)
    second["spec"] = {"x": 2}
    with pytest.raises(ValueError, match="conflict"):
        client.update(second)
    assert client.get("Pod", "p1", "ns1")["spec"] == {"x": 1}


def test_client_update_missing_raises_not_found():
    client = InMemoryClient()
    with pytest.raises(NotFoundError):
        client.update(_obj("Pod", "ghost", "ns1"))


def test_client_delete():
    client = InMemoryClient()
    client.create(_obj("Pod", "p1", "ns1"))
    client.delete("Pod", "p1", "ns1")
    assert client.list("Pod") == []
    with pytest.raises(NotFoundError):
        client.delete("Pod", "p1", "ns1")


def test_with_retry_options_returns_changed_copy():
    original = _awaitility(InMemoryClient())
    changed = original.with_retry_options(timeout=15.0)
    assert changed.timeout == 15.0
    assert changed.retry_interval == original.retry_interval
    assert original.timeout == 0.05
    assert changed.client is original.client


def test_awaitility_poll_uses_its_timeout():
    await_ = _awaitility(InMemoryClient())
    with pytest.raises(WaitTimeoutError):
        await_.poll(lambda: False)


def test_get_or_none():
    client = InMemoryClient()
    client.create(_obj("ConfigMap", "cm", "member-ns"))
    await_ = _awaitility(client)
    assert await_.get_or_none("ConfigMap", "cm", "member-ns")["metadata"]["name"] == "cm"
    assert await_.get_or_none("ConfigMap", "other", "member-ns") is None


def test_awaitility_create_stores_object():
    client = InMemoryClient()
    created = _awaitility(client).create(_obj("Idler", "idler-1"))
    assert created["metadata"]["name"] == "idler-1"
    assert client.get("Idler", "idler-1")["kind"] == "Idler"


def test_awaitility_create_retries_then_times_out():
    client = InMemoryClient()
    client.create(_obj("Idler", "idler-1"))
    logs = []
    with pytest.raises(WaitTimeoutError):
        _awaitility(client, logs).create(_obj("Idler", "idler-1"))
    assert logs
    assert all("Will try to create again." in line for line in logs)


def test_list_content_describes_objects():
    client = InMemoryClient()
    client.create(_obj("Pod", "p1", "member-ns"))
    content = _awaitility(client)._list_content("Pod", "member-ns")
    assert "name: p1" in content
    assert "member-ns" in content