"""Render cluster objects as YAML without the noise of managed fields."""

from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime, timezone
from typing import Any

import yaml


class _Dumper(yaml.SafeDumper):
    """YAML dumper that quotes ambiguous strings with double quotes."""

    def choose_scalar_style(self):  # noqa: D401 - emitter hook
        style = super().choose_scalar_style()
        return '"' if style == "'" else style


def _normalize(value: Any) -> Any:
    if isinstance(value, Mapping):
        return {str(key): _normalize(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_normalize(item) for item in value]
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc)
        return value.strftime("%Y-%m-%dT%H:%M:%SZ")
    return value


def _without_managed_fields(obj: Any) -> dict:
    if not isinstance(obj, Mapping):
        raise TypeError(f"expected a mapping, got {type(obj).__name__}")
    result = _normalize(obj)
    metadata = result.get("metadata")
    if isinstance(metadata, dict):
        metadata.pop("managedFields", None)
    return result


def _dump(data: Any) -> str:
    return yaml.dump(
        data,
        Dumper=_Dumper,
        default_flow_style=False,
        sort_keys=True,
        allow_unicode=True,
        width=float("inf"),
    )


def stringify_object(obj: Mapping) -> str:
    """Render the object as YAML, leaving out ``metadata.managedFields``."""
    return _dump(_without_managed_fields(obj))


def stringify_objects(obj_list: Any) -> str:
    """Render a list of objects as YAML, leaving out ``metadata.managedFields``.

    ``obj_list`` is either a mapping holding an ``items`` sequence or a
    sequence of objects itself. A mapping without ``items`` renders as an
    empty list.
    """
    if isinstance(obj_list, Mapping):
        items = obj_list.get("items")
        if not isinstance(items, (list, tuple)):
            items = []
    elif isinstance(obj_list, (list, tuple)):
        items = obj_list
    else:
        raise TypeError(f"expected a list of objects, got {type(obj_list).__name__}")
    return _dump([_without_managed_fields(item) for item in items])