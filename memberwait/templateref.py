"""Parsing of template references."""

from __future__ import annotations


def split(template_ref: str) -> tuple[str, str, str]:
    """Split ``<tier>-<type>-<revision>`` into its three parts.

    Raises ValueError when the reference does not have three parts.
    """
    parts = template_ref.split("-", 2)
    if len(parts) != 3:
        raise ValueError(f"invalid templateref: '{template_ref}'")
    tier, kind, revision = parts
    return tier, kind, revision