"""Selection of request headers."""

from __future__ import annotations

from typing import Any, Iterable, Mapping


def get_headers(header: Mapping[str, Any], keys: Iterable[str]) -> dict[str, str] | None:
    """Return the non-empty headers named by keys, or None when no keys are given."""
    keys = list(keys)
    if not keys:
        return None
    lowered: dict[str, str] = {}
    for name, value in header.items():
        if isinstance(value, (list, tuple)):
            value = value[0] if value else ""
        lowered.setdefault(name.lower(), value)
    result = {}
    for key in keys:
        value = lowered.get(key.lower(), "")
        if value:
            result[key] = value
    return result