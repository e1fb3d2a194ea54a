"""Helpers for safe debug logging.

Preference values can be arbitrarily large (cached blobs, long lists) and may
hold credentials an application chose to keep in its preferences. This module
provides a small utility to redact and truncate values before emitting DEBUG logs.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any

_SENSITIVE_NAME_FRAGMENTS: tuple[str, ...] = (
    "password",
    "passwd",
    "secret",
    "token",
    "apikey",
    "api_key",
    "credential",
    "cookie",
)


def is_sensitive_name(name: str) -> bool:
    """Return ``True`` when a key name suggests its value is a secret."""
    lowered = name.lower()
    return any(fragment in lowered for fragment in _SENSITIVE_NAME_FRAGMENTS)


def redact_for_log(value: Any, *, max_string: int = 256, max_items: int = 20, _depth: int = 0) -> Any:
    """Return a redacted copy of *value* suitable for debug logs."""
    if _depth > 10:
        return "<max-depth>"

    if value is None:
        return None

    if isinstance(value, str):
        if len(value) > max_string:
            return f"{value[:max_string]}…<truncated>"
        return value

    if isinstance(value, (int, float, bool)):
        return value

    if isinstance(value, (bytes, bytearray)):
        return f"<bytes:{len(value)}b>"

    if isinstance(value, Mapping):
        redacted: dict[str, Any] = {}
        for index, (k, v) in enumerate(value.items()):
            if index >= max_items:
                redacted["…"] = f"<{len(value) - max_items} more>"
                break
            key = str(k)
            if is_sensitive_name(key):
                redacted[key] = "<redacted>"
            else:
                redacted[key] = redact_for_log(v, max_string=max_string, max_items=max_items, _depth=_depth + 1)
        return redacted

    if isinstance(value, Sequence):
        items = [redact_for_log(v, max_string=max_string, max_items=max_items, _depth=_depth + 1) for v in value[:max_items]]
        if len(value) > max_items:
            items.append(f"<{len(value) - max_items} more>")
        return items

    # Fallback: represent unknown objects without dumping internals.
    text = repr(value)
    if len(text) > max_string:
        return f"{text[:max_string]}…<truncated>"
    return text


def redact_value(name: str, value: Any) -> Any:
    """Redact *value* stored under key *name* for logging."""
    if is_sensitive_name(name):
        return "<redacted>"
    return redact_for_log(value)
