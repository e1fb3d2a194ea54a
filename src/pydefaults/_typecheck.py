"""Central type-check-and-convert step.

Values come back from a ``NativeStore`` untyped. Every typed read, typed
write and observer dispatch funnels through :func:`check_value`, which
validates against the key's declared type with a cached pydantic
``TypeAdapter`` and reports a mismatch as :data:`MISSING` instead of raising.
"""

from __future__ import annotations

import enum
import functools
from typing import Any, Final

from pydantic import ConfigDict, PydanticUserError, TypeAdapter, ValidationError

_ADAPTER_CONFIG = ConfigDict(arbitrary_types_allowed=True)


class _Missing(enum.Enum):
    MISSING = "MISSING"

    def __repr__(self) -> str:
        return "MISSING"

    def __bool__(self) -> bool:
        return False


MISSING: Final = _Missing.MISSING
"""Returned by :func:`check_value` for absent or mistyped values."""


def _build_adapter(tp: Any) -> TypeAdapter[Any]:
    try:
        return TypeAdapter(tp, config=_ADAPTER_CONFIG)
    except PydanticUserError:
        # Models, dataclasses and TypedDicts carry their own config.
        return TypeAdapter(tp)


@functools.lru_cache(maxsize=256)
def _cached_adapter(tp: Any) -> TypeAdapter[Any]:
    return _build_adapter(tp)


def adapter_for(tp: Any) -> TypeAdapter[Any]:
    """Return a (cached where possible) ``TypeAdapter`` for *tp*."""
    try:
        return _cached_adapter(tp)
    except TypeError:
        # Unhashable annotations (e.g. Annotated with dict metadata).
        return _build_adapter(tp)


def check_value(value: Any, tp: Any, *, strict: bool = True) -> Any:
    """Validate *value* against *tp*.

    Returns the validated value, or :data:`MISSING` when *value* is ``None``
    (absent) or does not match. Never raises for a mismatch.
    """
    if value is None or value is MISSING:
        return MISSING
    try:
        return adapter_for(tp).validate_python(value, strict=strict)
    except ValidationError:
        return MISSING


def type_name(tp: Any) -> str:
    """Readable name of a type annotation for messages."""
    name = getattr(tp, "__name__", None)
    if isinstance(name, str) and not getattr(tp, "__args__", None):
        return name
    return repr(tp).replace("typing.", "")
