"""Strongly-typed preference keys."""

from __future__ import annotations

import dataclasses
from typing import Any, Generic, TypeVar

from pydefaults.exceptions import InvalidKeyError

T = TypeVar("T")

# The native addressing scheme treats "." as a nested-path separator.
RESERVED_SEPARATOR = "."


@dataclasses.dataclass(frozen=True, eq=False, slots=True)
class Key(Generic[T]):
    """A string-backed identifier for one preference entry.

    Keys are usually defined once, at module level, next to the code that
    owns the preference::

        LAUNCH_COUNT = Key("launchCount", int, default=0)
        THEME = Key("theme", str)

    Equality and hashing use the raw :attr:`name` only, so two keys with the
    same name address the same stored value whatever type they declare.

    Parameters
    ----------
    name : str
        Raw key string. Must be non-empty and must not contain ``"."``.
    value_type : type
        Type (or type annotation, e.g. ``list[str]``) the value is checked
        against on every typed read, write and change notification.
    default : optional
        Fallback registered by ``Defaults.register()`` when the key appears
        in the defaults table (or is passed on its own).
    """

    name: str
    value_type: Any = Any
    default: T | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.name, str):
            raise InvalidKeyError(f"Key name must be a string, got {type(self.name).__name__}", name=self.name)
        if not self.name:
            raise InvalidKeyError("Key name must be non-empty", name=self.name)
        if RESERVED_SEPARATOR in self.name:
            raise InvalidKeyError(
                f"Key name {self.name!r} must not contain {RESERVED_SEPARATOR!r}",
                name=self.name,
            )

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Key):
            return NotImplemented
        return self.name == other.name

    def __hash__(self) -> int:
        return hash(self.name)

    def __str__(self) -> str:
        return self.name
