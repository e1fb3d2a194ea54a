"""Custom exception hierarchy for pydefaults."""

from __future__ import annotations

from typing import Any


class DefaultsError(Exception):
    """Base exception for all pydefaults errors."""


class DefaultsConfigError(DefaultsError):
    """Invalid or missing configuration."""


class InvalidKeyError(DefaultsError, ValueError):
    """A raw key name was rejected at ``Key`` construction.

    Raw names must be non-empty strings and must not contain ``.``,
    which the store's addressing scheme would read as a nested path.
    """

    def __init__(self, message: str, *, name: Any = None) -> None:
        self.name = name
        super().__init__(message)


class MissingValueError(DefaultsError, LookupError):
    """Non-optional read of a key with no stored value and no default."""

    def __init__(self, message: str, *, key: str = "") -> None:
        self.key = key
        super().__init__(message)


class ValueTypeError(DefaultsError, TypeError):
    """A value does not match the type declared by its key.

    Raised by the non-optional accessor and by writes. The optional
    accessor and observer dispatch treat a mismatch as "absent" instead.
    """

    def __init__(
        self,
        message: str,
        *,
        key: str = "",
        expected: Any = None,
        actual: type | None = None,
    ) -> None:
        self.key = key
        self.expected = expected
        self.actual = actual
        super().__init__(message)


class ObserverStateError(DefaultsError):
    """Observer used in a state that does not allow the operation (e.g. re-activation)."""
