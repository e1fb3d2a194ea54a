"""Typed facade over a native key-value store."""

from __future__ import annotations

import logging
import os
from collections.abc import Iterable, Mapping
from pathlib import Path
from typing import Any, TypeVar

from pydantic import TypeAdapter, ValidationError

from pydefaults._redact import redact_value
from pydefaults._typecheck import MISSING, check_value, type_name
from pydefaults.config import DefaultsConfig
from pydefaults.exceptions import MissingValueError, ValueTypeError
from pydefaults.keys import RESERVED_SEPARATOR, Key
from pydefaults.native import NativeStore, standard_store
from pydefaults.observation import ChangeCallback, ObservationRegistry, Observer

_logger = logging.getLogger(__name__)

T = TypeVar("T")

DefaultsTable = Mapping[Key[Any] | str, Any]

_RESOURCE_ADAPTER: TypeAdapter[dict[str, Any]] = TypeAdapter(dict[str, Any])


def load_resource(path: str | os.PathLike[str]) -> dict[str, Any]:
    """Load a bundled defaults resource (a JSON object of raw key -> value).

    Returns an empty mapping when the file is missing, unreadable or
    malformed; the failure is logged, never raised.
    """
    try:
        payload = Path(path).read_bytes()
    except OSError:
        _logger.debug("Defaults resource %s not readable; using static defaults only", path, exc_info=True)
        return {}
    try:
        data = _RESOURCE_ADAPTER.validate_json(payload)
    except ValidationError:
        _logger.debug("Defaults resource %s is not a JSON object; using static defaults only", path, exc_info=True)
        return {}

    cleaned: dict[str, Any] = {}
    for raw_key, value in data.items():
        if not raw_key or RESERVED_SEPARATOR in raw_key:
            _logger.debug("Ignoring invalid key %r in defaults resource %s", raw_key, path)
            continue
        cleaned[raw_key] = value
    return cleaned


class Defaults:
    """Typed access to a :class:`~pydefaults.native.NativeStore`.

    Usage::

        THEME = Key("theme", str, default="light")
        LAUNCH_COUNT = Key("launchCount", int, default=0)

        defaults = Defaults(MemoryStore())
        defaults.register([THEME, LAUNCH_COUNT], resource="defaults.json")

        defaults[LAUNCH_COUNT] += 1
        theme = defaults.get(THEME)  # None when absent or mistyped

        observer = defaults.observe(THEME, lambda store, key, value: print(value))

    Indexing (``defaults[key]``) is the non-optional accessor: it raises
    :class:`MissingValueError` or :class:`ValueTypeError` when the
    precondition "a value of the key's type exists" does not hold. Use
    :meth:`get` when absence is expected.

    When *store* is omitted the process-wide :func:`standard_store` is used.
    """

    def __init__(self, store: NativeStore | None = None, *, config: DefaultsConfig | None = None) -> None:
        self._native: NativeStore = store if store is not None else standard_store()
        self._config = config if config is not None else DefaultsConfig()
        self._registry = ObservationRegistry(self)

    @property
    def native(self) -> NativeStore:
        return self._native

    @property
    def config(self) -> DefaultsConfig:
        return self._config

    @property
    def registry(self) -> ObservationRegistry:
        return self._registry

    # ------------------------------------------------------------------
    # Defaults registration
    # ------------------------------------------------------------------

    def register(
        self,
        defaults: DefaultsTable | Iterable[Key[Any]] | None = None,
        *,
        resource: str | os.PathLike[str] | None = None,
    ) -> None:
        """Seed the store's fallback values.

        *defaults* is either a mapping of key (or raw name) to value, or an
        iterable of keys whose own ``default`` is used. In a mapping, a
        ``None`` value for a :class:`Key` also falls back to ``key.default``.

        The bundled *resource* (or ``config.resource_path``) is merged over
        the static table, so resource entries win on collisions. A missing
        or malformed resource leaves the static table in effect. Entries
        without a value (no table value and no ``key.default``) are skipped,
        so earlier registrations are never removed.
        """
        static = self._static_table(defaults)
        merged: dict[str, Any] = {name: value for name, (_key, value) in static.items()}

        resource_path = resource if resource is not None else self._config.resource_path
        if resource_path is not None:
            overrides = load_resource(resource_path)
            if overrides:
                _logger.debug("Loaded %d default(s) from %s", len(overrides), resource_path)
            merged.update(overrides)
        # Registration only adds or replaces defaults.
        merged = {name: value for name, value in merged.items() if value is not None}

        for name, value in merged.items():
            entry = static.get(name)
            key = entry[0] if entry is not None else None
            if key is not None and self.coerce(key, value) is MISSING:
                _logger.warning(
                    "Default for key=%s does not match %s: %r",
                    name,
                    type_name(key.value_type),
                    redact_value(name, value),
                )

        self._native.register_defaults(merged)

    @staticmethod
    def _static_table(defaults: DefaultsTable | Iterable[Key[Any]] | None) -> dict[str, tuple[Key[Any] | None, Any]]:
        table: dict[str, tuple[Key[Any] | None, Any]] = {}
        if defaults is None:
            return table
        if isinstance(defaults, Mapping):
            for entry, value in defaults.items():
                if isinstance(entry, Key):
                    table[entry.name] = (entry, entry.default if value is None else value)
                else:
                    # Raw names go through Key so they get the same validation.
                    table[Key(entry).name] = (None, value)
            return table
        for key in defaults:
            table[key.name] = (key, key.default)
        return table

    # ------------------------------------------------------------------
    # Typed access
    # ------------------------------------------------------------------

    def coerce(self, key: Key[Any], raw_value: Any, *, value_type: Any = None) -> Any:
        """Type-check *raw_value* for *key*; returns ``MISSING`` on mismatch."""
        tp = value_type if value_type is not None else key.value_type
        return check_value(raw_value, tp, strict=self._config.strict_types)

    def get(self, key: Key[T]) -> T | None:
        """Optional accessor: the typed value, or ``None`` if absent or mistyped."""
        value = self.coerce(key, self._native.get(key.name))
        if value is MISSING:
            return None
        return value  # type: ignore[no-any-return]

    def require(self, key: Key[T]) -> T:
        """Non-optional accessor.

        Raises
        ------
        MissingValueError
            No stored value and no registered default.
        ValueTypeError
            The value does not match ``key.value_type``.
        """
        raw = self._native.get(key.name)
        if raw is None:
            raise MissingValueError(f"No value or default registered for key {key.name!r}", key=key.name)
        value = self.coerce(key, raw)
        if value is MISSING:
            raise ValueTypeError(
                f"Value for key {key.name!r} is {type(raw).__name__}, expected {type_name(key.value_type)}",
                key=key.name,
                expected=key.value_type,
                actual=type(raw),
            )
        return value  # type: ignore[no-any-return]

    def set(self, key: Key[T], value: T | None) -> None:
        """Write *value* through to the store; ``None`` removes the stored value.

        Raises
        ------
        ValueTypeError
            *value* does not match ``key.value_type``. Nothing is written.
        """
        if value is None:
            self._native.remove(key.name)
            return
        checked = self.coerce(key, value)
        if checked is MISSING:
            raise ValueTypeError(
                f"Cannot store {type(value).__name__} under key {key.name!r}, expected {type_name(key.value_type)}",
                key=key.name,
                expected=key.value_type,
                actual=type(value),
            )
        self._native.set(key.name, checked)

    def reset(self, *keys: Key[Any]) -> None:
        """Remove stored values so registered defaults apply again.

        With no arguments every stored value is removed.
        """
        names = [key.name for key in keys] if keys else self._native.keys()
        for name in names:
            self._native.remove(name)

    def __getitem__(self, key: Key[T]) -> T:
        return self.require(key)

    def __setitem__(self, key: Key[T], value: T | None) -> None:
        self.set(key, value)

    def __delitem__(self, key: Key[Any]) -> None:
        self.reset(key)

    def __contains__(self, key: object) -> bool:
        if not isinstance(key, Key):
            return False
        return self._native.get(key.name) is not None

    # ------------------------------------------------------------------
    # Observation
    # ------------------------------------------------------------------

    def observe(
        self,
        key: Key[Any],
        callback: ChangeCallback,
        *,
        initial: bool | None = None,
    ) -> Observer:
        """Call ``callback(store, key, value)`` whenever *key* changes.

        The returned observer must be retained; see
        :mod:`pydefaults.observation` for the ownership contract.
        """
        return self._registry.observe(key, callback, initial=self._initial(initial))

    def observe_many(
        self,
        keys: Iterable[Key[Any]],
        callback: ChangeCallback,
        *,
        initial: bool | None = None,
        value_type: Any = None,
    ) -> Observer:
        """Observe several keys with one callback; the firing key is passed along."""
        return self._registry.observe_many(
            keys,
            callback,
            initial=self._initial(initial),
            value_type=value_type,
        )

    def _initial(self, initial: bool | None) -> bool:
        return self._config.deliver_initial if initial is None else initial

    def __repr__(self) -> str:
        return f"<Defaults native={type(self._native).__name__}>"
