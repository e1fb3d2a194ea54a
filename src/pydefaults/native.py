"""Native key-value store contract and the in-memory implementation.

Everything above this module talks to a store only through
:class:`NativeStore`: untyped get/set by raw key, default registration and a
per-key observation primitive. Persistence, cross-process synchronisation and
on-disk formats are the concern of whoever implements the protocol.
"""

from __future__ import annotations

import copy
import itertools
import logging
import threading
from collections.abc import Callable, Hashable, Mapping
from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable

from pydefaults._redact import redact_value

_logger = logging.getLogger(__name__)

ChangeHandler = Callable[[str, Any, Any, Any], None]
"""``handler(raw_key, old_value, new_value, context)``."""


@runtime_checkable
class NativeStore(Protocol):
    """Untyped key-value store with per-key change observation.

    ``get`` returns the stored value, else the registered default, else
    ``None``. Change handlers receive these effective values and are called
    synchronously on the thread that performed the write, in subscription
    order. Every ``set`` notifies; removals and default registration notify
    only when the effective value actually changed.
    """

    def get(self, raw_key: str) -> Any | None: ...

    def set(self, raw_key: str, value: Any) -> None: ...

    def remove(self, raw_key: str) -> None: ...

    def keys(self) -> list[str]: ...

    def register_defaults(self, defaults: Mapping[str, Any]) -> None: ...

    def add_observer(self, raw_key: str, handler: ChangeHandler, context: Any = None) -> Hashable: ...

    def remove_observer(self, token: Hashable) -> None: ...


@dataclass(slots=True)
class _Subscription:
    raw_key: str
    handler: ChangeHandler
    context: Any


class MemoryStore:
    """Thread-safe in-memory :class:`NativeStore`.

    Stored values and defaults are deep-copied on the way in and on the way
    out, so callers never share mutable state with the store.
    """

    def __init__(self, values: Mapping[str, Any] | None = None) -> None:
        self._lock = threading.RLock()
        self._values: dict[str, Any] = copy.deepcopy(dict(values or {}))
        self._defaults: dict[str, Any] = {}
        self._subscriptions: dict[str, dict[int, _Subscription]] = {}
        self._token_keys: dict[int, str] = {}
        self._tokens = itertools.count(1)

    def _effective(self, raw_key: str) -> Any | None:
        if raw_key in self._values:
            return self._values[raw_key]
        return self._defaults.get(raw_key)

    def _subscribers(self, raw_key: str) -> list[_Subscription]:
        return list(self._subscriptions.get(raw_key, {}).values())

    def get(self, raw_key: str) -> Any | None:
        with self._lock:
            return copy.deepcopy(self._effective(raw_key))

    def set(self, raw_key: str, value: Any) -> None:
        if value is None:
            self.remove(raw_key)
            return
        with self._lock:
            old = self._effective(raw_key)
            self._values[raw_key] = copy.deepcopy(value)
            new = self._effective(raw_key)
            subscribers = self._subscribers(raw_key)
        _logger.debug("set %s=%r", raw_key, redact_value(raw_key, new))
        self._notify(raw_key, old, new, subscribers, force=True)

    def remove(self, raw_key: str) -> None:
        with self._lock:
            if raw_key not in self._values:
                return
            old = self._values.pop(raw_key)
            new = self._effective(raw_key)
            subscribers = self._subscribers(raw_key)
        _logger.debug("removed %s", raw_key)
        self._notify(raw_key, old, new, subscribers)

    def keys(self) -> list[str]:
        with self._lock:
            return list(self._values)

    def register_defaults(self, defaults: Mapping[str, Any]) -> None:
        pending: list[tuple[str, Any, Any, list[_Subscription]]] = []
        with self._lock:
            for raw_key, value in defaults.items():
                old = self._effective(raw_key)
                if value is None:
                    self._defaults.pop(raw_key, None)
                else:
                    self._defaults[raw_key] = copy.deepcopy(value)
                pending.append((raw_key, old, self._effective(raw_key), self._subscribers(raw_key)))
        _logger.debug("registered %d default(s)", len(defaults))
        for raw_key, old, new, subscribers in pending:
            self._notify(raw_key, old, new, subscribers)

    def add_observer(self, raw_key: str, handler: ChangeHandler, context: Any = None) -> Hashable:
        with self._lock:
            token = next(self._tokens)
            self._subscriptions.setdefault(raw_key, {})[token] = _Subscription(raw_key, handler, context)
            self._token_keys[token] = raw_key
            return token

    def remove_observer(self, token: Hashable) -> None:
        with self._lock:
            raw_key = self._token_keys.pop(token, None)  # type: ignore[call-overload]
            if raw_key is None:
                return
            subscriptions = self._subscriptions.get(raw_key)
            if subscriptions is None:
                return
            subscriptions.pop(token, None)  # type: ignore[call-overload]
            if not subscriptions:
                self._subscriptions.pop(raw_key, None)

    def observer_count(self, raw_key: str | None = None) -> int:
        """Number of native subscriptions, for one key or in total."""
        with self._lock:
            if raw_key is not None:
                return len(self._subscriptions.get(raw_key, {}))
            return len(self._token_keys)

    def _notify(
        self,
        raw_key: str,
        old: Any,
        new: Any,
        subscribers: list[_Subscription],
        *,
        force: bool = False,
    ) -> None:
        if not subscribers or (not force and old == new):
            return
        for sub in subscribers:
            try:
                sub.handler(raw_key, copy.deepcopy(old), copy.deepcopy(new), sub.context)
            except Exception:
                _logger.debug("change handler failed for key=%s", raw_key, exc_info=True)


_standard_store: MemoryStore | None = None
_standard_lock = threading.Lock()


def standard_store() -> MemoryStore:
    """Return the process-wide shared store, creating it on first use."""
    global _standard_store
    with _standard_lock:
        if _standard_store is None:
            _standard_store = MemoryStore()
        return _standard_store
