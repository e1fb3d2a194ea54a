"""Typed change observation on top of the native per-key primitive.

An :class:`Observer` subscribes one callback to one or more keys. Each key
gets its own native subscription whose context token is the :class:`Key`
itself, so a change can be traced back to the key that fired. The raw new
value is type-checked against that key and delivered as
``callback(store, key, value)``. Values that fail the check are dropped.

Ownership
---------
The native store only holds a *weak* reference to the observer. The caller
must keep the returned :class:`Observer` alive for as long as it wants
notifications::

    observer = defaults.observe(THEME, on_theme_changed)
    ...
    observer.invalidate()

Dropping the last reference silently stops delivery: a ``weakref.finalize``
hook removes the native subscriptions. Prefer calling :meth:`Observer.invalidate`
(or using the observer as a context manager) over relying on collection.
"""

from __future__ import annotations

import enum
import logging
import threading
import weakref
from collections.abc import Callable, Hashable, Iterable
from typing import TYPE_CHECKING, Any, NamedTuple

from pydefaults._redact import redact_value
from pydefaults._typecheck import MISSING
from pydefaults.exceptions import ObserverStateError
from pydefaults.keys import Key
from pydefaults.native import ChangeHandler, NativeStore

if TYPE_CHECKING:
    from pydefaults.store import Defaults

_logger = logging.getLogger(__name__)

ChangeCallback = Callable[[Any, Key[Any], Any], None]
"""``callback(store, key, value)``."""


class ObserverState(enum.StrEnum):
    UNREGISTERED = "unregistered"
    ACTIVE = "active"
    INVALIDATED = "invalidated"


class ChangeEvent(NamedTuple):
    """One typed change, unpacked into the callback's positional arguments."""

    store: Defaults
    key: Key[Any]
    new_value: Any


def _weak_handler(ref: weakref.ref[Observer]) -> ChangeHandler:
    # Holds the observer weakly; the native store keeps this closure alive.
    def handler(raw_key: str, old: Any, new: Any, context: Any) -> None:
        observer = ref()
        if observer is None:
            return
        observer._dispatch(context, new)

    return handler


def _release(native: NativeStore, tokens: list[Hashable]) -> None:
    for token in tokens:
        native.remove_observer(token)
    tokens.clear()


class Observer:
    """A live subscription of one callback to one or more keys.

    Lifecycle is one-shot: ``UNREGISTERED -> ACTIVE -> INVALIDATED``.
    Instances are normally created by ``Defaults.observe`` and
    ``Defaults.observe_many``, which also activate them.
    """

    def __init__(
        self,
        store: Defaults,
        keys: Iterable[Key[Any]],
        callback: ChangeCallback,
        *,
        initial: bool = False,
        value_type: Any = None,
    ) -> None:
        unique = tuple(dict.fromkeys(keys))
        if not unique:
            raise ValueError("Observer needs at least one key")
        self._store = store
        self._keys = unique
        self._callback = callback
        self._initial = initial
        self._value_type = value_type
        self._state = ObserverState.UNREGISTERED
        self._lock = threading.Lock()
        self._tokens: list[Hashable] = []
        self._finalizer: weakref.finalize | None = None

    @property
    def keys(self) -> tuple[Key[Any], ...]:
        return self._keys

    @property
    def state(self) -> ObserverState:
        return self._state

    @property
    def is_active(self) -> bool:
        return self._state is ObserverState.ACTIVE

    def activate(self) -> Observer:
        """Subscribe to every key and, if requested, deliver current values.

        Raises
        ------
        ObserverStateError
            If the observer was already activated or invalidated.
        """
        native = self._store.native
        with self._lock:
            if self._state is not ObserverState.UNREGISTERED:
                raise ObserverStateError(f"Cannot activate observer in state {self._state.value!r}")
            handler = _weak_handler(weakref.ref(self))
            for key in self._keys:
                self._tokens.append(native.add_observer(key.name, handler, key))
            self._finalizer = weakref.finalize(self, _release, native, self._tokens)
            self._state = ObserverState.ACTIVE
        _logger.debug("observing %s", ", ".join(key.name for key in self._keys))

        if self._initial:
            for key in self._keys:
                try:
                    self._dispatch(key, native.get(key.name))
                except Exception:
                    _logger.debug("initial delivery failed for key=%s", key.name, exc_info=True)
        return self

    def invalidate(self) -> None:
        """Stop delivery and remove all native subscriptions. Idempotent.

        Safe to call while a delivery is in flight on another thread: once
        this returns no new callback starts, while one already running
        completes.
        """
        with self._lock:
            if self._state is ObserverState.INVALIDATED:
                return
            self._state = ObserverState.INVALIDATED
            finalizer = self._finalizer
        if finalizer is not None:
            finalizer()
        _logger.debug("invalidated observer for %s", ", ".join(key.name for key in self._keys))

    def _dispatch(self, key: Key[Any], raw_value: Any) -> None:
        if self._state is not ObserverState.ACTIVE:
            return
        value = self._store.coerce(key, raw_value, value_type=self._value_type)
        if value is MISSING:
            _logger.debug(
                "dropped change for key=%s: %r does not match the expected type",
                key.name,
                redact_value(key.name, raw_value),
            )
            return
        self._callback(*ChangeEvent(self._store, key, value))

    def __enter__(self) -> Observer:
        return self

    def __exit__(self, *exc: Any) -> None:
        self.invalidate()

    def __repr__(self) -> str:
        names = ", ".join(key.name for key in self._keys)
        return f"<Observer keys=[{names}] state={self._state.value}>"


class ObservationRegistry:
    """Creates observers for one store and tracks the ones still alive.

    The registry only keeps weak references, so it never extends an
    observer's lifetime.
    """

    def __init__(self, store: Defaults) -> None:
        self._store = store
        self._lock = threading.Lock()
        self._observers: weakref.WeakSet[Observer] = weakref.WeakSet()

    def observe(
        self,
        key: Key[Any],
        callback: ChangeCallback,
        *,
        initial: bool = False,
    ) -> Observer:
        return self.observe_many([key], callback, initial=initial)

    def observe_many(
        self,
        keys: Iterable[Key[Any]],
        callback: ChangeCallback,
        *,
        initial: bool = False,
        value_type: Any = None,
    ) -> Observer:
        """Fan several keys into one callback.

        ``value_type`` overrides the per-key type check for every key; by
        default each change is checked against its own key's type.
        """
        observer = Observer(self._store, keys, callback, initial=initial, value_type=value_type)
        with self._lock:
            self._observers.add(observer)
        return observer.activate()

    @property
    def observers(self) -> list[Observer]:
        with self._lock:
            return [observer for observer in self._observers if observer.is_active]

    def invalidate_all(self) -> None:
        for observer in self.observers:
            observer.invalidate()
