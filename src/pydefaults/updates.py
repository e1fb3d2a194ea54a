"""asyncio helpers built on observers.

Changes are delivered on whichever thread wrote the value; these helpers hop
them onto the running event loop with ``call_soon_threadsafe``.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Callable
from typing import Any, TypeVar

from pydefaults.keys import Key
from pydefaults.store import Defaults

T = TypeVar("T")


async def updates(
    defaults: Defaults,
    key: Key[T],
    *,
    initial: bool = True,
    maxsize: int = 128,
) -> AsyncIterator[T]:
    """Yield typed values of *key* as they change.

    With ``initial`` the current value (if any) is yielded first. A change
    that lands while that value is being read is not yielded a second time.
    The underlying observer is invalidated when the iterator is closed::

        async for theme in updates(defaults, THEME):
            apply_theme(theme)

    At most *maxsize* pending values are buffered for a slow consumer; when
    the buffer is full the oldest pending value is dropped. ``maxsize=0``
    buffers without limit.
    """
    loop = asyncio.get_running_loop()
    queue: asyncio.Queue[tuple[bool, T]] = asyncio.Queue(maxsize=max(maxsize, 0))
    snapshot_taken = False

    def enqueue(item: tuple[bool, T]) -> None:
        if queue.full():
            queue.get_nowait()
        queue.put_nowait(item)

    def on_change(_store: Defaults, _key: Key[Any], value: T) -> None:
        loop.call_soon_threadsafe(enqueue, (not snapshot_taken, value))

    observer = defaults.observe(key, on_change, initial=False)
    try:
        current: T | None = None
        if initial:
            current = defaults.get(key)
        snapshot_taken = True
        if current is not None:
            yield current
        while True:
            before_snapshot, value = await queue.get()
            if before_snapshot and current is not None and value == current:
                continue
            yield value
    finally:
        observer.invalidate()


async def wait_for(
    defaults: Defaults,
    key: Key[T],
    predicate: Callable[[T], bool] | None = None,
    *,
    timeout: float,
) -> T | None:
    """Wait for a value of *key* that satisfies *predicate*.

    Without a predicate this waits for the next change. With one, the
    current value is checked first and returned straight away if it matches.
    An exception raised by *predicate* propagates to the caller.

    Returns
    -------
    The matching value, or ``None`` on timeout.
    """
    loop = asyncio.get_running_loop()
    fut: asyncio.Future[T] = loop.create_future()

    def resolve(value: T) -> None:
        if fut.done():
            return
        try:
            matched = predicate is None or predicate(value)
        except Exception as exc:
            fut.set_exception(exc)
            return
        if matched:
            fut.set_result(value)

    def on_change(_store: Defaults, _key: Key[Any], value: T) -> None:
        loop.call_soon_threadsafe(resolve, value)

    observer = defaults.observe(key, on_change, initial=False)
    try:
        if predicate is not None:
            current = defaults.get(key)
            if current is not None and predicate(current):
                return current
        if timeout <= 0:
            return None
        return await asyncio.wait_for(fut, timeout)
    except TimeoutError:
        return None
    finally:
        observer.invalidate()
