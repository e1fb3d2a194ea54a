from __future__ import annotations

import asyncio
import threading

import pytest

from pydefaults.keys import Key
from pydefaults.native import MemoryStore
from pydefaults.store import Defaults
from pydefaults.updates import updates, wait_for

STATUS = Key("syncStatus", str)
VOLUME = Key("volume", int)


def _write_from_thread(defaults: Defaults, key: Key[str], value: str) -> None:
    threading.Thread(target=defaults.set, args=(key, value)).start()


@pytest.mark.asyncio
async def test_updates_yields_current_value_then_changes() -> None:
    native = MemoryStore({"volume": 1})
    defaults = Defaults(native)

    stream = updates(defaults, VOLUME)
    assert await asyncio.wait_for(stream.__anext__(), 1.0) == 1

    defaults[VOLUME] = 2
    defaults[VOLUME] = 3
    assert await asyncio.wait_for(stream.__anext__(), 1.0) == 2
    assert await asyncio.wait_for(stream.__anext__(), 1.0) == 3

    await stream.aclose()
    assert native.observer_count("volume") == 0


@pytest.mark.asyncio
async def test_updates_without_initial_waits_for_a_change() -> None:
    native = MemoryStore({"volume": 1})
    defaults = Defaults(native)

    stream = updates(defaults, VOLUME, initial=False)
    pending = asyncio.ensure_future(stream.__anext__())
    await asyncio.sleep(0.01)
    assert not pending.done()

    defaults[VOLUME] = 5
    assert await asyncio.wait_for(pending, 1.0) == 5
    await stream.aclose()


@pytest.mark.asyncio
async def test_updates_receives_values_written_on_other_threads() -> None:
    defaults = Defaults(MemoryStore())

    stream = updates(defaults, STATUS, initial=False)
    pending = asyncio.ensure_future(stream.__anext__())
    await asyncio.sleep(0.01)

    _write_from_thread(defaults, STATUS, "syncing")
    assert await asyncio.wait_for(pending, 1.0) == "syncing"
    await stream.aclose()


@pytest.mark.asyncio
async def test_wait_for_resolves_on_matching_change() -> None:
    native = MemoryStore()
    defaults = Defaults(native)
    loop = asyncio.get_running_loop()
    loop.call_later(0.01, _write_from_thread, defaults, STATUS, "syncing")
    loop.call_later(0.05, _write_from_thread, defaults, STATUS, "done")

    result = await wait_for(defaults, STATUS, lambda value: value == "done", timeout=2.0)

    assert result == "done"
    assert native.observer_count() == 0


@pytest.mark.asyncio
async def test_wait_for_returns_current_value_when_predicate_already_holds() -> None:
    defaults = Defaults(MemoryStore({"syncStatus": "done"}))

    assert await wait_for(defaults, STATUS, lambda value: value == "done", timeout=0) == "done"


@pytest.mark.asyncio
async def test_wait_for_times_out() -> None:
    native = MemoryStore()
    defaults = Defaults(native)

    assert await wait_for(defaults, STATUS, timeout=0.05) is None
    assert await wait_for(defaults, STATUS, timeout=0) is None
    assert native.observer_count() == 0


@pytest.mark.asyncio
async def test_wait_for_propagates_predicate_errors() -> None:
    native = MemoryStore()
    defaults = Defaults(native)

    def picky(value: int) -> bool:
        if value == 3:
            raise ValueError("unexpected volume")
        return False

    asyncio.get_running_loop().call_later(0.01, defaults.set, VOLUME, 3)

    with pytest.raises(ValueError):
        await wait_for(defaults, VOLUME, picky, timeout=2.0)
    assert native.observer_count() == 0


class _RacyStore(MemoryStore):
    """Lands a write between subscription and the first read."""

    def __init__(self) -> None:
        super().__init__()
        self.raced = False

    def get(self, raw_key: str) -> object:
        if not self.raced:
            self.raced = True
            self.set(raw_key, 9)
        return super().get(raw_key)


@pytest.mark.asyncio
async def test_updates_does_not_repeat_value_written_during_initial_read() -> None:
    defaults = Defaults(_RacyStore())

    stream = updates(defaults, VOLUME)
    assert await asyncio.wait_for(stream.__anext__(), 1.0) == 9

    defaults[VOLUME] = 10
    assert await asyncio.wait_for(stream.__anext__(), 1.0) == 10
    await stream.aclose()


@pytest.mark.asyncio
async def test_updates_drops_oldest_when_buffer_is_full() -> None:
    defaults = Defaults(MemoryStore({"volume": 0}))

    stream = updates(defaults, VOLUME, maxsize=2)
    assert await asyncio.wait_for(stream.__anext__(), 1.0) == 0

    for value in (1, 2, 3, 4):
        defaults[VOLUME] = value
    await asyncio.sleep(0.01)

    assert await asyncio.wait_for(stream.__anext__(), 1.0) == 3
    assert await asyncio.wait_for(stream.__anext__(), 1.0) == 4
    await stream.aclose()
