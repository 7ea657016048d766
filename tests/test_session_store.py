import asyncio

from conftest import run
from models.schemas import ConversationMode, ConversationState
from services.session_store import InMemorySessionStore


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


def waiting_state():
    return ConversationState(mode=ConversationMode.AWAITING_READING_CATEGORY)


def test_state_round_trip_and_clear():
    store = InMemorySessionStore()
    run(store.set("a", waiting_state()))
    assert run(store.get("a")).mode == ConversationMode.AWAITING_READING_CATEGORY
    assert len(store) == 1

    run(store.clear("a"))
    assert run(store.get("a")) is None
    run(store.clear("missing"))


def test_idle_state_expires_after_ttl():
    clock = FakeClock()
    store = InMemorySessionStore(ttl_seconds=60, clock=clock)
    run(store.set("a", waiting_state()))

    clock.now += 60
    assert run(store.get("a")) is not None

    clock.now += 1
    assert run(store.get("a")) is None
    assert len(store) == 0


def test_set_refreshes_idle_timer():
    clock = FakeClock()
    store = InMemorySessionStore(ttl_seconds=60, clock=clock)
    run(store.set("a", waiting_state()))
    clock.now += 50
    run(store.set("a", waiting_state()))
    clock.now += 50
    assert run(store.get("a")) is not None


def test_zero_ttl_never_expires():
    clock = FakeClock()
    store = InMemorySessionStore(ttl_seconds=0, clock=clock)
    run(store.set("a", waiting_state()))
    clock.now += 10 ** 6
    assert run(store.get("a")) is not None


def test_purge_expired():
    clock = FakeClock()
    store = InMemorySessionStore(ttl_seconds=60, clock=clock)
    run(store.set("old", waiting_state()))
    clock.now += 100
    run(store.set("new", waiting_state()))

    assert store.purge_expired() == 1
    assert run(store.get("new")) is not None
    assert store.purge_expired() == 0


def test_stored_state_is_a_copy():
    store = InMemorySessionStore()
    state = waiting_state()
    run(store.set("a", state))
    assert run(store.get("a")) is not state


def test_lock_is_per_user():
    store = InMemorySessionStore()
    assert store.lock("a") is store.lock("a")
    assert store.lock("a") is not store.lock("b")


def test_lock_serializes_handlers():
    store = InMemorySessionStore()
    order = []

    async def handler(name):
        async with store.lock("a"):
            order.append(f"{name}-start")
            await asyncio.sleep(0)
            order.append(f"{name}-end")

    async def main():
        await asyncio.gather(handler("first"), handler("second"))

    run(main())
    assert order == ["first-start", "first-end", "second-start", "second-end"]


def test_locks_are_released_once_handlers_finish():
    store = InMemorySessionStore()

    async def handler(user_id):
        async with store.lock(user_id):
            await asyncio.sleep(0)

    async def main():
        await asyncio.gather(*(handler(f"user-{i}") for i in range(50)))

    run(main())
    assert store.active_locks() == 0


def test_purge_loop_evicts_idle_states():
    clock = FakeClock()
    store = InMemorySessionStore(ttl_seconds=60, clock=clock)
    run(store.set("a", waiting_state()))
    clock.now += 61

    async def main():
        task = asyncio.create_task(store.run_purge_loop(interval_seconds=0))
        for _ in range(3):
            await asyncio.sleep(0)
        task.cancel()

    run(main())
    assert len(store) == 0
