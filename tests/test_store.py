import asyncio

import pytest

from wishlist.schemas import Wish

pytestmark = pytest.mark.asyncio


async def next_within(stream, timeout=1.0):
    return await asyncio.wait_for(anext(stream), timeout)


async def test_insert_assigns_id(store):
    wish_id = await store.insert(Wish(title="Bike", description="Red one"))

    assert wish_id is not None and wish_id > 0
    assert await store.get(wish_id) == Wish(
        id=wish_id, title="Bike", description="Red one"
    )


async def test_insert_with_taken_id_is_ignored(store):
    await store.insert(Wish(id=7, title="Kayak", description="two seats"))

    result = await store.insert(Wish(id=7, title="Canoe", description="overwrite?"))

    assert result is None
    assert await store.snapshot() == [
        Wish(id=7, title="Kayak", description="two seats")
    ]


async def test_update_replaces_only_target(store):
    first = await store.insert(Wish(title="Book", description="Dune"))
    second = await store.insert(Wish(title="Lamp", description="desk"))

    assert await store.update(Wish(id=first, title="Book", description="Dune Messiah"))

    assert await store.snapshot() == [
        Wish(id=first, title="Book", description="Dune Messiah"),
        Wish(id=second, title="Lamp", description="desk"),
    ]


async def test_update_missing_row_is_noop(store):
    assert await store.update(Wish(id=404, title="ghost", description="-")) is False
    assert await store.snapshot() == []


async def test_delete_removes_exactly_one(store):
    first = await store.insert(Wish(title="Tent", description="3p"))
    second = await store.insert(Wish(title="Stove", description="gas"))

    wish = await store.get(first)
    assert await store.delete(wish) is True
    assert await store.delete(wish) is False

    assert [w.id for w in await store.snapshot()] == [second]


async def test_observe_all_emits_on_every_write(store):
    stream = store.observe_all()
    try:
        assert await next_within(stream) == []

        wish_id = await store.insert(Wish(title="Bike", description="Red one"))
        assert await next_within(stream) == [
            Wish(id=wish_id, title="Bike", description="Red one")
        ]

        await store.delete(Wish(id=wish_id, title="Bike", description="Red one"))
        assert await next_within(stream) == []
    finally:
        await stream.aclose()


async def test_observe_all_keeps_insertion_order(store):
    for title in ("c", "a", "b"):
        await store.insert(Wish(title=title, description="x"))

    stream = store.observe_all()
    try:
        snapshot = await next_within(stream)
    finally:
        await stream.aclose()

    assert [w.title for w in snapshot] == ["c", "a", "b"]


async def test_observe_by_id_follows_one_record(store):
    wish_id = await store.insert(Wish(title="Watch", description="steel"))
    other_id = await store.insert(Wish(title="Shoes", description="size 42"))

    stream = store.observe_by_id(wish_id)
    try:
        assert (await next_within(stream)).description == "steel"

        # a write to another row does not re-emit an unchanged record
        await store.update(Wish(id=other_id, title="Shoes", description="size 43"))
        await store.update(Wish(id=wish_id, title="Watch", description="gold"))
        assert (await next_within(stream)).description == "gold"
    finally:
        await stream.aclose()


async def test_observe_by_id_is_silent_while_record_is_missing(store):
    wish_id = await store.insert(Wish(title="Drone", description="small"))
    stream = store.observe_by_id(wish_id)

    async def pull():
        return await anext(stream)

    try:
        await next_within(stream)
        await store.delete(Wish(id=wish_id, title="Drone", description="small"))

        pending = asyncio.create_task(pull())
        done, _ = await asyncio.wait({pending}, timeout=0.2)
        assert not done

        await store.insert(Wish(id=wish_id, title="Drone", description="bigger"))
        wish = await asyncio.wait_for(pending, 1.0)
        assert wish.description == "bigger"
    finally:
        await stream.aclose()


async def test_write_failure_propagates(store, monkeypatch):
    def broken(db, wish):
        raise OSError("disk I/O error")

    monkeypatch.setattr(store, "_insert", broken)

    with pytest.raises(OSError):
        await store.insert(Wish(title="x", description="y"))


async def test_live_query_survives_failed_read(store, monkeypatch):
    loop = asyncio.get_running_loop()
    failed = asyncio.Event()
    original = store._select_all
    calls = []

    def flaky():
        calls.append(1)
        if len(calls) == 2:
            loop.call_soon_threadsafe(failed.set)
            raise OSError("database is locked")
        return original()

    monkeypatch.setattr(store, "_select_all", flaky)
    stream = store.observe_all()

    async def pull():
        return await anext(stream)

    try:
        assert await next_within(stream) == []

        await store.insert(Wish(id=1, title="a", description="b"))
        pending = asyncio.create_task(pull())
        await asyncio.wait_for(failed.wait(), 1.0)

        await store.insert(Wish(id=2, title="c", description="d"))
        wishes = await asyncio.wait_for(pending, 1.0)
        assert [w.id for w in wishes] == [1, 2]
    finally:
        await stream.aclose()
