import asyncio

import pytest

from backend import Departure, RoomDirectory
from registry import ConnectionRegistry


async def _assert_consistent(directory: RoomDirectory, registry: ConnectionRegistry, ids):
    """Every member set entry points back at its room, and vice versa."""
    for room_name in await directory.room_names():
        members = await directory.members(room_name)
        assert members, f"empty room {room_name} was not removed"
        for connection_id in members:
            assert registry.room_of(connection_id) == room_name
    for connection_id in ids:
        room_name = registry.room_of(connection_id)
        if room_name is not None:
            assert connection_id in await directory.members(room_name)


@pytest.mark.asyncio
async def test_join_reports_members_present_before_the_join(directory, registry):
    a, b, c = registry.connect(), registry.connect(), registry.connect()

    first = await directory.join(a, "room-1")
    second = await directory.join(b, "room-1")
    third = await directory.join(c, "room-1")

    assert first.existing == frozenset()
    assert second.existing == {a}
    assert third.existing == {a, b}
    assert third.departure is None
    assert await directory.members("room-1") == {a, b, c}
    assert await directory.members_except("room-1", c) == {a, b}


@pytest.mark.asyncio
async def test_rejoin_elsewhere_replaces_membership(directory, registry):
    a, b = registry.connect(), registry.connect()
    await directory.join(a, "room-1")
    await directory.join(b, "room-1")

    arrival = await directory.join(a, "room-2")

    assert arrival.room == "room-2"
    assert arrival.departure == Departure(room="room-1", remaining=frozenset({b}))
    assert registry.room_of(a) == "room-2"
    assert await directory.members("room-1") == {b}
    assert await directory.members("room-2") == {a}


@pytest.mark.asyncio
async def test_rejoin_same_room_changes_nothing(directory, registry):
    a = registry.connect()
    await directory.join(a, "room-1")

    assert await directory.join(a, "room-1") is None
    assert await directory.members("room-1") == {a}


@pytest.mark.asyncio
async def test_empty_rooms_are_reaped(directory, registry):
    a = registry.connect()
    await directory.join(a, "room-1")
    await directory.join(a, "room-2")

    assert await directory.room_names() == {"room-2"}

    departure = await directory.leave(a)

    assert departure == Departure(room="room-2", remaining=frozenset())
    assert await directory.room_names() == frozenset()


@pytest.mark.asyncio
async def test_leave_without_room_is_a_no_op(directory, registry):
    a = registry.connect()

    assert await directory.leave(a) is None
    assert await directory.leave("never-connected") is None


@pytest.mark.asyncio
async def test_disconnect_twice_has_no_further_effect(directory, registry):
    a, b = registry.connect(), registry.connect()
    await directory.join(a, "room-1")
    await directory.join(b, "room-1")

    first = await directory.disconnect(b)
    second = await directory.disconnect(b)

    assert first == Departure(room="room-1", remaining=frozenset({a}))
    assert second is None
    assert not registry.is_connected(b)
    assert await directory.members("room-1") == {a}


@pytest.mark.asyncio
async def test_join_after_disconnect_is_ignored(directory, registry):
    a = registry.connect()
    await directory.disconnect(a)

    assert await directory.join(a, "room-1") is None
    assert await directory.room_names() == frozenset()


@pytest.mark.asyncio
async def test_peers_of_reads_room_and_others_together(directory, registry):
    a, b, lonely = registry.connect(), registry.connect(), registry.connect()
    await directory.join(a, "room-1")
    await directory.join(b, "room-1")

    assert await directory.peers_of(a) == ("room-1", frozenset({b}))
    assert await directory.peers_of(lonely) == (None, frozenset())


@pytest.mark.asyncio
async def test_concurrent_joins_and_leaves_stay_consistent(directory, registry):
    ids = [registry.connect() for _ in range(30)]
    rooms = ["red", "green", "blue"]

    async def churn(index: int, connection_id: str):
        for step in range(10):
            await directory.join(connection_id, rooms[(index + step) % len(rooms)])
            await asyncio.sleep(0)
            if step % 4 == 3:
                await directory.leave(connection_id)

    await asyncio.gather(*(churn(index, connection_id) for index, connection_id in enumerate(ids)))

    await _assert_consistent(directory, registry, ids)
    for connection_id in ids[::2]:
        await directory.disconnect(connection_id)
    await _assert_consistent(directory, registry, ids[1::2])
