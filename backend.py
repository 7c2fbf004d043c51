import asyncio
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, Optional, Set, Tuple

from logging_config import get_logger
from registry import ConnectionRegistry

logger = get_logger(__name__)


@dataclass(frozen=True)
class Departure:
    """A connection left `room`; `remaining` are the members still in it."""
    room: str
    remaining: FrozenSet[str] = field(default_factory=frozenset)


@dataclass(frozen=True)
class Arrival:
    """Outcome of a join.

    `existing` are the members that were in `room` right before the join.
    `departure` is set when the join moved the connection out of another room.
    """
    room: str
    existing: FrozenSet[str] = field(default_factory=frozenset)
    departure: Optional[Departure] = None


class RoomDirectory:
    """In-memory room membership, owned by a single asyncio.Lock.

    Every mutation and the member snapshot a broadcast is computed from are
    taken inside the same critical section, so a fan-out list can never be
    built from a member set that a concurrent join/leave is half way through
    changing. Empty rooms are deleted as soon as their last member leaves.

    `members` and `room_names` are read-only introspection helpers; routing
    goes through `join`, `leave`, `disconnect` and `peers_of`.
    """

    def __init__(self, registry: ConnectionRegistry):
        self.registry = registry
        self._rooms: Dict[str, Set[str]] = {}
        self._lock = asyncio.Lock()
        logger.info("Initializing in-memory RoomDirectory")

    async def join(self, connection_id: str, room_name: str) -> Optional[Arrival]:
        """Put a connection in `room_name`, replacing any previous membership.

        Returns None when nothing changed: the connection is unknown (already
        disconnected) or is already a member of that room.
        """
        async with self._lock:
            if not self.registry.is_connected(connection_id):
                logger.debug(f"Ignoring join to {room_name} from unknown connection {connection_id}")
                return None

            current = self.registry.room_of(connection_id)
            if current == room_name:
                logger.debug(f"Connection {connection_id} already in room {room_name}")
                return None

            departure = None
            if current is not None:
                departure = self._remove(connection_id, current)
                logger.info(f"Connection {connection_id} moved from room {current} to {room_name}")

            members = self._rooms.setdefault(room_name, set())
            existing = frozenset(members)
            members.add(connection_id)
            self.registry.set_room(connection_id, room_name)
            logger.info(f"Connection {connection_id} joined room {room_name} ({len(members)} members)")
            return Arrival(room=room_name, existing=existing, departure=departure)

    async def leave(self, connection_id: str) -> Optional[Departure]:
        """Take a connection out of its room. No-op if it has none."""
        async with self._lock:
            return self._leave(connection_id)

    async def disconnect(self, connection_id: str) -> Optional[Departure]:
        """Leave the current room and drop the identity in one step.

        Safe to call more than once; later calls return None.
        """
        async with self._lock:
            departure = self._leave(connection_id)
            self.registry.disconnect(connection_id)
            return departure

    async def members_except(self, room_name: str, excluded_id: str) -> FrozenSet[str]:
        async with self._lock:
            return frozenset(self._rooms.get(room_name, ())) - {excluded_id}

    async def peers_of(self, connection_id: str) -> Tuple[Optional[str], FrozenSet[str]]:
        """The sender's room and the other members of it, read together."""
        async with self._lock:
            room_name = self.registry.room_of(connection_id)
            if room_name is None:
                return None, frozenset()
            return room_name, frozenset(self._rooms.get(room_name, ())) - {connection_id}

    async def members(self, room_name: str) -> FrozenSet[str]:
        async with self._lock:
            return frozenset(self._rooms.get(room_name, ()))

    async def room_names(self) -> FrozenSet[str]:
        async with self._lock:
            return frozenset(self._rooms)

    def _leave(self, connection_id: str) -> Optional[Departure]:
        room_name = self.registry.room_of(connection_id)
        if room_name is None:
            return None
        departure = self._remove(connection_id, room_name)
        self.registry.set_room(connection_id, None)
        logger.info(f"Connection {connection_id} left room {room_name}")
        return departure

    def _remove(self, connection_id: str, room_name: str) -> Departure:
        members = self._rooms.get(room_name)
        if members is None:
            return Departure(room=room_name)
        members.discard(connection_id)
        if not members:
            del self._rooms[room_name]
            logger.debug(f"Room {room_name} is empty, removed it")
        return Departure(room=room_name, remaining=frozenset(members))

