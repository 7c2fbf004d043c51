import uuid
from typing import Dict, Optional

from logging_config import get_logger

logger = get_logger(__name__)


class ConnectionRegistry:
    """Live connection identities and the room each one is currently in.

    The registry only does bookkeeping. Room assignments are written by the
    RoomDirectory, which holds the lock that keeps them consistent with the
    room member sets.
    """

    def __init__(self):
        self._rooms: Dict[str, Optional[str]] = {}

    def connect(self) -> str:
        connection_id = str(uuid.uuid4())
        self._rooms[connection_id] = None
        logger.debug(f"Registered connection {connection_id}")
        return connection_id

    def disconnect(self, connection_id: str) -> bool:
        """Forget a connection. Returns False if it was already gone."""
        if connection_id not in self._rooms:
            return False
        del self._rooms[connection_id]
        logger.debug(f"Unregistered connection {connection_id}")
        return True

    def is_connected(self, connection_id: str) -> bool:
        return connection_id in self._rooms

    def room_of(self, connection_id: str) -> Optional[str]:
        return self._rooms.get(connection_id)

    def set_room(self, connection_id: str, room_name: Optional[str]):
        if connection_id in self._rooms:
            self._rooms[connection_id] = room_name

    def __len__(self):
        return len(self._rooms)
