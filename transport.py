import asyncio
from typing import Any, Dict, Iterable

from fastapi import WebSocket

from logging_config import get_logger
from schemas.signals import OutboundFrame

logger = get_logger(__name__)


class ConnectionManager:
    """WebSocket side of the relay: connection id -> socket, and outbound frames.

    Undeliverable frames (unknown id, socket already closed) are dropped here;
    the caller is never told.
    """

    def __init__(self):
        self.active_connections: Dict[str, WebSocket] = {}

    def register(self, connection_id: str, websocket: WebSocket):
        self.active_connections[connection_id] = websocket
        logger.debug(f"Tracking socket for {connection_id} ({len(self.active_connections)} open)")

    def unregister(self, connection_id: str):
        if self.active_connections.pop(connection_id, None) is not None:
            logger.debug(f"Stopped tracking socket for {connection_id} ({len(self.active_connections)} open)")

    async def send(self, connection_id: str, event: str, data: Any = None) -> bool:
        websocket = self.active_connections.get(connection_id)
        if websocket is None:
            logger.debug(f"Dropping {event!r} for unknown connection {connection_id}")
            return False
        frame = OutboundFrame(event=event, data=data).model_dump()
        try:
            await websocket.send_json(frame)
            return True
        except Exception as e:
            logger.warning(f"Error sending {event!r} to connection {connection_id}: {e}")
            return False

    async def broadcast(self, recipients: Iterable[str], event: str, data: Any = None) -> int:
        """Send one frame to every recipient concurrently. Returns how many went out."""
        recipients = list(recipients)
        if not recipients:
            return 0
        results = await asyncio.gather(
            *(self.send(connection_id, event, data) for connection_id in recipients),
            return_exceptions=True,
        )
        delivered = sum(1 for result in results if result is True)
        logger.debug(f"Broadcast {event!r} to {delivered}/{len(recipients)} connections")
        return delivered
