import json
from typing import Any, Iterable

from pydantic import ValidationError

from backend import RoomDirectory
from event_names import (
    CHAT_MESSAGE,
    CONNECTED,
    JOIN_ROOM,
    SIGNAL,
    TOGGLE_MUTE,
    USER_JOINED,
    USER_LEFT,
    USER_MUTED,
)
from logging_config import get_logger
from schemas.signals import (
    Connected,
    InboundFrame,
    SignalEnvelope,
    SignalRequest,
    UserMuted,
    chat_text_adapter,
    mute_flag_adapter,
    room_name_adapter,
)
from transport import ConnectionManager

logger = get_logger(__name__)


class SignalRouter:
    """Interprets inbound events and decides who hears about them.

    Two outbound paths:
      - `unicast` delivers to one addressed identity, whatever room it is in
        (negotiation payloads).
      - `fan_out` delivers to a member snapshot taken from the RoomDirectory
        (membership, mute and chat events). The originator is never in it.

    Nothing here reports errors back to a client. Malformed frames and events
    that need a room the sender does not have are dropped.
    """

    def __init__(self, directory: RoomDirectory, transport: ConnectionManager):
        self.directory = directory
        self.registry = directory.registry
        self.transport = transport
        self._handlers = {
            JOIN_ROOM: self.on_join_room,
            SIGNAL: self.on_signal,
            TOGGLE_MUTE: self.on_toggle_mute,
            CHAT_MESSAGE: self.on_chat_message,
        }

    def open_connection(self) -> str:
        return self.registry.connect()

    async def announce_identity(self, connection_id: str):
        await self.unicast(connection_id, CONNECTED, Connected(connectionId=connection_id).model_dump())

    async def close_connection(self, connection_id: str):
        departure = await self.directory.disconnect(connection_id)
        if departure is not None:
            await self.fan_out(departure.remaining, USER_LEFT, connection_id)

    async def handle_frame(self, connection_id: str, raw: str):
        """Parse one text frame from a connection and route it."""
        try:
            frame = InboundFrame.model_validate(json.loads(raw))
        except (ValueError, RecursionError, ValidationError) as e:
            logger.debug(f"Dropping malformed frame from {connection_id}: {e}")
            return
        await self.dispatch(connection_id, frame.event, frame.data)

    async def dispatch(self, connection_id: str, event: str, data: Any = None):
        handler = self._handlers.get(event)
        if handler is None:
            logger.debug(f"Dropping unknown event {event!r} from {connection_id}")
            return
        try:
            await handler(connection_id, data)
        except ValidationError as e:
            logger.debug(f"Dropping {event!r} from {connection_id} with bad payload: {e.error_count()} error(s)")

    async def on_join_room(self, connection_id: str, data: Any):
        room_name = room_name_adapter.validate_python(data)
        arrival = await self.directory.join(connection_id, room_name)
        if arrival is None:
            return
        if arrival.departure is not None:
            await self.fan_out(arrival.departure.remaining, USER_LEFT, connection_id)
        await self.fan_out(arrival.existing, USER_JOINED, connection_id)

    async def on_signal(self, connection_id: str, data: Any):
        request = SignalRequest.model_validate(data)
        # a client-supplied sender is overwritten, never trusted
        envelope = SignalEnvelope.model_validate({**request.model_dump(exclude_unset=True), "sender": connection_id})
        await self.unicast(request.target, SIGNAL, envelope.model_dump(exclude_unset=True))

    async def on_toggle_mute(self, connection_id: str, data: Any):
        is_muted = mute_flag_adapter.validate_python(data)
        room_name, peers = await self.directory.peers_of(connection_id)
        if room_name is None:
            logger.debug(f"Ignoring {TOGGLE_MUTE!r} from {connection_id}: not in a room")
            return
        await self.fan_out(peers, USER_MUTED, UserMuted(userId=connection_id, isMuted=is_muted).model_dump())

    async def on_chat_message(self, connection_id: str, data: Any):
        text = chat_text_adapter.validate_python(data)
        room_name, peers = await self.directory.peers_of(connection_id)
        if room_name is None:
            logger.debug(f"Ignoring {CHAT_MESSAGE!r} from {connection_id}: not in a room")
            return
        await self.fan_out(peers, CHAT_MESSAGE, text)

    async def unicast(self, target_id: str, event: str, data: Any) -> bool:
        logger.debug(f"Unicast {event!r} to {target_id}")
        return await self.transport.send(target_id, event, data)

    async def fan_out(self, recipients: Iterable[str], event: str, data: Any) -> int:
        return await self.transport.broadcast(recipients, event, data)
