"""Shared fixtures: a relay wired to in-memory fake sockets."""

from typing import Any

import pytest

from backend import RoomDirectory
from registry import ConnectionRegistry
from signaling import SignalRouter
from transport import ConnectionManager


class FakeWebSocket:
    """Records every JSON frame the relay sends to it."""

    def __init__(self, fail: bool = False) -> None:
        self.frames: list[dict[str, Any]] = []
        self.fail = fail

    async def send_json(self, data: Any) -> None:
        if self.fail:
            raise RuntimeError("socket already closed")
        self.frames.append(data)

    def events(self) -> list[tuple[str, Any]]:
        return [(frame["event"], frame["data"]) for frame in self.frames]


@pytest.fixture
def registry() -> ConnectionRegistry:
    return ConnectionRegistry()


@pytest.fixture
def directory(registry: ConnectionRegistry) -> RoomDirectory:
    return RoomDirectory(registry)


@pytest.fixture
def manager() -> ConnectionManager:
    return ConnectionManager()


@pytest.fixture
def router(directory: RoomDirectory, manager: ConnectionManager) -> SignalRouter:
    return SignalRouter(directory, manager)


@pytest.fixture
def connect(router: SignalRouter, manager: ConnectionManager):
    """Open a connection the way the WebSocket endpoint does, minus the greeting."""

    def _connect(fail: bool = False) -> tuple[str, FakeWebSocket]:
        connection_id = router.open_connection()
        websocket = FakeWebSocket(fail=fail)
        manager.register(connection_id, websocket)
        return connection_id, websocket

    return _connect
