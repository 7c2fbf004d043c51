from contextlib import asynccontextmanager

from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from backend import RoomDirectory
from constants import LOG_FILE, LOG_LEVEL, STATIC_DIR
from logging_config import get_logger, setup_logging
from registry import ConnectionRegistry
from routers.pages import pages_router
from signaling import SignalRouter
from transport import ConnectionManager

# Setup logging
setup_logging(log_level=LOG_LEVEL, log_file=LOG_FILE)
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # All relay state lives for one server run and is owned by this process only.
    registry = ConnectionRegistry()
    directory = RoomDirectory(registry)
    manager = ConnectionManager()
    app.state.registry = registry
    app.state.directory = directory
    app.state.manager = manager
    app.state.signal_router = SignalRouter(directory, manager)
    logger.info("Signaling relay state initialized")
    yield
    logger.info(f"Signaling relay shutting down with {len(manager.active_connections)} open connections")


app = FastAPI(lifespan=lifespan)

# Configure CORS to allow all origins
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(pages_router)
app.mount("/static", StaticFiles(directory=STATIC_DIR, check_dir=False), name="static")

logger.info("FastAPI application initialized")


@app.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket):
    """Real-time signaling channel. One identity per socket, for as long as it is open."""
    router: SignalRouter = websocket.app.state.signal_router
    manager: ConnectionManager = websocket.app.state.manager

    await websocket.accept()
    connection_id = router.open_connection()
    manager.register(connection_id, websocket)
    logger.info(f"User connected: {connection_id}")

    try:
        await router.announce_identity(connection_id)

        message_count = 0
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                logger.info(f"WebSocket disconnected normally for connection {connection_id}")
                break
            message_count += 1
            data = message.get("text")
            if data is None:
                logger.debug(f"Dropping binary message #{message_count} from connection {connection_id}")
                continue
            logger.debug(f"Received message #{message_count} from connection {connection_id}")
            await router.handle_frame(connection_id, data)
    except WebSocketDisconnect:
        logger.info(f"WebSocket disconnected for connection {connection_id}")
    except Exception as e:
        logger.error(f"WebSocket error for connection {connection_id}: {e}", exc_info=True)
    finally:
        manager.unregister(connection_id)
        await router.close_connection(connection_id)
        logger.info(f"User disconnected: {connection_id}")
