from fastapi import FastAPI, WebSocket, WebSocketDisconnect, status
from fastapi.middleware.cors import CORSMiddleware
from routers.rooms import rooms_router
from backend import RelayBackend
from errors import JoinRejected, ProtocolViolation
from registry import Connection
from constants import CORS_ORIGINS, LOG_FILE, LOG_LEVEL
from logging_config import get_logger, setup_logging
from typing import Optional
import asyncio

# Setup logging
setup_logging(log_level=LOG_LEVEL, log_file=LOG_FILE)
logger = get_logger(__name__)


async def drain_outbox(websocket: WebSocket, connection: Connection):
    """Writer task: send queued frames to the socket in order until the connection is closed."""
    while True:
        frame = await connection.outbox.get()
        if frame is None:
            break
        try:
            await websocket.send_text(frame)
        except Exception as e:
            # Peer is gone; stop queuing for it until the receive loop notices
            logger.debug(f"Error sending to connection {connection.uuid}: {e}")
            connection.close()
            break
    logger.debug(f"Writer for connection {connection.uuid} finished")


async def chat_endpoint(websocket: WebSocket, username: Optional[str] = None, room: Optional[str] = None):
    """Relay websocket.

    Query parameters:
    - username: Optional display name, defaults to "Anonymous"
    - room: Required room name
    """
    relay: RelayBackend = websocket.app.state.relay
    logger.info(f"WebSocket connection attempt for room: {room}, username: {username}")

    try:
        connection = relay.admit(username, room)
    except JoinRejected as e:
        logger.warning(f"WebSocket connection rejected for room {room}: {e}")
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason=str(e))
        return

    await websocket.accept()
    try:
        relay.join(connection)
    except JoinRejected as e:
        logger.warning(f"WebSocket connection rejected after accept for room {room}: {e}")
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason=str(e))
        return
    writer = asyncio.create_task(drain_outbox(websocket, connection))

    close_code = None
    close_reason = ""
    try:
        frame_count = 0
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                logger.info(f"WebSocket disconnected for connection {connection.uuid} in room {connection.room}")
                break
            frame_count += 1
            logger.debug(f"Received frame #{frame_count} from connection {connection.uuid} in room {connection.room}")
            raw = message.get("text")
            if raw is None:
                raw = message.get("bytes") or b""
            relay.handle(connection, raw)
    except WebSocketDisconnect:
        logger.info(f"WebSocket disconnected for connection {connection.uuid} in room {connection.room}")
    except ProtocolViolation as e:
        logger.warning(f"Protocol violation, terminating connection {connection.uuid}: {e}")
        close_code, close_reason = status.WS_1002_PROTOCOL_ERROR, "Protocol violation"
    except Exception as e:
        logger.error(f"WebSocket error for connection {connection.uuid} in room {connection.room}: {e}", exc_info=True)
        close_code, close_reason = status.WS_1011_INTERNAL_ERROR, "Internal server error"
    finally:
        relay.leave(connection)
        await writer
        if close_code is not None:
            try:
                await websocket.close(code=close_code, reason=close_reason)
            except Exception as e:
                logger.debug(f"Error closing WebSocket: {e}")


def create_app(relay: Optional[RelayBackend] = None) -> FastAPI:
    app = FastAPI(title="whisper-relay")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.relay = relay or RelayBackend()
    app.include_router(rooms_router)
    app.add_api_websocket_route("/chat", chat_endpoint)

    logger.info("FastAPI application initialized")
    return app


app = create_app()
