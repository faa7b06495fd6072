import asyncio
import logging

from fastapi import APIRouter, WebSocket

from db.database import Database
from errors import AuthenticationError
from server.auth import authenticate
from server.handlers import RecordingHandlers
from sessions.registry import Connection, SessionRegistry, UserIdentity

logger = logging.getLogger(__name__)

POLICY_VIOLATION = 1008


class WebSocketConnection(Connection):
    def __init__(self, websocket: WebSocket, user: UserIdentity):
        super().__init__(user)
        self.websocket = websocket
        self._send_lock = asyncio.Lock()

    async def send_frame(self, frame: dict) -> None:
        async with self._send_lock:
            await self.websocket.send_json(frame)


def create_websocket_router(db: Database, registry: SessionRegistry,
                            handlers: RecordingHandlers) -> APIRouter:
    router = APIRouter()

    @router.websocket("/ws")
    async def recording_socket(websocket: WebSocket):
        try:
            user = authenticate(db, websocket.query_params.get("userId"))
        except AuthenticationError as e:
            await websocket.close(code=POLICY_VIOLATION, reason=str(e))
            return

        await websocket.accept()
        connection = WebSocketConnection(websocket, user)
        registry.register(connection)
        logger.info("Cliente conectado: %s (usuario %s)", connection.id, user.id)

        try:
            while True:
                message = await websocket.receive()
                if message["type"] == "websocket.disconnect":
                    logger.info("Cliente desconectado: %s", connection.id)
                    break
                raw = message.get("text")
                if raw is None:
                    logger.info("Frame binario rechazado de %s", connection.id)
                    await registry.send_to(
                        connection.id, "error", {"message": "Solo se aceptan mensajes de texto JSON"},
                    )
                    continue
                handlers.spawn(connection, raw)
        finally:
            # In-flight handlers keep running; their broadcasts reach whoever is left
            registry.unregister(connection.id)

    return router
