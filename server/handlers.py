import asyncio
import logging
import time

from pydantic import ValidationError

from db.database import Database
from errors import StreamScribeError
from server.messages import (
    AudioChunk,
    ClientMessage,
    DeleteSession,
    GetSession,
    Ping,
    StartRecording,
    StopRecording,
    UpdateStatus,
    describe_validation_error,
    parse_client_message,
    peek_ack_id,
)
from sessions.aggregator import order_fragments
from sessions.ingestion import ChunkIngestion
from sessions.lifecycle import SessionLifecycle
from sessions.models import RecordingStatus, fragment_payload, session_payload, summary_payload
from sessions.registry import Connection, SessionRegistry
from sessions.summarization import SummarizationTrigger

logger = logging.getLogger(__name__)


class RecordingHandlers:
    """Dispatches validated client messages and answers through acks.

    Every frame is handled in its own task so a slow transcription never
    holds up the frames behind it.
    """

    def __init__(self, db: Database, registry: SessionRegistry, lifecycle: SessionLifecycle,
                 ingestion: ChunkIngestion, trigger: SummarizationTrigger):
        self.db = db
        self.registry = registry
        self.lifecycle = lifecycle
        self.ingestion = ingestion
        self.trigger = trigger
        self._tasks: set[asyncio.Task] = set()
        self._routes = {
            StartRecording: self.start_recording,
            AudioChunk: self.audio_chunk,
            UpdateStatus: self.update_status,
            StopRecording: self.stop_recording,
            GetSession: self.get_session,
            DeleteSession: self.delete_session,
            Ping: self.ping,
        }

    def spawn(self, connection: Connection, raw: str) -> asyncio.Task:
        task = asyncio.create_task(self.handle_frame(connection, raw))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def drain(self):
        """Wait for every in-flight frame handler."""
        while True:
            pending = [t for t in self._tasks if not t.done()]
            if not pending:
                return
            await asyncio.gather(*pending, return_exceptions=True)

    async def handle_frame(self, connection: Connection, raw: str):
        try:
            message = parse_client_message(raw)
        except ValidationError as e:
            reason = describe_validation_error(e)
            logger.info("Mensaje rechazado de %s: %s", connection.id, reason)
            await self._fail(connection, peek_ack_id(raw), reason)
            return
        await self.dispatch(connection, message)

    async def dispatch(self, connection: Connection, message: ClientMessage):
        handler = self._routes[type(message)]
        try:
            result = await handler(connection, message.data)
        except StreamScribeError as e:
            logger.info("'%s' fallo para %s: %s", message.event, connection.id, e)
            await self._fail(connection, message.id, str(e))
            return
        except Exception:
            logger.exception("Error procesando '%s' de %s", message.event, connection.id)
            await self._fail(connection, message.id, f"Error interno procesando '{message.event}'")
            return

        if message.id is not None and result is not None:
            await self._deliver_ack(connection, message.id, result)

    async def _fail(self, connection: Connection, ack_id, reason: str):
        if ack_id is not None:
            await self._deliver_ack(connection, ack_id, {"success": False, "error": reason})
        else:
            await self.registry.send_to(connection.id, "error", {"message": reason})

    async def _deliver_ack(self, connection: Connection, ack_id, data: dict):
        try:
            await connection.ack(ack_id, data)
        except Exception as e:
            logger.debug("Ack %s para %s no entregado: %s", ack_id, connection.id, e)

    # -- Events --

    async def start_recording(self, connection, data):
        session = self.registry.create_session(connection, data.source_kind, data.title)
        return {"success": True, "sessionId": session["id"], "session": session_payload(session)}

    async def audio_chunk(self, connection, data):
        await self.ingestion.ingest(
            connection, data.session_id, data.encoded_audio, data.timestamp_offset,
        )
        return None

    async def update_status(self, connection, data):
        session = await self.lifecycle.update_status(
            data.session_id, connection.user.id, RecordingStatus(data.status),
        )
        return {"success": True, "session": session_payload(session)}

    async def stop_recording(self, connection, data):
        result = await self.trigger.stop(connection, data.session_id, data.duration_seconds)
        return {
            "success": True,
            "sessionId": data.session_id,
            "summary": summary_payload(result["summary"]),
        }

    async def get_session(self, connection, data):
        session = self.lifecycle.require_session(data.session_id, connection.user.id)
        fragments = order_fragments(self.db.list_transcripts(data.session_id))
        payload = session_payload(session)
        payload["fragments"] = [fragment_payload(f) for f in fragments]
        payload["summary"] = summary_payload(self.db.get_summary(data.session_id))
        return {"success": True, "session": payload}

    async def delete_session(self, connection, data):
        self.lifecycle.discard(data.session_id, connection.user.id)
        return {"success": True}

    async def ping(self, connection, data):
        await self.registry.send_to(connection.id, "pong", {"timestamp": int(time.time() * 1000)})
        return None
