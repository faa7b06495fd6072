import asyncio
import base64
import binascii
import logging

from db.database import Database
from errors import InvalidTransitionError, TranscriptionError
from processing.transcriber import Transcriber, TranscriptionResult
from sessions.lifecycle import SessionLifecycle, is_active
from sessions.registry import Connection, SessionRegistry

logger = logging.getLogger(__name__)

FAILED_CONFIDENCE = 0.0


def placeholder_text(timestamp_offset: float) -> str:
    return f"[Transcripcion fallida en {timestamp_offset:g}s]"


def decode_chunk(encoded_audio: str, max_size: int | None = None) -> bytes:
    if max_size is not None and len(encoded_audio) > max_size:
        raise TranscriptionError(f"Chunk demasiado grande ({len(encoded_audio)} bytes)")
    try:
        audio = base64.b64decode(encoded_audio, validate=True)
    except (binascii.Error, ValueError) as e:
        raise TranscriptionError(f"Chunk con base64 invalido: {e}") from e
    if not audio:
        raise TranscriptionError("Chunk de audio vacio")
    return audio


class ChunkIngestion:
    """Accepts audio chunks and stores one transcript fragment per chunk.

    A chunk whose transcription fails still yields a fragment: a placeholder
    with confidence 0, so the session keeps a contiguous record.
    """

    def __init__(self, db: Database, registry: SessionRegistry, lifecycle: SessionLifecycle,
                 transcriber: Transcriber, timeout: float = 60,
                 max_chunk_bytes: int | None = None):
        self.db = db
        self.registry = registry
        self.lifecycle = lifecycle
        self.transcriber = transcriber
        self.timeout = timeout
        self.max_chunk_bytes = max_chunk_bytes
        self._pending: dict[str, set[asyncio.Future]] = {}

    async def ingest(self, connection: Connection, session_id: str, encoded_audio: str,
                     timestamp_offset: float) -> dict:
        session = self.lifecycle.require_session(session_id, connection.user.id)
        if not is_active(session["status"]):
            raise InvalidTransitionError(
                f"La sesion no acepta audio en estado '{session['status']}'"
            )

        # Registered before the first await, so a stop that wins the status
        # change afterwards always sees this chunk as pending
        done = asyncio.get_running_loop().create_future()
        self._pending.setdefault(session_id, set()).add(done)
        try:
            return await self._process(connection, session_id, encoded_audio, timestamp_offset)
        finally:
            done.set_result(None)
            pending = self._pending.get(session_id)
            if pending is not None:
                pending.discard(done)
                if not pending:
                    del self._pending[session_id]

    async def wait_pending(self, session_id: str):
        """Wait until every chunk accepted for the session has been stored."""
        pending = list(self._pending.get(session_id, ()))
        if pending:
            logger.info("Esperando %d chunks en curso de sesion %s", len(pending), session_id)
            await asyncio.gather(*pending)

    async def _process(self, connection: Connection, session_id: str, encoded_audio: str,
                       timestamp_offset: float) -> dict:
        await self.registry.broadcast(
            session_id,
            "chunk-received",
            {"timestampOffset": timestamp_offset, "byteSize": len(encoded_audio)},
        )

        try:
            result = await self._transcribe(encoded_audio)
            text, confidence = result.text, result.confidence
        except TranscriptionError as e:
            logger.warning(
                "Transcripcion fallida en sesion %s (%ss): %s", session_id, timestamp_offset, e,
            )
            text, confidence = placeholder_text(timestamp_offset), FAILED_CONFIDENCE

        # Persisted before progress is emitted
        fragment = self.db.insert_transcript(session_id, text, timestamp_offset, confidence)
        logger.debug("Fragmento %s guardado para sesion %s", fragment["id"], session_id)

        await self.registry.send_to(
            connection.id,
            "transcription-progress",
            {"sessionId": session_id, "text": text, "timestampOffset": timestamp_offset},
        )
        return fragment

    async def _transcribe(self, encoded_audio: str) -> TranscriptionResult:
        audio = decode_chunk(encoded_audio, self.max_chunk_bytes)
        try:
            return await asyncio.wait_for(
                asyncio.to_thread(self.transcriber.transcribe, audio),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError as e:
            raise TranscriptionError(f"Transcripcion excedio {self.timeout:g}s") from e
        except TranscriptionError:
            raise
        except Exception as e:
            raise TranscriptionError(f"Error inesperado del motor: {e}") from e
