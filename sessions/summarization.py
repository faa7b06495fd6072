import asyncio
import logging

from db.database import Database
from errors import InvalidTransitionError, SummarizationError
from processing.summarizer import Summarizer, SummaryResult
from sessions.aggregator import aggregate_transcript
from sessions.ingestion import ChunkIngestion
from sessions.lifecycle import SessionLifecycle
from sessions.models import RecordingStatus, summary_payload
from sessions.registry import Connection, SessionRegistry

logger = logging.getLogger(__name__)

EMPTY_TRANSCRIPT_TEXT = "Sin transcripcion disponible"


def fallback_summary(transcript: str) -> SummaryResult:
    if not transcript.strip():
        return SummaryResult(full_text=EMPTY_TRANSCRIPT_TEXT)
    return SummaryResult(full_text=transcript)


class SummarizationTrigger:
    """Runs the stop sequence: processing -> aggregate -> summarize -> completed.

    Only one stop sequence per session runs at a time. A session left in
    'processing' by a failed sequence can be stopped again to resume it.
    """

    def __init__(self, db: Database, registry: SessionRegistry, lifecycle: SessionLifecycle,
                 summarizer: Summarizer, ingestion: ChunkIngestion, timeout: float = 300):
        self.db = db
        self.registry = registry
        self.lifecycle = lifecycle
        self.ingestion = ingestion
        self.summarizer = summarizer
        self.timeout = timeout
        self._running: set[str] = set()

    def is_running(self, session_id: str) -> bool:
        return session_id in self._running

    async def stop(self, connection: Connection, session_id: str,
                   duration_seconds: float) -> dict:
        session = self.lifecycle.require_session(session_id, connection.user.id)
        if self.is_running(session_id):
            raise InvalidTransitionError("La sesion ya se esta procesando")

        self._running.add(session_id)
        try:
            if session["status"] == RecordingStatus.PROCESSING.value:
                logger.warning("Reanudando procesamiento interrumpido de sesion %s", session_id)
            else:
                await self.lifecycle.transition(
                    session_id, RecordingStatus.PROCESSING, duration_secs=duration_seconds,
                )

            # No new chunk is accepted past this point; wait for the ones in flight
            await self.ingestion.wait_pending(session_id)
            transcript = aggregate_transcript(self.db, session_id)
            summary = self.db.get_summary(session_id)
            if summary is None:
                result, is_fallback = await self._summarize(session_id, transcript)
                summary = self.db.insert_summary(
                    session_id,
                    result.full_text,
                    result.key_points,
                    result.action_items,
                    result.decisions,
                    result.participants,
                    is_fallback=is_fallback,
                )

            session = await self.lifecycle.transition(session_id, RecordingStatus.COMPLETED)
            await self.registry.broadcast(
                session_id,
                "processing-complete",
                {"sessionId": session_id, "summary": summary_payload(summary)},
            )
            self.registry.leave_group(connection.id, session_id)
            logger.info(
                "Sesion %s completada (%d caracteres de transcripcion)", session_id, len(transcript),
            )
            return {"session": session, "summary": summary}
        finally:
            self._running.discard(session_id)

    async def _summarize(self, session_id: str, transcript: str) -> tuple[SummaryResult, bool]:
        if not transcript.strip():
            logger.warning("Sesion %s sin transcripcion, se usa resumen de respaldo", session_id)
            return fallback_summary(transcript), True

        try:
            result = await asyncio.wait_for(
                asyncio.to_thread(self.summarizer.summarize, transcript),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError:
            logger.warning("Resumen de sesion %s excedio %ss, se usa respaldo", session_id, self.timeout)
            return fallback_summary(transcript), True
        except SummarizationError as e:
            logger.warning("Resumen de sesion %s fallo (%s), se usa respaldo", session_id, e)
            return fallback_summary(transcript), True
        except Exception:
            logger.exception("Error inesperado resumiendo sesion %s, se usa respaldo", session_id)
            return fallback_summary(transcript), True
        return result, False
