import logging

from db.database import Database
from errors import InvalidTransitionError, NotFoundError
from sessions.models import RecordingStatus
from sessions.registry import SessionRegistry

logger = logging.getLogger(__name__)

# target status -> statuses it may be entered from
TRANSITIONS: dict[RecordingStatus, tuple[RecordingStatus, ...]] = {
    RecordingStatus.RECORDING: (RecordingStatus.PAUSED,),
    RecordingStatus.PAUSED: (RecordingStatus.RECORDING,),
    RecordingStatus.PROCESSING: (RecordingStatus.RECORDING, RecordingStatus.PAUSED),
    RecordingStatus.COMPLETED: (RecordingStatus.PROCESSING,),
    # Reserved for unrecoverable errors
    RecordingStatus.FAILED: (
        RecordingStatus.RECORDING,
        RecordingStatus.PAUSED,
        RecordingStatus.PROCESSING,
    ),
}

ACTIVE_STATUSES = (RecordingStatus.RECORDING, RecordingStatus.PAUSED)


def can_transition(current: RecordingStatus | str, target: RecordingStatus | str) -> bool:
    return RecordingStatus(current) in TRANSITIONS[RecordingStatus(target)]


def is_active(status: RecordingStatus | str) -> bool:
    return RecordingStatus(status) in ACTIVE_STATUSES


class SessionLifecycle:
    def __init__(self, db: Database, registry: SessionRegistry):
        self.db = db
        self.registry = registry

    def require_session(self, session_id: str, user_id: str) -> dict:
        session = self.db.get_session(session_id, user_id=user_id)
        if session is None:
            raise NotFoundError("Sesion no encontrada")
        return session

    async def transition(self, session_id: str, target: RecordingStatus, **fields) -> dict:
        """Move a session to ``target`` if its current status allows it.

        The status guard is applied inside the UPDATE, so two concurrent
        callers can never both win the same transition.
        """
        allowed = tuple(s.value for s in TRANSITIONS[target])
        session = self.db.transition_session(session_id, allowed, target.value, **fields)
        if session is None:
            current = self.db.get_session(session_id)
            if current is None:
                raise NotFoundError("Sesion no encontrada")
            raise InvalidTransitionError(
                f"No se puede pasar de '{current['status']}' a '{target.value}'"
            )

        logger.info("Sesion %s -> %s", session_id, target.value)
        await self.registry.broadcast(
            session_id,
            "status-updated",
            {"sessionId": session_id, "status": target.value},
        )
        return session

    async def update_status(self, session_id: str, user_id: str,
                            target: RecordingStatus) -> dict:
        if target not in ACTIVE_STATUSES:
            raise InvalidTransitionError(
                f"Estado '{RecordingStatus(target).value}' no se puede fijar manualmente"
            )
        session = self.require_session(session_id, user_id)
        if session["status"] == target.value:
            return session
        return await self.transition(session_id, target)

    def discard(self, session_id: str, user_id: str):
        """Delete a session with its fragments and summary."""
        session = self.require_session(session_id, user_id)
        if session["status"] == RecordingStatus.PROCESSING.value:
            raise InvalidTransitionError("No se puede borrar una sesion en procesamiento")
        self.db.delete_session(session_id)
        self.registry.drop_group(session_id)
        logger.info("Sesion %s descartada", session_id)
