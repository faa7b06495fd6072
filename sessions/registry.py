import logging
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime

from db.database import Database
from sessions.models import RecordingStatus, SourceKind

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UserIdentity:
    id: str
    email: str
    name: str | None = None


class Connection(ABC):
    """One authenticated client connection."""

    def __init__(self, user: UserIdentity, connection_id: str | None = None):
        self.id = connection_id or uuid.uuid4().hex
        self.user = user

    @abstractmethod
    async def send_frame(self, frame: dict) -> None:
        raise NotImplementedError

    async def send(self, event: str, data: dict) -> None:
        await self.send_frame({"event": event, "data": data})

    async def ack(self, ack_id, data: dict) -> None:
        await self.send_frame({"event": "ack", "id": ack_id, "data": data})


class SessionRegistry:
    """Creates sessions and tracks which connections observe each one.

    Group membership is in-memory only; the session rows live in the database.
    """

    def __init__(self, db: Database):
        self.db = db
        self._connections: dict[str, Connection] = {}
        self._groups: dict[str, set[str]] = {}

    # -- Connections --

    def register(self, connection: Connection):
        self._connections[connection.id] = connection

    def unregister(self, connection_id: str):
        self._connections.pop(connection_id, None)
        for session_id in list(self._groups):
            self.leave_group(connection_id, session_id)

    # -- Sessions --

    def create_session(self, connection: Connection, source_kind: SourceKind,
                       title: str | None = None) -> dict:
        session_id = uuid.uuid4().hex
        title = title or f"Grabacion {datetime.now().strftime('%Y-%m-%d %H:%M')}"
        source_kind = SourceKind(source_kind)
        session = self.db.insert_session(
            session_id,
            connection.user.id,
            title,
            source_kind.value,
            RecordingStatus.RECORDING.value,
        )
        self.join_group(connection.id, session_id)
        logger.info("Sesion %s creada por %s (%s)", session_id, connection.user.id, source_kind.value)
        return session

    # -- Groups --

    def join_group(self, connection_id: str, session_id: str):
        self._groups.setdefault(session_id, set()).add(connection_id)

    def leave_group(self, connection_id: str, session_id: str):
        members = self._groups.get(session_id)
        if not members:
            return
        members.discard(connection_id)
        if not members:
            del self._groups[session_id]

    def drop_group(self, session_id: str):
        self._groups.pop(session_id, None)

    def group_count(self) -> int:
        return len(self._groups)

    def members(self, session_id: str) -> set[str]:
        return set(self._groups.get(session_id, ()))

    # -- Delivery --

    async def send_to(self, connection_id: str, event: str, data: dict) -> bool:
        connection = self._connections.get(connection_id)
        if connection is None:
            return False
        try:
            await connection.send(event, data)
        except Exception as e:
            logger.debug("Envio de '%s' a %s fallo (%s), se descarta", event, connection_id, e)
            self.unregister(connection_id)
            return False
        return True

    async def broadcast(self, session_id: str, event: str, data: dict) -> int:
        delivered = 0
        for connection_id in self.members(session_id):
            if connection_id not in self._connections:
                self.leave_group(connection_id, session_id)
                continue
            if await self.send_to(connection_id, event, data):
                delivered += 1
        return delivered
