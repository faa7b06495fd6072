"""
Pytest fixtures for StreamScribe tests.
"""

import base64
from types import SimpleNamespace

import pytest

from db.database import Database
from errors import SummarizationError, TranscriptionError
from processing.summarizer import Summarizer, SummaryResult
from processing.transcriber import Transcriber, TranscriptionResult
from server.handlers import RecordingHandlers
from sessions.ingestion import ChunkIngestion
from sessions.lifecycle import SessionLifecycle
from sessions.registry import Connection, SessionRegistry, UserIdentity
from sessions.summarization import SummarizationTrigger


def encode(text: str) -> str:
    return base64.b64encode(text.encode("utf-8")).decode("ascii")


class FakeTranscriber(Transcriber):
    """Decodes the audio bytes as UTF-8; audio starting with 'fail' errors out."""

    def __init__(self):
        self.calls = []

    def transcribe(self, audio: bytes) -> TranscriptionResult:
        text = audio.decode("utf-8")
        self.calls.append(text)
        if text.startswith("fail"):
            raise TranscriptionError("audio ilegible")
        return TranscriptionResult(text=text, confidence=0.9)


class FakeSummarizer(Summarizer):
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.inputs = []

    def summarize(self, transcript: str) -> SummaryResult:
        self.inputs.append(transcript)
        if self.fail:
            raise SummarizationError("LLM no disponible")
        return SummaryResult(
            full_text=f"Resumen: {transcript[:40]}",
            key_points=["punto 1"],
            action_items=["enviar acta"],
            decisions=["aprobar presupuesto"],
            participants=["Ana", "Luis"],
        )


class FakeConnection(Connection):
    def __init__(self, user: UserIdentity, connection_id: str | None = None):
        super().__init__(user, connection_id)
        self.frames = []
        self.closed = False

    async def send_frame(self, frame: dict) -> None:
        if self.closed:
            raise ConnectionError("conexion cerrada")
        self.frames.append(frame)

    def events(self, name: str) -> list[dict]:
        return [f["data"] for f in self.frames if f["event"] == name]

    def acks(self) -> dict:
        return {f["id"]: f["data"] for f in self.frames if f["event"] == "ack"}


@pytest.fixture
def db(tmp_path):
    database = Database(tmp_path / "test.db")
    yield database
    database.close()


@pytest.fixture
def user(db):
    row = db.insert_user("user-1", "ana@example.com", "Ana")
    return UserIdentity(id=row["id"], email=row["email"], name=row["name"])


@pytest.fixture
def other_user(db):
    row = db.insert_user("user-2", "luis@example.com", "Luis")
    return UserIdentity(id=row["id"], email=row["email"], name=row["name"])


@pytest.fixture
def transcriber():
    return FakeTranscriber()


@pytest.fixture
def summarizer():
    return FakeSummarizer()


@pytest.fixture
def services(db, transcriber, summarizer):
    registry = SessionRegistry(db)
    lifecycle = SessionLifecycle(db, registry)
    ingestion = ChunkIngestion(db, registry, lifecycle, transcriber, timeout=5)
    trigger = SummarizationTrigger(db, registry, lifecycle, summarizer, ingestion, timeout=5)
    handlers = RecordingHandlers(db, registry, lifecycle, ingestion, trigger)
    return SimpleNamespace(
        db=db,
        registry=registry,
        lifecycle=lifecycle,
        ingestion=ingestion,
        trigger=trigger,
        handlers=handlers,
    )


@pytest.fixture
def connection(services, user):
    conn = FakeConnection(user)
    services.registry.register(conn)
    return conn
