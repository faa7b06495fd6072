from fastapi import FastAPI

import config
from db.database import Database
from processing.summarizer import Summarizer
from processing.transcriber import Transcriber
from server.handlers import RecordingHandlers
from server.routes import create_router
from server.websocket import create_websocket_router
from sessions.ingestion import ChunkIngestion
from sessions.lifecycle import SessionLifecycle
from sessions.registry import SessionRegistry
from sessions.summarization import SummarizationTrigger


def create_app(db: Database, transcriber: Transcriber, summarizer: Summarizer) -> FastAPI:
    app = FastAPI(title="StreamScribe", version="0.1.0")

    registry = SessionRegistry(db)
    lifecycle = SessionLifecycle(db, registry)
    ingestion = ChunkIngestion(
        db, registry, lifecycle, transcriber,
        timeout=config.TRANSCRIPTION_TIMEOUT_SECS,
        max_chunk_bytes=config.MAX_CHUNK_B64_BYTES,
    )
    trigger = SummarizationTrigger(
        db, registry, lifecycle, summarizer, ingestion,
        timeout=config.SUMMARIZATION_TIMEOUT_SECS,
    )
    handlers = RecordingHandlers(db, registry, lifecycle, ingestion, trigger)

    app.include_router(create_router(transcriber, registry), prefix="/api")
    app.include_router(create_websocket_router(db, registry, handlers))

    return app
