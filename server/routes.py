from datetime import datetime, timezone

from fastapi import APIRouter

from processing.transcriber import Transcriber
from sessions.registry import SessionRegistry


def create_router(transcriber: Transcriber, registry: SessionRegistry) -> APIRouter:
    router = APIRouter()

    @router.get("/health")
    def health():
        return {
            "status": "ok",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "whisper_model_loaded": transcriber.is_loaded,
            "active_groups": registry.group_count(),
        }

    return router
