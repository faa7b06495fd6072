from enum import Enum


class RecordingStatus(str, Enum):
    RECORDING = "recording"
    PAUSED = "paused"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class SourceKind(str, Enum):
    MICROPHONE = "microphone"
    TAB_SHARE = "tab-share"
    SCREEN_SHARE = "screen-share"


def session_payload(row: dict) -> dict:
    return {
        "id": row["id"],
        "userId": row["user_id"],
        "title": row["title"],
        "sourceKind": row["source_kind"],
        "status": row["status"],
        "durationSeconds": row["duration_secs"],
        "createdAt": row["created_at"],
        "updatedAt": row["updated_at"],
    }


def fragment_payload(row: dict) -> dict:
    return {
        "id": row["id"],
        "text": row["text"],
        "timestampOffset": row["timestamp_offset"],
        "confidence": row["confidence"],
        "createdAt": row["created_at"],
    }


def summary_payload(row: dict | None) -> dict | None:
    if row is None:
        return None
    return {
        "fullText": row["full_text"],
        "keyPoints": row["key_points"],
        "actionItems": row["action_items"],
        "decisions": row["decisions"],
        "participants": row["participants"],
        "isFallback": row["is_fallback"],
        "createdAt": row["created_at"],
    }
