from db.database import Database


def order_fragments(fragments: list[dict]) -> list[dict]:
    """Sort by timestamp offset; equal offsets keep insertion (id) order."""
    return sorted(fragments, key=lambda f: (f["timestamp_offset"], f["id"]))


def join_fragments(fragments: list[dict]) -> str:
    return " ".join(f["text"] for f in order_fragments(fragments))


def aggregate_transcript(db: Database, session_id: str) -> str:
    return join_fragments(db.list_transcripts(session_id))
