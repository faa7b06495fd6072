import json
import sqlite3
import threading
from datetime import datetime, timezone
from pathlib import Path

from db.models import SCHEMA_SQL, SUMMARY_LIST_FIELDS
from errors import PersistenceError


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class Database:
    def __init__(self, db_path: Path):
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._local = threading.local()
        self._init_schema()

    def _get_conn(self) -> sqlite3.Connection:
        conn = getattr(self._local, "conn", None)
        if conn is None:
            conn = sqlite3.connect(str(self.db_path))
            conn.row_factory = sqlite3.Row
            conn.execute("PRAGMA journal_mode=WAL")
            conn.execute("PRAGMA foreign_keys=ON")
            self._local.conn = conn
        return conn

    def _init_schema(self):
        conn = self._get_conn()
        conn.executescript(SCHEMA_SQL)
        conn.commit()

    def close(self):
        conn = getattr(self._local, "conn", None)
        if conn is not None:
            conn.close()
            self._local.conn = None

    def execute(self, sql: str, params: tuple = ()) -> sqlite3.Cursor:
        conn = self._get_conn()
        try:
            cursor = conn.execute(sql, params)
            conn.commit()
        except sqlite3.Error as e:
            conn.rollback()
            raise PersistenceError(f"Error de base de datos: {e}") from e
        return cursor

    def fetchone(self, sql: str, params: tuple = ()) -> dict | None:
        try:
            row = self._get_conn().execute(sql, params).fetchone()
        except sqlite3.Error as e:
            raise PersistenceError(f"Error de base de datos: {e}") from e
        return dict(row) if row else None

    def fetchall(self, sql: str, params: tuple = ()) -> list[dict]:
        try:
            rows = self._get_conn().execute(sql, params).fetchall()
        except sqlite3.Error as e:
            raise PersistenceError(f"Error de base de datos: {e}") from e
        return [dict(row) for row in rows]

    # -- Users --

    def insert_user(self, user_id: str, email: str, name: str | None = None) -> dict:
        self.execute(
            "INSERT INTO users (id, email, name) VALUES (?, ?, ?)",
            (user_id, email, name),
        )
        return self.get_user(user_id)

    def get_user(self, user_id: str) -> dict | None:
        return self.fetchone("SELECT * FROM users WHERE id = ?", (user_id,))

    # -- Sessions --

    def insert_session(self, session_id: str, user_id: str, title: str,
                       source_kind: str, status: str) -> dict:
        now = _now()
        self.execute(
            "INSERT INTO sessions (id, user_id, title, source_kind, status, created_at, updated_at) "
            "VALUES (?, ?, ?, ?, ?, ?, ?)",
            (session_id, user_id, title, source_kind, status, now, now),
        )
        return self.get_session(session_id)

    def get_session(self, session_id: str, user_id: str | None = None) -> dict | None:
        if user_id is None:
            return self.fetchone("SELECT * FROM sessions WHERE id = ?", (session_id,))
        return self.fetchone(
            "SELECT * FROM sessions WHERE id = ? AND user_id = ?", (session_id, user_id),
        )

    def update_session(self, session_id: str, **fields) -> dict | None:
        if not fields:
            return self.get_session(session_id)
        fields["updated_at"] = _now()
        set_clause = ", ".join(f"{k} = ?" for k in fields)
        values = list(fields.values()) + [session_id]
        self.execute(f"UPDATE sessions SET {set_clause} WHERE id = ?", tuple(values))
        return self.get_session(session_id)

    def transition_session(self, session_id: str, from_statuses: tuple[str, ...],
                           to_status: str, **fields) -> dict | None:
        """Set the status only if it is currently one of ``from_statuses``.

        Returns the updated row, or None when the guard did not match.
        """
        fields["status"] = to_status
        fields["updated_at"] = _now()
        set_clause = ", ".join(f"{k} = ?" for k in fields)
        placeholders = ", ".join("?" for _ in from_statuses)
        values = list(fields.values()) + [session_id] + list(from_statuses)
        cursor = self.execute(
            f"UPDATE sessions SET {set_clause} WHERE id = ? AND status IN ({placeholders})",
            tuple(values),
        )
        if cursor.rowcount == 0:
            return None
        return self.get_session(session_id)

    def delete_session(self, session_id: str) -> bool:
        cursor = self.execute("DELETE FROM sessions WHERE id = ?", (session_id,))
        return cursor.rowcount > 0

    # -- Transcripts --

    def insert_transcript(self, session_id: str, text: str, timestamp_offset: float,
                          confidence: float | None = None) -> dict:
        cursor = self.execute(
            "INSERT INTO transcripts (session_id, text, timestamp_offset, confidence, created_at) "
            "VALUES (?, ?, ?, ?, ?)",
            (session_id, text, timestamp_offset, confidence, _now()),
        )
        return self.fetchone("SELECT * FROM transcripts WHERE id = ?", (cursor.lastrowid,))

    def list_transcripts(self, session_id: str) -> list[dict]:
        # Insertion id breaks ties between equal offsets
        return self.fetchall(
            "SELECT * FROM transcripts WHERE session_id = ? ORDER BY timestamp_offset ASC, id ASC",
            (session_id,),
        )

    # -- Summaries --

    def insert_summary(self, session_id: str, full_text: str, key_points: list[str],
                       action_items: list[str], decisions: list[str],
                       participants: list[str], is_fallback: bool = False) -> dict:
        self.execute(
            "INSERT INTO summaries (session_id, full_text, key_points, action_items, "
            "decisions, participants, is_fallback, created_at) VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
            (
                session_id,
                full_text,
                json.dumps(key_points, ensure_ascii=False),
                json.dumps(action_items, ensure_ascii=False),
                json.dumps(decisions, ensure_ascii=False),
                json.dumps(participants, ensure_ascii=False),
                int(is_fallback),
                _now(),
            ),
        )
        return self.get_summary(session_id)

    def get_summary(self, session_id: str) -> dict | None:
        row = self.fetchone("SELECT * FROM summaries WHERE session_id = ?", (session_id,))
        if row is None:
            return None
        for field in SUMMARY_LIST_FIELDS:
            row[field] = json.loads(row[field])
        row["is_fallback"] = bool(row["is_fallback"])
        return row
