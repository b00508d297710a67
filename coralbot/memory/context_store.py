"""Per-user conversation history rows."""

from __future__ import annotations

import json
import sqlite3

from coralbot.turns import Turn


class ContextStoreError(RuntimeError):
    """Raised when a stored context row cannot be decoded."""


class ContextStore:
    """Loads and replaces the serialized turn list stored for each user."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn

    def load_context(self, user_id: int) -> list[Turn]:
        """Return stored turns oldest first; an empty list only when the user has no row."""
        row = self._conn.execute(
            "SELECT messages FROM user_context WHERE user_id = ?",
            (user_id,),
        ).fetchone()
        if row is None:
            return []
        try:
            records = json.loads(row["messages"] or "[]")
        except json.JSONDecodeError as exc:
            raise ContextStoreError(f"Stored context for user {user_id} is not valid JSON") from exc
        if not isinstance(records, list):
            raise ContextStoreError(f"Stored context for user {user_id} is not a list")
        return [Turn.from_record(record) for record in records]

    def save_context(self, user_id: int, turns: list[Turn]) -> None:
        """Replace the user's row in one statement."""
        payload = json.dumps([turn.to_record() for turn in turns], ensure_ascii=False)
        self._conn.execute(
            """
            INSERT INTO user_context (user_id, messages, last_updated)
            VALUES (?, ?, CURRENT_TIMESTAMP)
            ON CONFLICT(user_id) DO UPDATE SET
                messages=excluded.messages,
                last_updated=CURRENT_TIMESTAMP
            """,
            (user_id, payload),
        )
        self._conn.commit()

    def purge_stale(self, max_age_hours: int = 24) -> int:
        """Delete rows not updated within max_age_hours; returns the number removed."""
        hours = max(1, int(max_age_hours))
        cursor = self._conn.execute(
            "DELETE FROM user_context WHERE last_updated < datetime('now', ?)",
            (f"-{hours} hours",),
        )
        self._conn.commit()
        return cursor.rowcount
