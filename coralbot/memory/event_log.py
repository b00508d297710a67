"""Event log store for bot debug and audit records."""

from __future__ import annotations

import json
import sqlite3
from typing import Any


class EventLogStore:
    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn

    def record(
        self,
        event_type: str,
        payload: dict[str, Any],
        *,
        user_id: int | None = None,
        decision: str | None = None,
    ) -> int:
        cursor = self._conn.execute(
            """
            INSERT INTO bot_events (event_type, user_id, decision, payload)
            VALUES (?, ?, ?, ?)
            """,
            (event_type, user_id, decision, json.dumps(payload, ensure_ascii=True, default=str)),
        )
        self._conn.commit()
        return int(cursor.lastrowid)

    def latest(self, limit: int = 50, *, user_id: int | None = None) -> list[dict[str, Any]]:
        if user_id is None:
            rows = self._conn.execute(
                """
                SELECT id, event_type, user_id, decision, payload, created_at
                FROM bot_events
                ORDER BY id DESC
                LIMIT ?
                """,
                (limit,),
            ).fetchall()
        else:
            rows = self._conn.execute(
                """
                SELECT id, event_type, user_id, decision, payload, created_at
                FROM bot_events
                WHERE user_id = ?
                ORDER BY id DESC
                LIMIT ?
                """,
                (user_id, limit),
            ).fetchall()

        events: list[dict[str, Any]] = []
        for row in rows:
            event = dict(row)
            event["payload"] = json.loads(event["payload"])
            events.append(event)
        return events
