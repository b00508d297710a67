"""Terms-of-use acceptance flags per user."""

from __future__ import annotations

import sqlite3


class TermsStore:
    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn

    def has_accepted(self, user_id: int) -> bool:
        row = self._conn.execute(
            "SELECT accepted FROM terms_acceptance WHERE user_id = ?",
            (user_id,),
        ).fetchone()
        return row is not None and bool(row["accepted"])

    def accept(self, user_id: int) -> None:
        self._conn.execute(
            """
            INSERT INTO terms_acceptance (user_id, accepted, accepted_at)
            VALUES (?, 1, CURRENT_TIMESTAMP)
            ON CONFLICT(user_id) DO UPDATE SET
                accepted=1,
                accepted_at=CURRENT_TIMESTAMP
            """,
            (user_id,),
        )
        self._conn.commit()
