from __future__ import annotations

import sqlite3
from typing import Optional

from studydesk.db.sqlite import fetch_one, tx
from studydesk.schemas.feynman import FeynmanSession


class FeynmanSessionStore:
    """One Feynman session per document, persisted so it survives restarts."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        self.conn = conn

    def get(self, document_id: str) -> Optional[FeynmanSession]:
        row = fetch_one(self.conn, "SELECT payload FROM feynman_sessions WHERE document_id = ?", (document_id,))
        if not row:
            return None
        return FeynmanSession.model_validate_json(row["payload"])

    def put(self, session: FeynmanSession) -> None:
        with tx(self.conn):
            self.conn.execute(
                """
                INSERT INTO feynman_sessions (document_id, state, payload, updated_at)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(document_id) DO UPDATE SET
                  state=excluded.state,
                  payload=excluded.payload,
                  updated_at=excluded.updated_at
                """,
                (session.document_id, session.state.value, session.model_dump_json(), session.updated_at),
            )
