from __future__ import annotations

import logging
import sqlite3
from typing import List, Optional

from studydesk.db.sqlite import fetch_all, fetch_one, tx
from studydesk.schemas.documents import DocumentRecord, RecordSummary

logger = logging.getLogger("records")


class RecordStore:
    """
    Key-value store of DocumentRecords on top of sqlite.

    put() is an upsert: writing an existing id replaces the record wholesale
    (last write wins).
    """

    def __init__(self, conn: sqlite3.Connection) -> None:
        self.conn = conn

    def get(self, record_id: str) -> Optional[DocumentRecord]:
        row = fetch_one(self.conn, "SELECT payload FROM documents WHERE id = ?", (record_id,))
        if not row:
            return None
        return DocumentRecord.model_validate_json(row["payload"])

    def put(self, record: DocumentRecord) -> DocumentRecord:
        if not record.file_name.strip():
            record.file_name = f"unknown-{record.id}.pdf"

        with tx(self.conn):
            self.conn.execute(
                """
                INSERT INTO documents (id, file_name, is_mock_data, payload, created_at)
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                  file_name=excluded.file_name,
                  is_mock_data=excluded.is_mock_data,
                  payload=excluded.payload,
                  created_at=excluded.created_at
                """,
                (
                    record.id,
                    record.file_name,
                    int(record.is_mock_data),
                    record.model_dump_json(),
                    record.created_at,
                ),
            )

        logger.info(
            "saved doc_id=%s name=%s flashcards=%s quiz=%s summary=%s cornell=%s mock=%s",
            record.id,
            record.file_name,
            len(record.flashcards),
            len(record.multiple_choice),
            bool(record.summary),
            record.cornell_notes is not None,
            record.is_mock_data,
        )
        return record

    def list_all(self) -> List[RecordSummary]:
        rows = fetch_all(self.conn, "SELECT payload FROM documents ORDER BY created_at DESC")
        return [RecordSummary.from_record(DocumentRecord.model_validate_json(r["payload"])) for r in rows]
