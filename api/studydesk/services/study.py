"""
Core facade: the operations the HTTP layer (or any other caller) uses.

upload_and_process / process_text  -> UploadResponse
get_result                         -> DocumentRecord        (NotFound)
list_all                           -> [RecordSummary]
chat                               -> ChatReply              (NotFound)
start_feynman                      -> FeynmanStartResponse   (NotFound)
submit_feynman_answer              -> FeynmanAnswerResponse  (NotFound, SessionStateError)

Model-backend failures never surface from here; they degrade to mock data,
a canned chat reply or a synthesised evaluation, and the degradation is
always flagged in the returned value.
"""
from __future__ import annotations

import asyncio
import logging
import sqlite3
import time
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional
from uuid import uuid4
from weakref import WeakValueDictionary

from studydesk.chat.responder import ChatReply, answer as chat_answer
from studydesk.core.backends import MODEL_TYPES, ResolvedBackend, resolve_backend
from studydesk.core.config import Settings
from studydesk.core.errors import (
    BackendUnconfigured,
    ExtractionError,
    InvalidRequest,
    NotFound,
    SessionStateError,
    StudyDeskError,
)
from studydesk.core.llm_router import LLMClient, LLMRouter, ping
from studydesk.db.records import RecordStore
from studydesk.feynman.engine import FeynmanEngine
from studydesk.feynman.store import FeynmanSessionStore
from studydesk.ingestion.parser import extract_text
from studydesk.schemas.documents import (
    CornellNotes,
    DocumentRecord,
    Flashcard,
    FormatKind,
    MultipleChoiceQuestion,
    RecordSummary,
    UploadResponse,
    ordered_formats,
)
from studydesk.schemas.feynman import (
    FeynmanAnswerResponse,
    FeynmanSession,
    FeynmanStartResponse,
    FeynmanState,
)
from studydesk.studio.mock import MOCK_CORNELL, MOCK_FLASHCARDS, MOCK_MULTIPLE_CHOICE, MOCK_SUMMARY
from studydesk.studio.pipeline import process_document

logger = logging.getLogger("study")

NO_TEXT_PLACEHOLDER = "No text could be extracted from this document."

DEMO_TEXT = (
    "StudyDesk demo document. This record is seeded for testing the study views: "
    "flashcards, a summary, Cornell notes and a multiple-choice quiz are all present."
)


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class StudyDesk:
    def __init__(self, conn: sqlite3.Connection, config: Settings, llm: Optional[LLMClient] = None) -> None:
        self.config = config
        self.llm = llm or LLMRouter()
        self.records = RecordStore(conn)
        self.sessions = FeynmanSessionStore(conn)
        self.feynman = FeynmanEngine(self.llm, config)
        # Entries vanish once no coroutine holds or waits on the lock.
        self._locks: "WeakValueDictionary[str, asyncio.Lock]" = WeakValueDictionary()

    # --- documents ---

    async def upload_and_process(
        self,
        raw: bytes,
        file_name: str,
        requested_formats: Iterable[FormatKind],
        model_type: Optional[str] = None,
        counts: Optional[Dict[FormatKind, int]] = None,
    ) -> UploadResponse:
        if not raw:
            raise InvalidRequest("Empty file")

        try:
            source, text = extract_text(file_name, raw)
        except ExtractionError as e:
            logger.warning("extraction failed name=%s err=%s; treating as empty", file_name, e)
            source, text = "pdf", ""

        return await self.process_text(
            text, file_name, requested_formats, model_type=model_type, counts=counts, source=source
        )

    async def process_text(
        self,
        text: str,
        file_name: str,
        requested_formats: Iterable[FormatKind],
        model_type: Optional[str] = None,
        counts: Optional[Dict[FormatKind, int]] = None,
        source: str = "text",
    ) -> UploadResponse:
        formats = ordered_formats(requested_formats)
        model_type = (model_type or self.config.default_model_type).lower().strip()
        if model_type not in MODEL_TYPES:
            raise InvalidRequest(f"Unknown model type: {model_type!r}. Allowed: {', '.join(MODEL_TYPES)}")

        t0 = time.perf_counter()
        result = await process_document(text, formats, model_type, self.config, self.llm, counts=counts)

        record_id = str(uuid4())
        text = text or ""
        record = DocumentRecord(
            id=record_id,
            file_name=(file_name or "").strip() or f"unknown-{record_id}.pdf",
            original_text=text if text.strip() else NO_TEXT_PLACEHOLDER,
            flashcards=result.flashcards or [],
            summary=result.summary or "",
            cornell_notes=result.cornell_notes,
            multiple_choice=result.multiple_choice or [],
            requested_formats=formats,
            model_type=model_type,
            source=source,
            created_at=utc_now_iso(),
            is_mock_data=result.is_mock_data,
            fallback_reason=result.fallback_reason,
        )
        self.records.put(record)

        logger.info(
            "processed doc_id=%s formats=%s mock=%s ms=%s",
            record.id,
            [f.value for f in formats],
            record.is_mock_data,
            int((time.perf_counter() - t0) * 1000),
        )

        message = "Document processed successfully"
        if record.is_mock_data:
            message += f" (placeholder content: {record.fallback_reason})"
        return UploadResponse(id=record.id, is_mock_data=record.is_mock_data, message=message)

    def get_result(self, record_id: str) -> DocumentRecord:
        record = self.records.get(record_id)
        if record is None:
            raise NotFound(f"Document {record_id} not found")
        return record

    def list_all(self) -> List[RecordSummary]:
        return self.records.list_all()

    def seed_demo_record(self, record_id: Optional[str] = None) -> DocumentRecord:
        """Write a fixed record with every format present, replacing any record with the same id."""
        rid = record_id or f"demo-{uuid4()}"
        record = DocumentRecord(
            id=rid,
            file_name="Demo-Document.pdf",
            original_text=DEMO_TEXT,
            flashcards=[Flashcard(question=q, answer=a) for q, a in MOCK_FLASHCARDS],
            summary=MOCK_SUMMARY,
            cornell_notes=CornellNotes.model_validate(MOCK_CORNELL),
            multiple_choice=[MultipleChoiceQuestion.model_validate(q) for q in MOCK_MULTIPLE_CHOICE],
            requested_formats=list(FormatKind),
            model_type=self.config.default_model_type,
            source="text",
            created_at=utc_now_iso(),
            is_mock_data=True,
            fallback_reason="seeded",
        )
        return self.records.put(record)

    # --- chat ---

    async def chat(self, record_id: str, message: str, model_type: Optional[str] = None) -> ChatReply:
        if not (message or "").strip():
            raise InvalidRequest("Message is empty")
        record = self.get_result(record_id)
        backend = self._backend_or_none(model_type or record.model_type)
        return await chat_answer(
            record.original_text,
            message,
            backend,
            self.llm,
            file_name=record.file_name,
            max_chars=self.config.chat_max_chars,
            timeout_s=self.config.chat_timeout_s,
        )

    # --- feynman ---

    async def start_feynman(self, record_id: str) -> FeynmanStartResponse:
        record = self.get_result(record_id)
        async with self._lock(record_id):
            session = FeynmanSession(document_id=record_id)
            backend = self._backend_or_none(record.model_type)
            try:
                await self.feynman.start(session, record.original_text, backend)
            finally:
                self.sessions.put(session)

        return FeynmanStartResponse(
            document_id=record_id,
            questions=session.questions,
            questions_fallback=session.questions_fallback,
        )

    def get_feynman_session(self, record_id: str) -> FeynmanSession:
        self.get_result(record_id)
        session = self.sessions.get(record_id)
        if session is None:
            raise NotFound(f"No Feynman session for document {record_id}")
        return session

    async def submit_feynman_answer(self, record_id: str, index: int, text: str) -> FeynmanAnswerResponse:
        record = self.get_result(record_id)
        async with self._lock(record_id):
            session = self.sessions.get(record_id)
            if session is None:
                raise SessionStateError("Feynman session has not been started")

            backend = self._backend_or_none(record.model_type)
            try:
                await self.feynman.submit_answer(session, index, text, record.original_text, backend)
            finally:
                self.sessions.put(session)

        if session.state == FeynmanState.EVALUATED:
            return FeynmanAnswerResponse(state=session.state, evaluation=session.evaluation)
        return FeynmanAnswerResponse(state=session.state, next_index=session.current_index)

    # --- backends ---

    async def check_backends(self) -> Dict[str, Dict[str, Any]]:
        out: Dict[str, Dict[str, Any]] = {}
        for mt in MODEL_TYPES:
            try:
                backend = resolve_backend(mt, self.config)
            except BackendUnconfigured as e:
                out[mt] = {"configured": False, "ok": False, "model": None, "latency_ms": None, "error": str(e)}
                continue
            try:
                res = await ping(self.llm, backend, timeout_s=self.config.ping_timeout_s)
                out[mt] = {
                    "configured": True,
                    "ok": bool(res.response),
                    "model": res.model,
                    "latency_ms": res.latency_ms,
                    "error": None,
                }
            except StudyDeskError as e:
                out[mt] = {"configured": True, "ok": False, "model": backend.model_id, "latency_ms": None, "error": str(e)}
        return out

    def _backend_or_none(self, model_type: Optional[str]) -> Optional[ResolvedBackend]:
        try:
            return resolve_backend(model_type, self.config)
        except BackendUnconfigured as e:
            logger.warning("backend unconfigured model_type=%s err=%s", model_type, e)
            return None

    def _lock(self, record_id: str) -> asyncio.Lock:
        lock = self._locks.get(record_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[record_id] = lock
        return lock
