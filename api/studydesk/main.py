import json
import logging
from typing import Any, Dict, Optional

from fastapi import Depends, FastAPI, File, Form, HTTPException, Request, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from studydesk.core.backends import MODEL_TYPES, resolve_backend
from studydesk.core.config import settings
from studydesk.core.errors import BackendUnconfigured, InvalidRequest, NotFound
from studydesk.core.logging import setup_logging
from studydesk.db.sqlite import connect, init_db
from studydesk.schemas.chat import ChatRequest, ChatResponse
from studydesk.schemas.documents import (
    DocumentResult,
    FormatKind,
    ListResponse,
    TextDocumentRequest,
    UploadResponse,
)
from studydesk.schemas.feynman import (
    FeynmanAnswerRequest,
    FeynmanAnswerResponse,
    FeynmanSession,
    FeynmanStartResponse,
)
from studydesk.services.study import StudyDesk

setup_logging(settings.log_level)
logger = logging.getLogger("api")

app = FastAPI(
    title="StudyDesk API",
    version="0.5.0",
    description="Turns documents into flashcards, summaries, Cornell notes and quizzes; chat and Feynman mode.",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

if settings.otel_enabled:
    from studydesk.observability.otel import setup_otel

    setup_otel(app)


DESK: Optional[StudyDesk] = None  # set on startup


def get_desk() -> StudyDesk:
    global DESK
    if DESK is None:
        conn = connect(settings.sqlite_path)
        init_db(conn)
        DESK = StudyDesk(conn, settings)
        logger.info("sqlite initialized path=%s", settings.sqlite_path)
    return DESK


@app.on_event("startup")
async def _startup() -> None:
    get_desk()


@app.exception_handler(NotFound)
async def _not_found(request: Request, exc: NotFound) -> JSONResponse:
    return JSONResponse(status_code=404, content={"detail": str(exc)})


@app.exception_handler(InvalidRequest)
async def _invalid(request: Request, exc: InvalidRequest) -> JSONResponse:
    return JSONResponse(status_code=400, content={"detail": str(exc)})


def _parse_formats(flags: Dict[str, Any]):
    try:
        formats = FormatKind.from_flags(flags)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=f"Invalid output_formats: {e}")
    if not formats:
        raise HTTPException(status_code=400, detail="Select at least one output format")
    return formats


def _counts(flashcard_count: Optional[int], quiz_count: Optional[int]) -> Dict[FormatKind, int]:
    counts: Dict[FormatKind, int] = {}
    if flashcard_count is not None:
        counts[FormatKind.FLASHCARDS] = flashcard_count
    if quiz_count is not None:
        counts[FormatKind.MULTIPLE_CHOICE] = quiz_count
    return counts


@app.get("/")
async def root() -> Dict[str, str]:
    return {"message": "StudyDesk API is running. See /docs, /health, /documents."}


@app.get("/health")
async def health(ping: bool = False, desk: StudyDesk = Depends(get_desk)) -> JSONResponse:
    """
    Reports which model backends are configured. With ?ping=true each
    configured backend is also asked for a tiny completion.
    """
    if ping:
        backends = await desk.check_backends()
    else:
        backends = {}
        for mt in MODEL_TYPES:
            try:
                b = resolve_backend(mt, desk.config)
                backends[mt] = {"configured": True, "model": b.model_id}
            except BackendUnconfigured as e:
                backends[mt] = {"configured": False, "model": None, "error": str(e)}

    usable = [
        mt for mt, info in backends.items() if info.get("configured") and info.get("ok", True)
    ]
    status = "ok" if usable else "degraded"
    payload = {
        "status": status,
        "env": desk.config.app_env,
        "default_model_type": desk.config.default_model_type,
        "backends": backends,
    }
    code = 200 if status == "ok" else 503
    logger.info("health status=%s usable=%s", status, usable)
    return JSONResponse(content=payload, status_code=code)


@app.post("/documents", response_model=UploadResponse)
async def upload_document(
    file: UploadFile = File(...),
    output_formats: str = Form("{}"),
    model_type: Optional[str] = Form(None),
    flashcard_count: Optional[int] = Form(None, ge=1, le=50),
    quiz_count: Optional[int] = Form(None, ge=1, le=30),
    desk: StudyDesk = Depends(get_desk),
) -> UploadResponse:
    """
    Upload -> extract text -> generate the requested formats -> store.
    output_formats is a JSON object of flags, e.g. {"flashcards": true, "summary": true}.
    """
    if not file.filename:
        raise HTTPException(status_code=400, detail="Filename missing")

    try:
        flags = json.loads(output_formats or "{}")
    except ValueError:
        raise HTTPException(status_code=400, detail="output_formats must be a JSON object")
    if not isinstance(flags, dict):
        raise HTTPException(status_code=400, detail="output_formats must be a JSON object")

    formats = _parse_formats(flags)
    raw = await file.read()

    res = await desk.upload_and_process(
        raw,
        file.filename,
        formats,
        model_type=model_type,
        counts=_counts(flashcard_count, quiz_count),
    )
    logger.info("upload name=%s size=%s doc_id=%s mock=%s", file.filename, len(raw), res.id, res.is_mock_data)
    return res


@app.post("/documents/text", response_model=UploadResponse)
async def submit_text(req: TextDocumentRequest, desk: StudyDesk = Depends(get_desk)) -> UploadResponse:
    """Already-extracted text (e.g. a transcript) goes through the same pipeline."""
    formats = _parse_formats(req.output_formats)
    return await desk.process_text(
        req.text,
        req.file_name,
        formats,
        model_type=req.model_type,
        counts=_counts(req.flashcard_count, req.quiz_count),
    )


@app.get("/documents", response_model=ListResponse)
async def list_documents(desk: StudyDesk = Depends(get_desk)) -> ListResponse:
    docs = desk.list_all()
    return ListResponse(count=len(docs), documents=docs)


@app.get("/documents/{doc_id}", response_model=DocumentResult)
async def get_document(doc_id: str, desk: StudyDesk = Depends(get_desk)) -> DocumentResult:
    return DocumentResult.from_record(desk.get_result(doc_id))


@app.post("/documents/{doc_id}/chat", response_model=ChatResponse)
async def chat(doc_id: str, req: ChatRequest, desk: StudyDesk = Depends(get_desk)) -> ChatResponse:
    reply = await desk.chat(doc_id, req.message, model_type=req.model_type)
    return ChatResponse(reply=reply.reply, is_fallback=reply.is_fallback)


@app.post("/documents/{doc_id}/feynman", response_model=FeynmanStartResponse)
async def start_feynman(doc_id: str, desk: StudyDesk = Depends(get_desk)) -> FeynmanStartResponse:
    return await desk.start_feynman(doc_id)


@app.get("/documents/{doc_id}/feynman", response_model=FeynmanSession)
async def get_feynman(doc_id: str, desk: StudyDesk = Depends(get_desk)) -> FeynmanSession:
    return desk.get_feynman_session(doc_id)


@app.post("/documents/{doc_id}/feynman/answers", response_model=FeynmanAnswerResponse)
async def submit_feynman_answer(
    doc_id: str, req: FeynmanAnswerRequest, desk: StudyDesk = Depends(get_desk)
) -> FeynmanAnswerResponse:
    return await desk.submit_feynman_answer(doc_id, req.index, req.text)


@app.post("/debug/seed", response_model=DocumentResult)
async def seed_demo(record_id: Optional[str] = None, desk: StudyDesk = Depends(get_desk)) -> DocumentResult:
    """Dev only: write a record with every format present (overwrites by id)."""
    if desk.config.app_env != "dev":
        raise HTTPException(status_code=404, detail="Not found")
    return DocumentResult.from_record(desk.seed_demo_record(record_id))
