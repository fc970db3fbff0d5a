from __future__ import annotations

import asyncio
import logging
from typing import Dict, Iterable, List, Optional

from studydesk.core.backends import ResolvedBackend, resolve_backend
from studydesk.core.config import Settings
from studydesk.core.errors import BackendUnconfigured, InsufficientContent, InvalidRequest
from studydesk.core.llm_router import LLMClient
from studydesk.schemas.documents import FormatKind, ordered_formats
from studydesk.studio.generator import ProcessedResult, generate_format
from studydesk.studio.mock import mock_result

logger = logging.getLogger("pipeline")

REASON_UNCONFIGURED = "backend_unconfigured"
REASON_INSUFFICIENT = "insufficient_content"
REASON_BACKEND_ERROR = "backend_error"


def require_content(text: str, min_chars: int) -> None:
    chars = len((text or "").strip())
    if chars < min_chars:
        raise InsufficientContent(f"insufficient text chars={chars} min={min_chars}")


async def process_document(
    text: str,
    requested_formats: Iterable[FormatKind],
    model_type: Optional[str],
    config: Settings,
    llm: LLMClient,
    counts: Optional[Dict[FormatKind, int]] = None,
) -> ProcessedResult:
    """
    Generate every requested study format for one document.

    Never fails because of the model backend: missing credentials, too little
    text, or an error escaping the backend flow all produce mock data with
    is_mock_data=True. Individual format failures are dropped from the result,
    except a failed quiz, which (when quiz_failure_falls_back is set) sends the
    whole request to mock data.
    """
    formats = ordered_formats(requested_formats)
    if not formats:
        raise InvalidRequest("At least one output format must be requested")

    try:
        backend = resolve_backend(model_type, config)
    except BackendUnconfigured as e:
        logger.warning("backend unconfigured model_type=%s err=%s; using mock data", model_type, e)
        return mock_result(formats, reason=REASON_UNCONFIGURED)

    text = text or ""
    try:
        require_content(text, config.min_text_chars)
    except InsufficientContent as e:
        logger.warning("%s; using mock data", e)
        return mock_result(formats, reason=REASON_INSUFFICIENT)

    try:
        return await _generate_all(text, formats, backend, config, llm, counts or {})
    except Exception as e:
        logger.exception("backend flow failed backend=%s err=%s; using mock data", backend.model_type, e)
        return mock_result(formats, reason=REASON_BACKEND_ERROR)


async def _generate_all(
    text: str,
    formats: List[FormatKind],
    backend: ResolvedBackend,
    config: Settings,
    llm: LLMClient,
    counts: Dict[FormatKind, int],
) -> ProcessedResult:
    outcomes = await asyncio.gather(
        *[
            generate_format(
                kind,
                text,
                backend,
                llm,
                count=counts.get(kind),
                timeout_s=config.generation_timeout_s,
            )
            for kind in formats
        ],
        return_exceptions=True,
    )

    result = ProcessedResult(is_mock_data=False)
    for kind, outcome in zip(formats, outcomes):
        if isinstance(outcome, Exception):
            if kind == FormatKind.MULTIPLE_CHOICE and config.quiz_failure_falls_back:
                raise outcome
            logger.warning("format failed kind=%s err=%s: %s", kind.value, type(outcome).__name__, outcome)
            continue
        if isinstance(outcome, BaseException):
            raise outcome
        result.set(outcome)

    logger.info(
        "pipeline done backend=%s requested=%s produced=%s",
        backend.model_type,
        [k.value for k in formats],
        [k.value for k in result.produced()],
    )
    return result
