from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, List, Optional

from studydesk.core.backends import ResolvedBackend
from studydesk.core.llm_router import CompletionRequest, LLMClient
from studydesk.schemas.documents import CornellNotes, Flashcard, FormatKind, MultipleChoiceQuestion
from studydesk.studio.parsing import parse_list_of, parse_object, parse_text
from studydesk.studio.prompts import FORMAT_SPECS

logger = logging.getLogger("generator")


@dataclass(frozen=True)
class FormatResult:
    kind: FormatKind
    value: Any


@dataclass
class ProcessedResult:
    """
    Output of one pipeline run. A requested format that was not produced is
    simply None here; defaults are applied when the record is stored.
    """

    flashcards: Optional[List[Flashcard]] = None
    summary: Optional[str] = None
    cornell_notes: Optional[CornellNotes] = None
    multiple_choice: Optional[List[MultipleChoiceQuestion]] = None
    is_mock_data: bool = False
    fallback_reason: Optional[str] = None

    def set(self, result: FormatResult) -> None:
        setattr(self, result.kind.value, result.value)

    def get(self, kind: FormatKind) -> Any:
        return getattr(self, kind.value)

    def produced(self) -> List[FormatKind]:
        return [k for k in FormatKind if self.get(k) is not None]


def truncate(text: str, max_chars: int) -> str:
    if len(text) > max_chars:
        return text[:max_chars] + "..."
    return text


def parse_format(kind: FormatKind, raw: str) -> Any:
    if kind == FormatKind.FLASHCARDS:
        return parse_list_of(raw, Flashcard)
    if kind == FormatKind.MULTIPLE_CHOICE:
        return parse_list_of(raw, MultipleChoiceQuestion)
    if kind == FormatKind.CORNELL_NOTES:
        return parse_object(raw, CornellNotes)
    return parse_text(raw)


async def generate_format(
    kind: FormatKind,
    document_text: str,
    backend: ResolvedBackend,
    llm: LLMClient,
    count: Optional[int] = None,
    timeout_s: float = 30.0,
) -> FormatResult:
    """
    One prompt, one model call, one parse. Raises TransportError or
    MalformedModelOutput; the caller owns the fallback policy.
    """
    spec = FORMAT_SPECS[kind]
    prompt = spec.render(truncate(document_text, backend.max_input_chars), count=count)

    res = await llm.complete(
        backend,
        CompletionRequest(
            system_prompt=spec.system_prompt,
            user_prompt=prompt,
            temperature=spec.temperature,
            max_tokens=spec.max_tokens,
            timeout_s=timeout_s,
        ),
    )

    value = parse_format(kind, res.response)
    if isinstance(value, list):
        if count is not None:
            value = value[:count]
        logger.info("generated kind=%s items=%s model=%s", kind.value, len(value), res.model)
    else:
        logger.info("generated kind=%s model=%s", kind.value, res.model)
    return FormatResult(kind=kind, value=value)
