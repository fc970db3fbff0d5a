from __future__ import annotations

from enum import Enum
from typing import Dict, Iterable, List, Optional, Set

from pydantic import BaseModel, ConfigDict, Field


class FormatKind(str, Enum):
    FLASHCARDS = "flashcards"
    SUMMARY = "summary"
    CORNELL_NOTES = "cornell_notes"
    MULTIPLE_CHOICE = "multiple_choice"

    @classmethod
    def parse(cls, name: str) -> "FormatKind":
        key = (name or "").strip()
        return _FLAG_ALIASES.get(key) or cls(key.lower())

    @classmethod
    def from_flags(cls, flags: Dict[str, bool]) -> Set["FormatKind"]:
        """{"flashcards": true, "multipleChoice": false, ...} -> {FLASHCARDS}"""
        out: Set["FormatKind"] = set()
        for k, v in (flags or {}).items():
            if not isinstance(v, bool):
                raise ValueError(f"flag {k!r} must be true or false")
            kind = cls.parse(k)
            if v:
                out.add(kind)
        return out


_FLAG_ALIASES = {
    "cornellNotes": FormatKind.CORNELL_NOTES,
    "multipleChoice": FormatKind.MULTIPLE_CHOICE,
    "quiz": FormatKind.MULTIPLE_CHOICE,
}

FORMAT_ORDER = (
    FormatKind.FLASHCARDS,
    FormatKind.SUMMARY,
    FormatKind.CORNELL_NOTES,
    FormatKind.MULTIPLE_CHOICE,
)


def ordered_formats(formats: Iterable[FormatKind]) -> List[FormatKind]:
    wanted = set(formats)
    return [k for k in FORMAT_ORDER if k in wanted]


class Flashcard(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    question: str = Field(min_length=1)
    answer: str = Field(min_length=1)


class CornellNotes(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    cues: List[str]
    notes: List[str]
    summary: str


class MultipleChoiceQuestion(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True, populate_by_name=True)

    question: str = Field(min_length=1)
    options: List[str] = Field(min_length=4, max_length=4)
    correct_answer: int = Field(alias="correctAnswer", ge=0, le=3)


class DocumentRecord(BaseModel):
    id: str
    file_name: str
    original_text: str
    flashcards: List[Flashcard] = Field(default_factory=list)
    summary: str = ""
    cornell_notes: Optional[CornellNotes] = None
    multiple_choice: List[MultipleChoiceQuestion] = Field(default_factory=list)
    requested_formats: List[FormatKind] = Field(default_factory=list)
    model_type: str
    source: str = "pdf"
    created_at: str
    is_mock_data: bool = False
    fallback_reason: Optional[str] = None


class DocumentResult(BaseModel):
    """A record as returned to clients: everything except the full text."""

    id: str
    file_name: str
    flashcards: List[Flashcard]
    summary: str
    cornell_notes: Optional[CornellNotes]
    multiple_choice: List[MultipleChoiceQuestion]
    requested_formats: List[FormatKind]
    model_type: str
    source: str
    created_at: str
    is_mock_data: bool
    fallback_reason: Optional[str]
    original_text_length: int

    @classmethod
    def from_record(cls, record: DocumentRecord) -> "DocumentResult":
        data = record.model_dump(exclude={"original_text"})
        return cls(**data, original_text_length=len(record.original_text))


class RecordSummary(BaseModel):
    id: str
    file_name: str
    created_at: str
    is_mock_data: bool
    requested_formats: List[FormatKind]
    flashcard_count: int
    multiple_choice_count: int
    has_summary: bool
    has_cornell_notes: bool
    original_text_length: int

    @classmethod
    def from_record(cls, record: DocumentRecord) -> "RecordSummary":
        return cls(
            id=record.id,
            file_name=record.file_name,
            created_at=record.created_at,
            is_mock_data=record.is_mock_data,
            requested_formats=record.requested_formats,
            flashcard_count=len(record.flashcards),
            multiple_choice_count=len(record.multiple_choice),
            has_summary=bool(record.summary),
            has_cornell_notes=record.cornell_notes is not None,
            original_text_length=len(record.original_text),
        )


class TextDocumentRequest(BaseModel):
    text: str = Field(min_length=1)
    file_name: str = Field(default="", max_length=255)
    output_formats: Dict[str, bool]
    model_type: Optional[str] = None
    flashcard_count: Optional[int] = Field(default=None, ge=1, le=50)
    quiz_count: Optional[int] = Field(default=None, ge=1, le=30)


class UploadResponse(BaseModel):
    id: str
    is_mock_data: bool
    message: str


class ListResponse(BaseModel):
    count: int
    documents: List[RecordSummary]
