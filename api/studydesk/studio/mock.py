"""
Fixed placeholder study material, used when real generation is unavailable.

The content never depends on the uploaded document. Every result built here
carries is_mock_data=True so clients can warn the user.
"""
from __future__ import annotations

import logging
from typing import Iterable, Optional

from studydesk.schemas.documents import CornellNotes, Flashcard, FormatKind, MultipleChoiceQuestion
from studydesk.studio.generator import ProcessedResult

logger = logging.getLogger("mock")

MOCK_FLASHCARDS = [
    ("What is StudyDesk?", "An AI-powered study tool that turns documents into study materials."),
    ("Which study formats does StudyDesk produce?", "Flashcards, summaries, Cornell notes and multiple-choice quizzes."),
    ("How does StudyDesk work?", "It extracts text from a document and asks a language model to rewrite it as study material."),
    ("Which model backends can StudyDesk use?", "A managed deployment endpoint or the OpenAI API directly."),
    ("Why use generated study materials?", "They turn passive reading into active recall and self-testing."),
]

MOCK_SUMMARY = (
    "StudyDesk is an educational application that turns documents into study material. "
    "It extracts the text of an uploaded PDF and asks a language model to produce flashcards "
    "for active recall, a summary for quick review, Cornell notes for structured learning and "
    "a multiple-choice quiz for self-testing. Two interchangeable model backends are supported. "
    "When no backend is configured, or the document holds too little text to work with, "
    "StudyDesk returns illustrative placeholder content like this summary and marks the result "
    "as mock data so the learner knows it was not generated from their document."
)

MOCK_CORNELL = {
    "cues": ["StudyDesk Purpose", "Study Formats", "Model Backends", "Placeholder Content"],
    "notes": [
        "StudyDesk helps students learn by transforming documents into study materials",
        "Supports flashcards for active recall, summaries for overview, Cornell notes for structure and quizzes for self-testing",
        "Either a managed deployment endpoint or the OpenAI API generates the content",
        "When generation is unavailable, placeholder content is returned and flagged as mock data",
    ],
    "summary": "StudyDesk transforms documents into several study formats and always tells the learner when content is placeholder material.",
}

MOCK_MULTIPLE_CHOICE = [
    {
        "question": "What does StudyDesk generate from an uploaded document?",
        "options": ["Spreadsheets", "Study materials", "Audio recordings", "Source code"],
        "correctAnswer": 1,
    },
    {
        "question": "Which technique do flashcards support?",
        "options": ["Passive reading", "Highlighting", "Active recall", "Skimming"],
        "correctAnswer": 2,
    },
    {
        "question": "What does a Cornell notes page contain besides notes and a summary?",
        "options": ["Cues", "Footnotes", "A bibliography", "An index"],
        "correctAnswer": 0,
    },
    {
        "question": "How is placeholder content marked?",
        "options": ["It is not marked", "With a red border", "It is deleted after a day", "With a mock-data flag"],
        "correctAnswer": 3,
    },
]


def mock_result(requested: Iterable[FormatKind], reason: Optional[str] = None) -> ProcessedResult:
    formats = set(requested)
    result = ProcessedResult(is_mock_data=True, fallback_reason=reason or "mock")

    if FormatKind.FLASHCARDS in formats:
        result.flashcards = [Flashcard(question=q, answer=a) for q, a in MOCK_FLASHCARDS]
    if FormatKind.SUMMARY in formats:
        result.summary = MOCK_SUMMARY
    if FormatKind.CORNELL_NOTES in formats:
        result.cornell_notes = CornellNotes.model_validate(MOCK_CORNELL)
    if FormatKind.MULTIPLE_CHOICE in formats:
        result.multiple_choice = [MultipleChoiceQuestion.model_validate(q) for q in MOCK_MULTIPLE_CHOICE]

    logger.info("mock data formats=%s reason=%s", sorted(f.value for f in formats), result.fallback_reason)
    return result
