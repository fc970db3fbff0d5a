"""
Prompt table for the study formats.

Every format is one FormatSpec: the system prompt, a user template with the
expected JSON embedded as an example, and the sampling parameters. The
generator is driven entirely by this table.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Optional

from studydesk.schemas.documents import FormatKind

EDUCATOR_SYSTEM = "You are an educational assistant that creates high-quality study materials."


@dataclass(frozen=True)
class FormatSpec:
    kind: FormatKind
    system_prompt: str
    template: str
    default_count: str = ""
    max_count: int = 0
    temperature: float = 0.7
    max_tokens: int = 2000

    def render(self, text: str, count: Optional[int] = None) -> str:
        if count is not None and self.max_count:
            amount = str(max(1, min(int(count), self.max_count)))
        else:
            amount = self.default_count
        return self.template.format(text=text, count=amount)


_FLASHCARDS = """\
Create {count} flashcards based on the following text.
Format your response as a JSON array of objects with 'question' and 'answer' fields.
Make the flashcards educational and focus on key concepts.
Do NOT use markdown code fences.

Text: {text}

Response format:
[
  {{
    "question": "Question 1?",
    "answer": "Answer 1"
  }}
]
"""

_SUMMARY = """\
Create a comprehensive summary of the following text.
The summary should be about 250-300 words and cover the main points.
Respond with plain prose only.

Text: {text}
"""

_CORNELL = """\
Create Cornell notes for the following text.
Format your response as a JSON object with the following structure:
{{
  "cues": ["Cue 1", "Cue 2"],
  "notes": ["Note 1", "Note 2"],
  "summary": "Summary text"
}}

The cues should be key concepts or questions.
The notes should be detailed information related to each cue.
The summary should be a brief overview of the entire content.
Do NOT use markdown code fences.

Text: {text}
"""

_MULTIPLE_CHOICE = """\
Create {count} multiple-choice questions based on the following text.
Each question must have exactly 4 options and one correct answer.
Format your response as a JSON array of objects with 'question', 'options'
and 'correctAnswer' fields, where correctAnswer is the 0-based index of the
correct option.
Do NOT use markdown code fences.

Text: {text}

Response format:
[
  {{
    "question": "Question 1?",
    "options": ["Option A", "Option B", "Option C", "Option D"],
    "correctAnswer": 1
  }}
]
"""

FORMAT_SPECS: Dict[FormatKind, FormatSpec] = {
    FormatKind.FLASHCARDS: FormatSpec(
        kind=FormatKind.FLASHCARDS,
        system_prompt=EDUCATOR_SYSTEM,
        template=_FLASHCARDS,
        default_count="5-10",
        max_count=50,
    ),
    FormatKind.SUMMARY: FormatSpec(
        kind=FormatKind.SUMMARY,
        system_prompt="You are an educational assistant that creates concise, informative summaries.",
        template=_SUMMARY,
        max_tokens=1000,
    ),
    FormatKind.CORNELL_NOTES: FormatSpec(
        kind=FormatKind.CORNELL_NOTES,
        system_prompt="You are an educational assistant that creates structured Cornell notes.",
        template=_CORNELL,
    ),
    FormatKind.MULTIPLE_CHOICE: FormatSpec(
        kind=FormatKind.MULTIPLE_CHOICE,
        system_prompt="You are an educational assistant that writes fair multiple-choice quizzes.",
        template=_MULTIPLE_CHOICE,
        default_count="5",
        max_count=30,
        temperature=0.5,
    ),
}
