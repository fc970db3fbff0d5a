"""
Feynman mode: the learner explains a document back in their own words.

Flow for one document:

    not_started -> questions_loading -> active(0) -> ... -> active(n-1)
                -> evaluating -> evaluated

Any unexpected exception during a step leaves the session in `error`.
Model failures are not unexpected: question generation falls back to a fixed
list and evaluation falls back to a rating synthesised from the answers, so
the session always moves forward.
"""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Dict, List, Optional, Sequence, Tuple

from studydesk.core.backends import ResolvedBackend
from studydesk.core.config import Settings
from studydesk.core.errors import InvalidRequest, MalformedModelOutput, SessionStateError, TransportError
from studydesk.core.llm_router import CompletionRequest, LLMClient
from studydesk.schemas.feynman import Evaluation, FeynmanSession, FeynmanState
from studydesk.studio.generator import truncate
from studydesk.studio.parsing import parse_model_json, parse_string_list

logger = logging.getLogger("feynman")

LOW_EFFORT_PHRASES = {"i don't know", "idk", "i dont know"}
LOW_EFFORT_MIN_CHARS = 10
LOW_EFFORT_MIN_WORDS = 3

HEURISTIC_RATING = 1.5

FALLBACK_QUESTIONS = [
    "What is the main idea of this document, explained as if to someone new to the topic?",
    "Which key terms does the document introduce, and what does each one mean in plain language?",
    "How do the most important concepts in the document relate to each other?",
    "Can you give a real-world example that illustrates the central concept?",
    "What question would you still want answered after reading this document, and why?",
]

FEYNMAN_SYSTEM = "You are a patient tutor using the Feynman technique to check a student's understanding."


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def is_low_effort(answer: str) -> bool:
    text = (answer or "").strip().lower()
    if text in LOW_EFFORT_PHRASES:
        return True
    if len(text) < LOW_EFFORT_MIN_CHARS:
        return True
    return len(text.split()) < LOW_EFFORT_MIN_WORDS


def average_length(answers: Sequence[str]) -> float:
    if not answers:
        return 0.0
    return sum(len((a or "").strip()) for a in answers) / len(answers)


def clamp_rating(value: float) -> float:
    return max(0.0, min(5.0, float(value)))


def length_rating(answers: Sequence[str]) -> float:
    """Stand-in when the model gives no rating: longer answers score higher, capped at 3."""
    return round(min(3.0, average_length(answers) / 50.0), 1)


def heuristic_evaluation() -> Evaluation:
    return Evaluation(
        overall=(
            "Most of your explanations were too short to show your understanding. "
            "Try explaining each idea in full sentences, as if teaching a friend."
        ),
        strengths=["You worked through every question."],
        improvements=[
            "Explain each concept in your own words instead of skipping it.",
            "Use at least a few sentences per answer.",
            "Add an example to show how the idea applies.",
        ],
        rating=HEURISTIC_RATING,
        source="heuristic",
    )


def fallback_evaluation(answers: Sequence[str]) -> Evaluation:
    any_low_effort = any(is_low_effort(a) for a in answers)
    if any_low_effort:
        rating = HEURISTIC_RATING
    elif average_length(answers) > 100:
        rating = 2.5
    else:
        rating = 2.0

    if any_low_effort:
        return Evaluation(
            overall="Some of your explanations were very brief, so it is hard to judge your understanding.",
            strengths=["You attempted the questions."],
            improvements=[
                "Expand the short answers into complete explanations.",
                "Connect each answer back to the document's main ideas.",
            ],
            rating=rating,
            source="fallback",
        )
    return Evaluation(
        overall="You gave complete explanations. A detailed review is unavailable right now.",
        strengths=["You explained every question in your own words."],
        improvements=[
            "Check your explanations against the document for accuracy.",
            "Try adding concrete examples to each answer.",
        ],
        rating=rating,
        source="fallback",
    )


def build_questions_prompt(text: str, count: int) -> str:
    return f"""Read the document below and write {count} probing questions that test whether a student
truly understands it. Each question should ask the student to explain a concept in simple terms,
as in the Feynman technique.

Return ONLY a JSON array of {count} strings. Do NOT use markdown code fences.
Example: ["Question 1?", "Question 2?"]

DOCUMENT:
{text}
"""


def build_evaluation_prompt(
    questions: Sequence[str], answers: Sequence[str], reference_text: str, reference_chars: int
) -> str:
    pairs = []
    for i, (q, a) in enumerate(zip(questions, answers), start=1):
        pairs.append(f"Q{i}: {q}\nA{i}: {a}")
    qa = "\n\n".join(pairs)

    return f"""A student explained a document back in their own words. Evaluate how well they understand it.

RATING RUBRIC (1-5 stars):
1 = little or no understanding, answers missing or off-topic
2 = fragments of understanding with major gaps or errors
3 = basic understanding, mostly correct but shallow
4 = solid understanding with minor gaps
5 = excellent, clear and accurate explanations with examples

REFERENCE MATERIAL:
{reference_text[:reference_chars]}

QUESTIONS AND ANSWERS:
{qa}

Respond ONLY with a JSON object. Do NOT use markdown code fences:
{{"overall": "...", "strengths": ["..."], "improvements": ["..."], "rating": 3.5}}
"""


def _as_string_list(value) -> List[str]:
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, list):
        return []
    return [str(v).strip() for v in value if str(v).strip()]


def evaluation_from_model(raw: str, answers: Sequence[str]) -> Evaluation:
    data = parse_model_json(raw)
    if not isinstance(data, dict):
        raise MalformedModelOutput("evaluation must be a JSON object")

    overall = str(data.get("overall") or "").strip()
    if not overall:
        raise MalformedModelOutput("evaluation has no overall feedback")

    rating: Optional[float]
    try:
        rating = float(data["rating"])
    except (KeyError, TypeError, ValueError):
        rating = None

    if rating is None:
        logger.info("model gave no rating; using answer length")
        rating = length_rating(answers)

    return Evaluation(
        overall=overall,
        strengths=_as_string_list(data.get("strengths")),
        improvements=_as_string_list(data.get("improvements")),
        rating=clamp_rating(rating),
        source="model",
    )


async def generate_questions(
    text: str,
    backend: Optional[ResolvedBackend],
    llm: LLMClient,
    count: int = 5,
    timeout_s: float = 15.0,
) -> Tuple[List[str], bool]:
    """Returns (questions, used_fallback). Always exactly `count` questions."""
    if backend is None:
        logger.warning("no backend configured; using fallback questions")
        return _pad([], count), True

    prompt = build_questions_prompt(truncate(text, backend.max_input_chars), count)
    try:
        res = await llm.complete(
            backend,
            CompletionRequest(
                system_prompt=FEYNMAN_SYSTEM,
                user_prompt=prompt,
                temperature=0.7,
                max_tokens=800,
                timeout_s=timeout_s,
            ),
        )
        questions = parse_string_list(res.response)
    except (TransportError, MalformedModelOutput) as e:
        logger.warning("question generation failed err=%s; using fallback questions", e)
        return _pad([], count), True

    return _pad(questions[:count], count), False


def _pad(questions: List[str], count: int) -> List[str]:
    out = list(questions)
    for q in FALLBACK_QUESTIONS:
        if len(out) >= count:
            break
        if q not in out:
            out.append(q)
    return out[:count]


async def evaluate(
    questions: Sequence[str],
    responses: Dict[int, str],
    reference_text: str,
    backend: Optional[ResolvedBackend],
    llm: LLMClient,
    reference_chars: int = 2000,
    timeout_s: float = 30.0,
) -> Evaluation:
    answers = [responses.get(i, "") for i in range(len(questions))]

    low_effort = sum(1 for a in answers if is_low_effort(a))
    if low_effort * 2 > len(answers):
        logger.info("low-effort short circuit low=%s total=%s", low_effort, len(answers))
        return heuristic_evaluation()

    if backend is None:
        logger.warning("no backend configured; using fallback evaluation")
        return fallback_evaluation(answers)

    prompt = build_evaluation_prompt(questions, answers, reference_text, reference_chars)
    try:
        res = await llm.complete(
            backend,
            CompletionRequest(
                system_prompt=FEYNMAN_SYSTEM,
                user_prompt=prompt,
                temperature=0.3,
                max_tokens=1000,
                timeout_s=timeout_s,
            ),
        )
        return evaluation_from_model(res.response, answers)
    except (TransportError, MalformedModelOutput) as e:
        logger.warning("evaluation failed err=%s; using fallback evaluation", e)
        return fallback_evaluation(answers)


class FeynmanEngine:
    """Drives one FeynmanSession through its states. Holds no session state itself."""

    def __init__(self, llm: LLMClient, config: Settings) -> None:
        self.llm = llm
        self.config = config

    async def start(
        self, session: FeynmanSession, text: str, backend: Optional[ResolvedBackend]
    ) -> FeynmanSession:
        session.state = FeynmanState.QUESTIONS_LOADING
        session.responses = {}
        session.evaluation = None
        session.current_index = 0
        try:
            questions, fallback = await generate_questions(
                text,
                backend,
                self.llm,
                count=self.config.feynman_question_count,
                timeout_s=self.config.feynman_questions_timeout_s,
            )
        except Exception:
            session.state = FeynmanState.ERROR
            session.updated_at = utc_now_iso()
            raise

        session.questions = questions
        session.questions_fallback = fallback
        session.state = FeynmanState.ACTIVE
        session.updated_at = utc_now_iso()
        return session

    async def submit_answer(
        self,
        session: FeynmanSession,
        index: int,
        text: str,
        reference_text: str,
        backend: Optional[ResolvedBackend],
    ) -> FeynmanSession:
        if session.state != FeynmanState.ACTIVE:
            raise SessionStateError(f"Session is {session.state.value}; answers are not accepted")
        if index != session.current_index:
            raise SessionStateError(f"Expected an answer for question {session.current_index}, got {index}")
        if not (text or "").strip():
            raise InvalidRequest("Answer is empty")

        session.responses[index] = text.strip()
        session.updated_at = utc_now_iso()

        if index < len(session.questions) - 1:
            session.current_index = index + 1
            return session

        session.state = FeynmanState.EVALUATING
        try:
            session.evaluation = await evaluate(
                session.questions,
                session.responses,
                reference_text,
                backend,
                self.llm,
                reference_chars=self.config.feynman_reference_chars,
                timeout_s=self.config.feynman_evaluation_timeout_s,
            )
        except Exception:
            session.state = FeynmanState.ERROR
            session.updated_at = utc_now_iso()
            raise

        session.state = FeynmanState.EVALUATED
        session.updated_at = utc_now_iso()
        logger.info(
            "evaluated doc_id=%s rating=%s source=%s",
            session.document_id,
            session.evaluation.rating,
            session.evaluation.source,
        )
        return session
