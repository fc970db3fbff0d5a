"""Tests for Feynman mode: question generation, evaluation and session states."""
import json

import pytest

from studydesk.core.errors import InvalidRequest, SessionStateError, TransportError
from studydesk.feynman.engine import (
    FALLBACK_QUESTIONS,
    HEURISTIC_RATING,
    FeynmanEngine,
    evaluate,
    evaluation_from_model,
    fallback_evaluation,
    generate_questions,
    is_low_effort,
    length_rating,
)
from studydesk.schemas.feynman import FeynmanSession, FeynmanState

from conftest import DOCUMENT_TEXT, GOOD_ANSWER, QUESTIONS_JSON, FakeLLM

QUESTIONS = json.loads(QUESTIONS_JSON)


def _responses(*answers):
    return {i: a for i, a in enumerate(answers)}


class TestLowEffort:
    @pytest.mark.parametrize("text", ["idk", "IDK", "  I don't know  ", "i dont know", "no idea", "", "photosynthesis happens"])
    def test_low_effort(self, text):
        assert is_low_effort(text)

    @pytest.mark.parametrize("text", ["It makes sugar from light.", GOOD_ANSWER])
    def test_real_answers(self, text):
        assert not is_low_effort(text)


class TestRatings:
    def test_length_rating_scales_and_caps(self):
        assert length_rating(["x" * 75]) == 1.5
        assert length_rating(["x" * 400]) == 3.0
        assert length_rating([]) == 0.0

    @pytest.mark.parametrize("given,expected", [(7.2, 5.0), (-1, 0.0), (9, 5.0), (3.5, 3.5), ("4", 4.0)])
    def test_model_rating_is_clamped(self, given, expected):
        raw = json.dumps({"overall": "ok", "strengths": [], "improvements": [], "rating": given})
        assert evaluation_from_model(raw, [GOOD_ANSWER]).rating == expected

    @pytest.mark.parametrize("rating", [None, "four", [1]])
    def test_missing_rating_uses_answer_length(self, rating):
        data = {"overall": "ok", "strengths": ["a"], "improvements": ["b"]}
        if rating is not None:
            data["rating"] = rating
        answers = ["x" * 100, "x" * 50]
        assert evaluation_from_model(json.dumps(data), answers).rating == 1.5

    def test_string_feedback_becomes_list(self):
        raw = json.dumps({"overall": "ok", "strengths": "clear", "improvements": [], "rating": 3})
        assert evaluation_from_model(raw, [GOOD_ANSWER]).strengths == ["clear"]

    def test_fallback_ratings(self):
        assert fallback_evaluation([GOOD_ANSWER, "idk"]).rating == HEURISTIC_RATING
        assert fallback_evaluation(["y " * 60]).rating == 2.5
        assert fallback_evaluation([GOOD_ANSWER]).rating == 2.0


# ---------------------------------------------------------------------------
# Questions
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_questions_from_model(backend, llm):
    questions, fallback = await generate_questions(DOCUMENT_TEXT, backend, llm, count=5)
    assert questions == QUESTIONS
    assert fallback is False


@pytest.mark.asyncio
async def test_short_question_list_is_padded(backend):
    llm = FakeLLM('```json\n["Only one?"]\n```')
    questions, fallback = await generate_questions(DOCUMENT_TEXT, backend, llm, count=5)
    assert questions == ["Only one?"] + FALLBACK_QUESTIONS[:4]
    assert fallback is False


@pytest.mark.asyncio
async def test_long_question_list_is_cut(backend, llm):
    questions, _ = await generate_questions(DOCUMENT_TEXT, backend, llm, count=3)
    assert questions == QUESTIONS[:3]


@pytest.mark.asyncio
@pytest.mark.parametrize("failure", [TransportError("down"), "I cannot help with that."])
async def test_question_failure_uses_fallback(backend, failure):
    questions, fallback = await generate_questions(DOCUMENT_TEXT, backend, FakeLLM(failure), count=5)
    assert questions == FALLBACK_QUESTIONS
    assert fallback is True


@pytest.mark.asyncio
async def test_no_backend_uses_fallback_questions(llm):
    questions, fallback = await generate_questions(DOCUMENT_TEXT, None, llm)
    assert fallback is True
    assert llm.calls == []


# ---------------------------------------------------------------------------
# Evaluation
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_mostly_low_effort_answers_skip_the_model(backend, llm):
    responses = _responses("idk", GOOD_ANSWER, "idk", GOOD_ANSWER, "idk")
    ev = await evaluate(QUESTIONS, responses, DOCUMENT_TEXT, backend, llm)

    assert ev.rating == 1.5
    assert ev.source == "heuristic"
    assert llm.calls == []


@pytest.mark.asyncio
async def test_model_evaluation(backend, llm):
    responses = _responses(*[GOOD_ANSWER] * 5)
    ev = await evaluate(QUESTIONS, responses, "r" * 5000, backend, llm, reference_chars=2000)

    assert ev.rating == 4.0
    assert ev.source == "model"
    prompt = llm.calls[0].user_prompt
    assert "r" * 2000 in prompt and "r" * 2001 not in prompt
    assert f"Q1: {QUESTIONS[0]}\nA1: {GOOD_ANSWER}" in prompt


@pytest.mark.asyncio
async def test_half_low_effort_still_asks_the_model(backend, llm):
    responses = _responses("idk", "idk", GOOD_ANSWER, GOOD_ANSWER)
    ev = await evaluate(QUESTIONS[:4], responses, DOCUMENT_TEXT, backend, llm)
    assert ev.source == "model"
    assert len(llm.calls) == 1


@pytest.mark.asyncio
async def test_model_failure_uses_fallback_evaluation(backend):
    responses = _responses(*[GOOD_ANSWER] * 5)
    ev = await evaluate(QUESTIONS, responses, DOCUMENT_TEXT, backend, FakeLLM("not json"))
    assert ev.source == "fallback"
    assert ev.rating == 2.0


# ---------------------------------------------------------------------------
# Session states
# ---------------------------------------------------------------------------

@pytest.fixture
def engine(llm, config):
    return FeynmanEngine(llm, config)


@pytest.mark.asyncio
async def test_start_moves_to_active(engine, backend):
    session = await engine.start(FeynmanSession(document_id="d1"), DOCUMENT_TEXT, backend)

    assert session.state == FeynmanState.ACTIVE
    assert session.current_index == 0
    assert session.questions == QUESTIONS
    assert session.updated_at


@pytest.mark.asyncio
async def test_full_session(engine, backend, llm):
    session = await engine.start(FeynmanSession(document_id="d1"), DOCUMENT_TEXT, backend)

    for i in range(4):
        await engine.submit_answer(session, i, GOOD_ANSWER, DOCUMENT_TEXT, backend)
        assert session.state == FeynmanState.ACTIVE
        assert session.current_index == i + 1

    await engine.submit_answer(session, 4, GOOD_ANSWER, DOCUMENT_TEXT, backend)

    assert session.state == FeynmanState.EVALUATED
    assert session.evaluation.rating == 4.0
    assert len(session.responses) == 5
    assert len(llm.calls) == 2


@pytest.mark.asyncio
async def test_answers_must_arrive_in_order(engine, backend):
    session = await engine.start(FeynmanSession(document_id="d1"), DOCUMENT_TEXT, backend)

    with pytest.raises(SessionStateError):
        await engine.submit_answer(session, 1, GOOD_ANSWER, DOCUMENT_TEXT, backend)
    assert session.responses == {}

    await engine.submit_answer(session, 0, GOOD_ANSWER, DOCUMENT_TEXT, backend)
    with pytest.raises(SessionStateError):
        await engine.submit_answer(session, 0, GOOD_ANSWER, DOCUMENT_TEXT, backend)


@pytest.mark.asyncio
async def test_blank_answer_rejected(engine, backend):
    session = await engine.start(FeynmanSession(document_id="d1"), DOCUMENT_TEXT, backend)
    with pytest.raises(InvalidRequest):
        await engine.submit_answer(session, 0, "   ", DOCUMENT_TEXT, backend)
    assert session.current_index == 0


@pytest.mark.asyncio
async def test_no_answers_before_start_or_after_evaluation(engine, backend):
    session = FeynmanSession(document_id="d1")
    with pytest.raises(SessionStateError):
        await engine.submit_answer(session, 0, GOOD_ANSWER, DOCUMENT_TEXT, backend)

    await engine.start(session, DOCUMENT_TEXT, backend)
    for i in range(5):
        await engine.submit_answer(session, i, "idk", DOCUMENT_TEXT, backend)
    assert session.evaluation.source == "heuristic"

    with pytest.raises(SessionStateError):
        await engine.submit_answer(session, 5, GOOD_ANSWER, DOCUMENT_TEXT, backend)


@pytest.mark.asyncio
async def test_unexpected_error_during_start_sets_error(config, backend):
    engine = FeynmanEngine(FakeLLM(RuntimeError("boom")), config)
    session = FeynmanSession(document_id="d1")

    with pytest.raises(RuntimeError):
        await engine.start(session, DOCUMENT_TEXT, backend)
    assert session.state == FeynmanState.ERROR


@pytest.mark.asyncio
async def test_unexpected_error_during_evaluation_sets_error(config, backend):
    llm = FakeLLM()
    engine = FeynmanEngine(llm, config)
    session = await engine.start(FeynmanSession(document_id="d1"), DOCUMENT_TEXT, backend)
    for i in range(4):
        await engine.submit_answer(session, i, GOOD_ANSWER, DOCUMENT_TEXT, backend)

    llm.reply = RuntimeError("boom")
    with pytest.raises(RuntimeError):
        await engine.submit_answer(session, 4, GOOD_ANSWER, DOCUMENT_TEXT, backend)
    assert session.state == FeynmanState.ERROR


@pytest.mark.asyncio
async def test_restart_clears_previous_answers(engine, backend):
    session = await engine.start(FeynmanSession(document_id="d1"), DOCUMENT_TEXT, backend)
    await engine.submit_answer(session, 0, GOOD_ANSWER, DOCUMENT_TEXT, backend)

    await engine.start(session, DOCUMENT_TEXT, backend)
    assert session.responses == {}
    assert session.current_index == 0
