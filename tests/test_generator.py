"""Tests for single-format generation and the prompt table."""
from dataclasses import replace

import pytest

from studydesk.core.errors import MalformedModelOutput, TransportError
from studydesk.schemas.documents import FormatKind
from studydesk.studio.generator import ProcessedResult, generate_format, truncate
from studydesk.studio.prompts import FORMAT_SPECS

from conftest import CORNELL_JSON, DOCUMENT_TEXT, FLASHCARDS_JSON, QUIZ_JSON, FakeLLM


def test_truncate_appends_ellipsis_only_when_cut():
    assert truncate("abcdef", 3) == "abc..."
    assert truncate("abc", 3) == "abc"


def test_every_format_has_a_prompt():
    assert set(FORMAT_SPECS) == set(FormatKind)


def test_count_replaces_default_and_is_clamped():
    spec = FORMAT_SPECS[FormatKind.FLASHCARDS]
    assert "Create 5-10 flashcards" in spec.render("t")
    assert "Create 12 flashcards" in spec.render("t", count=12)
    assert "Create 50 flashcards" in spec.render("t", count=500)

    quiz = FORMAT_SPECS[FormatKind.MULTIPLE_CHOICE]
    assert "Create 30 multiple-choice" in quiz.render("t", count=99)


def test_templates_embed_example_json():
    rendered = FORMAT_SPECS[FormatKind.CORNELL_NOTES].render("some text")
    assert '"cues": ["Cue 1", "Cue 2"]' in rendered
    assert "Text: some text" in rendered


@pytest.mark.asyncio
async def test_flashcards(backend):
    llm = FakeLLM(FLASHCARDS_JSON)
    res = await generate_format(FormatKind.FLASHCARDS, DOCUMENT_TEXT, backend, llm)

    assert res.kind == FormatKind.FLASHCARDS
    assert [c.answer for c in res.value][1] == "In the chloroplasts."
    assert len(llm.calls) == 1
    assert llm.calls[0].system_prompt == FORMAT_SPECS[FormatKind.FLASHCARDS].system_prompt


@pytest.mark.asyncio
async def test_fenced_cornell_notes(backend):
    llm = FakeLLM(f"```json\n{CORNELL_JSON}\n```")
    res = await generate_format(FormatKind.CORNELL_NOTES, DOCUMENT_TEXT, backend, llm)
    assert res.value.cues == ["Definition", "Location"]


@pytest.mark.asyncio
async def test_quiz_uses_lower_temperature_and_count(backend):
    llm = FakeLLM(QUIZ_JSON)
    res = await generate_format(FormatKind.MULTIPLE_CHOICE, DOCUMENT_TEXT, backend, llm, count=3)

    assert res.value[0].correct_answer == 1
    assert llm.calls[0].temperature == 0.5
    assert "Create 3 multiple-choice" in llm.calls[0].user_prompt


@pytest.mark.asyncio
async def test_summary_is_plain_text(backend):
    llm = FakeLLM("  A compact summary.  ")
    res = await generate_format(FormatKind.SUMMARY, DOCUMENT_TEXT, backend, llm)
    assert res.value == "A compact summary."
    assert llm.calls[0].max_tokens == 1000


@pytest.mark.asyncio
async def test_summary_with_code_snippet_keeps_surrounding_text(backend):
    reply = (
        "Python loops repeat work for each item.\n"
        "```python\nfor x in items:\n    print(x)\n```\n"
        "The document closes with exercises."
    )
    res = await generate_format(FormatKind.SUMMARY, DOCUMENT_TEXT, backend, FakeLLM(reply))

    assert res.value == reply
    assert res.value.startswith("Python loops repeat work")


@pytest.mark.asyncio
async def test_long_document_is_truncated(backend):
    small = replace(backend, max_input_chars=50)
    llm = FakeLLM("ok")
    await generate_format(FormatKind.SUMMARY, "x" * 500, small, llm)

    prompt = llm.calls[0].user_prompt
    assert "x" * 50 + "..." in prompt
    assert "x" * 51 not in prompt


@pytest.mark.asyncio
async def test_unparseable_output_raises(backend):
    with pytest.raises(MalformedModelOutput):
        await generate_format(FormatKind.FLASHCARDS, DOCUMENT_TEXT, backend, FakeLLM("no cards today"))


@pytest.mark.asyncio
async def test_transport_error_propagates(backend):
    with pytest.raises(TransportError):
        await generate_format(FormatKind.FLASHCARDS, DOCUMENT_TEXT, backend, FakeLLM(TransportError("down")))


def test_processed_result_tracks_produced_formats():
    result = ProcessedResult(summary="s")
    assert result.produced() == [FormatKind.SUMMARY]
    assert result.get(FormatKind.FLASHCARDS) is None
