"""
Shared fixtures for StudyDesk tests.

Every test gets its own in-memory sqlite database and a FakeLLM in place of
the real model backends, so nothing here touches the network. The FakeLLM
records each CompletionRequest it receives; tests assert on `llm.calls` to
check how many model calls a flow made.
"""
from __future__ import annotations

import json
import os
from typing import AsyncGenerator, Callable, Dict, List, Union

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

# Point the app-level settings at a throwaway database *before* the app
# module is imported.
os.environ.setdefault("SQLITE_PATH", ":memory:")

from studydesk.chat.responder import TUTOR_SYSTEM  # noqa: E402
from studydesk.core.backends import ResolvedBackend  # noqa: E402
from studydesk.core.config import Settings  # noqa: E402
from studydesk.core.llm_router import PING_PROMPT, CompletionRequest, LLMResult  # noqa: E402
from studydesk.db.sqlite import connect, init_db  # noqa: E402
from studydesk.feynman.engine import FEYNMAN_SYSTEM  # noqa: E402
from studydesk.main import app, get_desk  # noqa: E402
from studydesk.schemas.documents import FormatKind  # noqa: E402
from studydesk.services.study import StudyDesk  # noqa: E402
from studydesk.studio.prompts import FORMAT_SPECS  # noqa: E402

Reply = Union[str, BaseException, Callable[[CompletionRequest], Union[str, BaseException]]]


# ---------------------------------------------------------------------------
# Canned model output
# ---------------------------------------------------------------------------

FLASHCARDS_JSON = json.dumps(
    [
        {"question": "What is photosynthesis?", "answer": "Turning light into chemical energy."},
        {"question": "Where does it happen?", "answer": "In the chloroplasts."},
    ]
)

SUMMARY_TEXT = "Photosynthesis converts light energy into chemical energy stored in glucose."

CORNELL_JSON = json.dumps(
    {
        "cues": ["Definition", "Location"],
        "notes": ["Light becomes chemical energy", "Chloroplasts hold chlorophyll"],
        "summary": "Plants make food from light.",
    }
)

QUIZ_JSON = json.dumps(
    [
        {
            "question": "Which organelle performs photosynthesis?",
            "options": ["Nucleus", "Chloroplast", "Ribosome", "Vacuole"],
            "correctAnswer": 1,
        }
    ]
)

QUESTIONS_JSON = json.dumps(
    [
        "What does photosynthesis produce?",
        "Why is chlorophyll green?",
        "What role does water play?",
        "How is light captured?",
        "Where is glucose stored?",
    ]
)

EVALUATION_JSON = json.dumps(
    {
        "overall": "Good grasp of the basics.",
        "strengths": ["Clear definitions"],
        "improvements": ["Add examples"],
        "rating": 4,
    }
)

CHAT_REPLY = "Photosynthesis happens in the chloroplasts."

DOCUMENT_TEXT = (
    "Photosynthesis is the process by which green plants use sunlight to synthesize food "
    "from carbon dioxide and water. It takes place in the chloroplasts, which contain the "
    "pigment chlorophyll. The process releases oxygen as a by-product and stores energy in glucose."
)

GOOD_ANSWER = "Plants capture sunlight with chlorophyll and turn carbon dioxide and water into glucose."


def format_replies(replies: Dict[FormatKind, Reply]) -> Callable[[CompletionRequest], Union[str, BaseException]]:
    """Route a completion to a canned reply by the study format its system prompt belongs to."""
    by_prompt = {FORMAT_SPECS[k].system_prompt: v for k, v in replies.items()}

    def _reply(request: CompletionRequest):
        reply = by_prompt.get(request.system_prompt)
        if reply is None:
            raise AssertionError(f"unexpected prompt: {request.system_prompt!r}")
        return reply

    return _reply


def study_replies(request: CompletionRequest) -> str:
    """Plausible output for every prompt the app sends."""
    if request.user_prompt == PING_PROMPT:
        return "API connection successful"
    if request.system_prompt == TUTOR_SYSTEM:
        return CHAT_REPLY
    if request.system_prompt == FEYNMAN_SYSTEM:
        if "RATING RUBRIC" in request.user_prompt:
            return EVALUATION_JSON
        return QUESTIONS_JSON
    return format_replies(
        {
            FormatKind.FLASHCARDS: FLASHCARDS_JSON,
            FormatKind.SUMMARY: SUMMARY_TEXT,
            FormatKind.CORNELL_NOTES: CORNELL_JSON,
            FormatKind.MULTIPLE_CHOICE: QUIZ_JSON,
        }
    )(request)


class FakeLLM:
    """
    Stand-in for LLMRouter. `reply` is a string, an exception to raise, or a
    callable taking the CompletionRequest and returning either.
    """

    def __init__(self, reply: Reply = study_replies) -> None:
        self.reply = reply
        self.calls: List[CompletionRequest] = []

    async def complete(self, backend: ResolvedBackend, request: CompletionRequest) -> LLMResult:
        self.calls.append(request)
        reply = self.reply
        if callable(reply) and not isinstance(reply, BaseException):
            reply = reply(request)
        if isinstance(reply, BaseException):
            raise reply
        return LLMResult(model=backend.model_id, response=reply, latency_ms=1)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def config() -> Settings:
    return Settings(
        _env_file=None,
        app_env="dev",
        sqlite_path=":memory:",
        default_model_type="github",
        github_api_endpoint="https://models.example.test",
        github_api_key="test-github-key",
        openai_api_key="test-openai-key",
        openai_base_url="",
        otel_enabled=False,
    )


@pytest.fixture
def unconfigured(config: Settings) -> Settings:
    return config.model_copy(update={"github_api_key": "", "openai_api_key": ""})


@pytest.fixture
def backend(config: Settings) -> ResolvedBackend:
    return ResolvedBackend(
        model_type="github",
        endpoint="https://models.example.test",
        api_key="test-github-key",
        model_id="gpt-4o-mini",
        api_version="2023-05-15",
        max_input_chars=15000,
    )


@pytest.fixture
def llm() -> FakeLLM:
    return FakeLLM()


@pytest.fixture
def conn():
    c = connect(":memory:")
    init_db(c)
    yield c
    c.close()


@pytest.fixture
def desk(conn, config: Settings, llm: FakeLLM) -> StudyDesk:
    return StudyDesk(conn, config, llm=llm)


@pytest_asyncio.fixture
async def client(desk: StudyDesk) -> AsyncGenerator[AsyncClient, None]:
    """httpx AsyncClient wired to the FastAPI app with the facade overridden."""
    app.dependency_overrides[get_desk] = lambda: desk

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
