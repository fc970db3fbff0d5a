from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Optional, Protocol

import httpx

from studydesk.core.azure_llm import generate_chat as github_generate
from studydesk.core.backends import GITHUB, OPENAI, ResolvedBackend
from studydesk.core.errors import InvalidRequest, TransportError
from studydesk.core.openai_llm import generate_chat as openai_generate

logger = logging.getLogger("llm_router")

PING_PROMPT = "Respond with 'API connection successful' if you receive this message."


@dataclass(frozen=True)
class CompletionRequest:
    system_prompt: str
    user_prompt: str
    temperature: float = 0.7
    max_tokens: int = 2000
    timeout_s: float = 30.0


@dataclass(frozen=True)
class LLMResult:
    model: str
    response: str
    latency_ms: int


class LLMClient(Protocol):
    async def complete(self, backend: ResolvedBackend, request: CompletionRequest) -> LLMResult:
        ...


class LLMRouter:
    """
    Dispatches a completion to the backend named in the ResolvedBackend.

    The whole call is bounded by request.timeout_s; on expiry the outbound
    request is cancelled and TransportError raised. No retries.
    """

    def __init__(self, http_client: Optional[httpx.AsyncClient] = None) -> None:
        self._http = http_client

    async def complete(self, backend: ResolvedBackend, request: CompletionRequest) -> LLMResult:
        t0 = time.perf_counter()
        try:
            text = await asyncio.wait_for(self._dispatch(backend, request), timeout=request.timeout_s)
        except asyncio.TimeoutError as e:
            logger.warning("llm call timed out backend=%s timeout_s=%s", backend.model_type, request.timeout_s)
            raise TransportError(f"{backend.model_type} backend timed out after {request.timeout_s}s") from e
        latency_ms = int((time.perf_counter() - t0) * 1000)
        logger.info(
            "llm call ok backend=%s model=%s chars=%s ms=%s",
            backend.model_type,
            backend.model_id,
            len(text),
            latency_ms,
        )
        return LLMResult(model=backend.model_id, response=text, latency_ms=latency_ms)

    async def _dispatch(self, backend: ResolvedBackend, request: CompletionRequest) -> str:
        if backend.model_type == OPENAI:
            return await openai_generate(
                backend,
                system_prompt=request.system_prompt,
                prompt=request.user_prompt,
                temperature=request.temperature,
                max_tokens=request.max_tokens,
                timeout_s=request.timeout_s,
            )

        if backend.model_type == GITHUB:
            if self._http is not None:
                return await self._github(self._http, backend, request)
            async with httpx.AsyncClient() as client:
                return await self._github(client, backend, request)

        raise InvalidRequest(f"Unknown model type: {backend.model_type!r}")

    @staticmethod
    async def _github(client: httpx.AsyncClient, backend: ResolvedBackend, request: CompletionRequest) -> str:
        return await github_generate(
            client,
            backend,
            system_prompt=request.system_prompt,
            prompt=request.user_prompt,
            temperature=request.temperature,
            max_tokens=request.max_tokens,
            timeout_s=request.timeout_s,
        )


async def ping(llm: LLMClient, backend: ResolvedBackend, timeout_s: float = 15.0) -> LLMResult:
    """Tiny completion used to check that a backend answers at all."""
    return await llm.complete(
        backend,
        CompletionRequest(
            system_prompt="You are a test assistant.",
            user_prompt=PING_PROMPT,
            temperature=0.0,
            max_tokens=50,
            timeout_s=timeout_s,
        ),
    )
