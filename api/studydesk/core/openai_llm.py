from __future__ import annotations

import logging
from typing import Optional

import openai
from openai import AsyncOpenAI

from studydesk.core.backends import ResolvedBackend
from studydesk.core.errors import TransportError

logger = logging.getLogger("openai_llm")


def make_client(backend: ResolvedBackend, timeout_s: Optional[float] = None) -> AsyncOpenAI:
    kwargs = {"api_key": backend.api_key, "max_retries": 0}
    if backend.endpoint:
        kwargs["base_url"] = backend.endpoint
    if timeout_s is not None:
        kwargs["timeout"] = timeout_s
    return AsyncOpenAI(**kwargs)


async def generate_chat(
    backend: ResolvedBackend,
    system_prompt: str,
    prompt: str,
    temperature: float = 0.7,
    max_tokens: int = 2000,
    timeout_s: float = 30.0,
    client: Optional[AsyncOpenAI] = None,
) -> str:
    """
    One chat completion through the OpenAI SDK. Retries are disabled; the
    caller decides what a failure means.
    """
    own_client = client is None
    sdk = client or make_client(backend, timeout_s=timeout_s)
    try:
        response = await sdk.chat.completions.create(
            model=backend.model_id,
            messages=[
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": prompt},
            ],
            temperature=temperature,
            max_tokens=max_tokens,
        )
    except openai.OpenAIError as e:
        logger.warning("chat completion failed model=%s err=%s", backend.model_id, type(e).__name__)
        raise TransportError(f"openai backend call failed: {e}") from e
    finally:
        if own_client:
            await sdk.close()

    if not response.choices:
        return ""
    return str(response.choices[0].message.content or "").strip()
