from __future__ import annotations

import logging
from typing import Any, Dict

import httpx

from studydesk.core.backends import ResolvedBackend, chat_completions_url
from studydesk.core.errors import MalformedModelOutput, TransportError

logger = logging.getLogger("azure_llm")


async def generate_chat(
    client: httpx.AsyncClient,
    backend: ResolvedBackend,
    system_prompt: str,
    prompt: str,
    temperature: float = 0.7,
    max_tokens: int = 2000,
    timeout_s: float = 30.0,
) -> str:
    """
    POST one chat completion to an Azure-OpenAI-style deployment and return the
    message text.
    """
    url = chat_completions_url(backend)

    headers = {
        "api-key": backend.api_key,
        "Content-Type": "application/json",
        "x-ms-model-mesh-model-name": backend.model_id,
    }

    payload: Dict[str, Any] = {
        "model": backend.model_id,
        "messages": [
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": prompt},
        ],
        "temperature": temperature,
        "max_tokens": max_tokens,
    }

    try:
        r = await client.post(url, headers=headers, json=payload, timeout=timeout_s)
        r.raise_for_status()
        data = r.json()
    except httpx.HTTPStatusError as e:
        logger.warning("chat completion failed status=%s deployment=%s", e.response.status_code, backend.model_id)
        raise TransportError(f"github backend returned HTTP {e.response.status_code}") from e
    except httpx.HTTPError as e:
        raise TransportError(f"github backend unreachable: {e}") from e
    except ValueError as e:
        raise MalformedModelOutput("github backend returned a non-JSON body") from e

    try:
        content = (data.get("choices") or [{}])[0].get("message", {}).get("content", "")
    except (AttributeError, IndexError, TypeError):
        content = ""

    return str(content or "").strip()
