from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from studydesk.core.backends import ResolvedBackend
from studydesk.core.errors import ChatError, MalformedModelOutput, TransportError
from studydesk.core.llm_router import CompletionRequest, LLMClient

logger = logging.getLogger("chat")

FALLBACK_REPLY = (
    "I'm having trouble analyzing this document right now. "
    "Please try asking a different question or try again later."
)

TUTOR_SYSTEM = (
    "You are an educational AI tutor that helps students understand document content. "
    "Provide helpful, concise responses."
)


@dataclass(frozen=True)
class ChatReply:
    reply: str
    is_fallback: bool


def build_prompt(document_text: str, message: str, file_name: str, max_chars: int) -> str:
    content = document_text[:max_chars]
    if len(document_text) > max_chars:
        content += " ...(content truncated)"

    return f"""You are an educational assistant helping a user understand a document titled "{file_name}".
Use the following document content to answer the user's question.
If you can't answer based on the document, say so politely.

DOCUMENT CONTENT:
{content}

USER QUESTION:
{message}
"""


async def answer_or_raise(
    document_text: str,
    message: str,
    backend: Optional[ResolvedBackend],
    llm: LLMClient,
    file_name: str = "document",
    max_chars: int = 15000,
    timeout_s: float = 20.0,
) -> str:
    """
    One grounded model call. Raises ChatError when no reply can be produced;
    backend=None means the backend is not configured.
    """
    if backend is None:
        raise ChatError("no model backend configured")

    prompt = build_prompt(document_text, message, file_name, max_chars)
    try:
        res = await llm.complete(
            backend,
            CompletionRequest(
                system_prompt=TUTOR_SYSTEM,
                user_prompt=prompt,
                temperature=0.7,
                max_tokens=1000,
                timeout_s=timeout_s,
            ),
        )
    except (TransportError, MalformedModelOutput) as e:
        raise ChatError(str(e)) from e

    reply = (res.response or "").strip()
    if not reply:
        raise ChatError("model returned an empty reply")
    return reply


async def answer(
    document_text: str,
    message: str,
    backend: Optional[ResolvedBackend],
    llm: LLMClient,
    file_name: str = "document",
    max_chars: int = 15000,
    timeout_s: float = 20.0,
) -> ChatReply:
    """Like answer_or_raise, but a failure becomes the canned FALLBACK_REPLY."""
    try:
        reply = await answer_or_raise(
            document_text,
            message,
            backend,
            llm,
            file_name=file_name,
            max_chars=max_chars,
            timeout_s=timeout_s,
        )
    except ChatError as e:
        logger.warning("chat fallback reply err=%s", e)
        return ChatReply(reply=FALLBACK_REPLY, is_fallback=True)
    return ChatReply(reply=reply, is_fallback=False)
