from __future__ import annotations

import logging
import os
from typing import List, Tuple

import fitz

from studydesk.core.errors import ExtractionError, InvalidRequest

logger = logging.getLogger("parser")

SUPPORTED_EXTS = {".pdf", ".txt", ".md"}


def parse_pdf_bytes(data: bytes) -> str:
    try:
        doc = fitz.open(stream=data, filetype="pdf")
    except Exception as e:
        raise ExtractionError(f"Could not open PDF: {e}") from e

    pages: List[str] = []
    try:
        for i in range(doc.page_count):
            page = doc.load_page(i)
            pages.append((page.get_text("text") or "").strip())
    except Exception as e:
        raise ExtractionError(f"Could not read PDF page: {e}") from e
    finally:
        doc.close()

    return "\n\n".join(p for p in pages if p)


def parse_text_bytes(data: bytes) -> str:
    return data.decode("utf-8", errors="replace").strip()


def extract_text(filename: str, data: bytes) -> Tuple[str, str]:
    """
    Returns (source, text). source is "pdf" or "text".

    Unsupported extensions are a request error; unreadable content is an
    ExtractionError, which callers treat as "no usable text".
    """
    ext = os.path.splitext((filename or "").lower())[1]
    if ext not in SUPPORTED_EXTS:
        raise InvalidRequest("Unsupported file type. Allowed: PDF, TXT, MD")

    if ext == ".pdf":
        text = parse_pdf_bytes(data)
        logger.info("extracted pdf name=%s chars=%s", filename, len(text))
        return "pdf", text
    return "text", parse_text_bytes(data)
