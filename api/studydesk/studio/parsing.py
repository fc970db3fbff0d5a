"""
Recovering JSON from model output.

Models asked for "strict JSON" still wrap it in markdown fences, prepend a
sentence, or leave a trailing comma. parse_model_json tries, in order:

1. the raw text as JSON
2. the body of a response that is one fenced block (```json ... ``` or bare ```)
3. the first array or object that decodes, scanning from each bracket
4. each of the above with trailing commas removed

The first candidate that parses wins. Shape checks for the individual study
formats live here too so the generator and the Feynman engine share them.
"""
from __future__ import annotations

import json
import logging
import re
from typing import Any, Iterator, List, Type, TypeVar

from pydantic import BaseModel, ValidationError

from studydesk.core.errors import MalformedModelOutput

logger = logging.getLogger("parsing")

T = TypeVar("T", bound=BaseModel)

_FENCE_RE = re.compile(r"^```[ \t]*[A-Za-z0-9_+-]*[ \t]*\r?\n?(.*?)\r?\n?```$", re.DOTALL)
_OPEN_RE = re.compile(r"[\[{]")
_TRAILING_COMMA_RE = re.compile(r",\s*([\]}])")

_MISSING = object()


def strip_fences(s: str) -> str:
    """Unwrap a response that is one fenced block; anything else is returned as is."""
    m = _FENCE_RE.match(s.strip())
    if not m:
        return s
    return m.group(1).strip()


def _candidates(raw: str) -> Iterator[str]:
    text = (raw or "").strip()
    yield text

    fenced = strip_fences(text)
    if fenced != text:
        yield fenced


def _try_load(s: str) -> Any:
    try:
        return json.loads(s)
    except ValueError:
        return _MISSING


def _first_json_shape(s: str) -> Any:
    decoder = json.JSONDecoder()
    for m in _OPEN_RE.finditer(s):
        try:
            value, _ = decoder.raw_decode(s, m.start())
        except ValueError:
            continue
        return value
    return _MISSING


def parse_model_json(raw: str) -> Any:
    if not (raw or "").strip():
        raise MalformedModelOutput("empty model response")

    seen: List[str] = []
    for candidate in _candidates(raw):
        for variant in (candidate, _TRAILING_COMMA_RE.sub(r"\1", candidate)):
            if variant not in seen:
                seen.append(variant)

    for load in (_try_load, _first_json_shape):
        for candidate in seen:
            value = load(candidate)
            if value is not _MISSING:
                return value

    logger.info("unparseable model output sample=%r", raw[:120])
    raise MalformedModelOutput("model response is not valid JSON")


def unwrap_list(value: Any) -> Any:
    """{"cards": [...]} -> [...] when the object holds exactly one list."""
    if isinstance(value, dict):
        lists = [v for v in value.values() if isinstance(v, list)]
        if len(lists) == 1:
            return lists[0]
    return value


def parse_list_of(raw: str, model: Type[T]) -> List[T]:
    value = unwrap_list(parse_model_json(raw))
    if not isinstance(value, list) or not value:
        raise MalformedModelOutput(f"expected a non-empty JSON array of {model.__name__}")
    try:
        return [model.model_validate(item) for item in value]
    except ValidationError as e:
        raise MalformedModelOutput(f"{model.__name__} shape mismatch: {e.error_count()} error(s)") from e


def parse_object(raw: str, model: Type[T]) -> T:
    value = parse_model_json(raw)
    if not isinstance(value, dict):
        raise MalformedModelOutput(f"expected a JSON object for {model.__name__}")
    try:
        return model.model_validate(value)
    except ValidationError as e:
        raise MalformedModelOutput(f"{model.__name__} shape mismatch: {e.error_count()} error(s)") from e


def parse_string_list(raw: str) -> List[str]:
    value = unwrap_list(parse_model_json(raw))
    if not isinstance(value, list):
        raise MalformedModelOutput("expected a JSON array of strings")
    out = [str(v).strip() for v in value if isinstance(v, (str, int, float)) and str(v).strip()]
    if not out:
        raise MalformedModelOutput("JSON array held no usable strings")
    return out


def parse_text(raw: str) -> str:
    text = strip_fences((raw or "").strip()).strip()
    if not text:
        raise MalformedModelOutput("empty text response")
    return text
