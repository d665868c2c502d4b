"""
Response extraction and sanitation.

Generation services answer in different shapes: a plain string, text
accumulated from streaming callbacks, or a structured object whose text
lives under one of several field names. This module turns any of those into
a single string and strips the noise models tend to add around flashcards.
"""

import json
import re
from collections.abc import Mapping
from typing import Any, Dict, List, Optional

from pydantic import BaseModel

from .types import GenerationResult, OpaqueResult, PlainResult, StreamedResult, StructuredResult

# Probed in this order on structured results
TEXT_FIELDS = ("text", "content", "message", "response", "data", "result")

THINK_BLOCK_PATTERN = re.compile(r"^\s*<think>.*?</think>\s*", re.IGNORECASE | re.DOTALL)


def _as_fields(raw: Any) -> Optional[Dict[str, Any]]:
    if isinstance(raw, Mapping):
        return dict(raw)
    if isinstance(raw, BaseModel):
        return raw.model_dump()
    return None


def classify_response(raw: Any, accumulated: str = "") -> Optional[GenerationResult]:
    """
    Classify a raw service result.

    Precedence: non-empty string, then non-empty streamed text, then a
    structured object, then any other non-null value.

    Returns:
        The classified result, or None when there is nothing at all
    """
    if isinstance(raw, str) and raw:
        return PlainResult(text=raw)
    if accumulated:
        return StreamedResult(text=accumulated)
    fields = _as_fields(raw)
    if fields is not None:
        return StructuredResult(fields=fields)
    if raw is not None:
        return OpaqueResult(value=raw)
    return None


def extract_text(result: Optional[GenerationResult]) -> Optional[str]:
    """
    Get the response text out of a classified result.

    Structured results yield the first non-empty string among TEXT_FIELDS,
    or a JSON dump of the whole object so it stays visible for diagnosis.
    """
    if result is None:
        return None
    if isinstance(result, (PlainResult, StreamedResult)):
        return result.text
    if isinstance(result, StructuredResult):
        for name in TEXT_FIELDS:
            value = result.fields.get(name)
            if isinstance(value, str) and value:
                return value
        return json.dumps(result.fields, indent=2, ensure_ascii=False, default=str)
    return str(result.value)


def extract_response_text(raw: Any, accumulated: str = "") -> Optional[str]:
    """Classify and extract in one step."""
    return extract_text(classify_response(raw, accumulated))


def strip_think_block(text: str) -> str:
    """Remove a leading <think>...</think> reasoning block and the whitespace after it."""
    return THINK_BLOCK_PATTERN.sub("", text, count=1)


def strip_tag_lines(text: str, tag: str) -> str:
    """
    Remove tag markers the model echoed back.

    A leading bare '#tag' (or '#tag/...') token is removed even when cards
    follow on the same line; elsewhere, lines holding nothing but such a
    token are dropped, together with a blank line that would otherwise
    double the separator around them. The canonical tag line is written at
    save time.
    """
    marker = re.escape(f"#{tag}")
    token = rf"{marker}(?:/\S*)?"
    text = re.sub(rf"^\s*{token}(?=\s|$)[ \t]*", "", text.lstrip(), count=1)

    tag_only = re.compile(rf"[ \t]*{token}[ \t]*\r?")
    kept: List[str] = []
    dropped = False
    for line in text.split("\n"):
        if tag_only.fullmatch(line):
            dropped = True
            continue
        if dropped and not line.strip() and kept and not kept[-1].strip():
            dropped = False
            continue
        dropped = False
        kept.append(line)
    return "\n".join(kept)


def sanitize_response(text: str, tag: str) -> str:
    """
    Clean a model response before saving.

    Args:
        text: Extracted response text
        tag: Tag label without '#'

    Returns:
        The trimmed flashcards, possibly empty
    """
    clean = strip_think_block(text).strip()
    if tag:
        clean = strip_tag_lines(clean, tag)
    return clean.strip()
