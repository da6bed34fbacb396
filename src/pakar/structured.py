"""Helpers that pull JSON payloads out of free-form model responses."""

from __future__ import annotations

import json
import re
from typing import Any

from .errors import LLMResponseFormatError

__all__ = ["extract_json_payload", "parse_json_payload"]

# Fences only count at the start of a line; backticks inside a JSON string are content.
_FENCE_PATTERN = re.compile(
    r"^[ \t]*```(?:json)?[ \t]*\r?\n(.*?)^[ \t]*```",
    re.IGNORECASE | re.DOTALL | re.MULTILINE,
)


def extract_json_payload(raw_text: str) -> str:
    """Return the most likely JSON candidate embedded in ``raw_text``.

    Text that already decodes as a JSON object or array is returned trimmed.
    Otherwise the preference order is: the inner content of a fenced code
    block, then the span from the first opening brace/bracket to the last
    closing brace/bracket, then the trimmed input. The function never raises;
    a bad candidate is rejected later by the JSON decoder.
    """
    text = raw_text or ""
    stripped = text.strip()
    if stripped[:1] in ("{", "["):
        try:
            json.loads(stripped)
        except json.JSONDecodeError:
            pass
        else:
            return stripped

    fenced = _FENCE_PATTERN.search(text)
    if fenced:
        return fenced.group(1).strip()

    starts = [index for index in (text.find("{"), text.find("[")) if index != -1]
    end = max(text.rfind("}"), text.rfind("]"))
    if starts:
        start = min(starts)
        if end > start:
            return text[start : end + 1]
    return text.strip()


def parse_json_payload(raw_text: str) -> Any:
    """Sanitize ``raw_text`` and decode it, normalising decoder errors."""
    candidate = extract_json_payload(raw_text)
    if not candidate:
        raise LLMResponseFormatError("Model returned an empty response.")
    try:
        return json.loads(candidate)
    except json.JSONDecodeError as error:
        repaired = _strip_trailing_commas(candidate)
        if repaired != candidate:
            try:
                return json.loads(repaired)
            except json.JSONDecodeError:
                pass
        snippet = candidate[:200]
        raise LLMResponseFormatError(
            f"Model returned invalid JSON ({error.msg} at position {error.pos}): {snippet}"
        ) from error


def _strip_trailing_commas(payload: str) -> str:
    """Remove trailing commas before closing braces/brackets."""
    return re.sub(r",(\s*[}\]])", r"\1", payload)
