"""JSON extraction from LLM responses using brace balancing."""

from __future__ import annotations

import json
import logging
from typing import Any, Iterator

from .errors import ParseError

logger = logging.getLogger(__name__)


def find_balanced(text: str, open_ch: str = "{", close_ch: str = "}", start: int = 0) -> str | None:
    """Return the first balanced ``open_ch ... close_ch`` substring of *text*.

    Scanning begins at the first *open_ch* at or after *start*. Quoted
    strings are skipped so braces inside values do not affect depth.
    Returns ``None`` when no opening character exists or it is never closed.
    """
    start = text.find(open_ch, start) if text else -1
    if start < 0:
        return None

    depth = 0
    quoted = False
    escaped = False
    for offset, ch in enumerate(text[start:]):
        if quoted:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                quoted = False
        elif ch == '"':
            quoted = True
        elif ch == open_ch:
            depth += 1
        elif ch == close_ch:
            depth -= 1
            if not depth:
                return text[start : start + offset + 1]
    return None


def _candidates(text: str, open_ch: str, close_ch: str) -> Iterator[str]:
    # one balanced candidate per opening character, left to right
    pos = text.find(open_ch) if text else -1
    while pos >= 0:
        candidate = find_balanced(text, open_ch, close_ch, pos)
        if candidate is not None:
            yield candidate
        pos = text.find(open_ch, pos + 1)


def _parse_balanced(text: str, open_ch: str, close_ch: str, expected: type, label: str) -> Any:
    error: ValueError | None = None
    for candidate in _candidates(text, open_ch, close_ch):
        try:
            parsed = json.loads(candidate)
        except ValueError as exc:
            logger.debug("Skipping %s candidate that failed to decode: %s", label, exc)
            error = error or exc
            continue
        if isinstance(parsed, expected):
            return parsed

    if error is not None:
        raise ParseError(f"Failed to parse JSON {label} from AI response: {error}", raw_text=text) from error
    raise ParseError(f"No JSON {label} found in AI response", raw_text=text or "")


def parse_json_object(text: str) -> dict[str, Any]:
    """Parse the first balanced JSON object in *text* that decodes.

    Prose braces before the real answer are skipped. Raises ``ParseError``
    when no candidate decodes.
    """
    return _parse_balanced(text, "{", "}", dict, "object")


def parse_json_array(text: str) -> list[Any]:
    """Parse the first balanced JSON array in *text* that decodes, or raise ``ParseError``."""
    return _parse_balanced(text, "[", "]", list, "array")
