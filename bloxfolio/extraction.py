"""Recover a JSON object from free-form LLM output.

Models routinely wrap the object they were asked for in prose or markdown
fences, emit more than one candidate, or leave trailing commas behind.
parse_model_json() tries progressively looser readings of the raw text and
returns the first one that parses to a JSON object:

  1. the raw text as-is
  2. every ``` / ```json fenced region, then each balanced {...} inside it
  3. the span from the first "{" to the last "}"
  4. every balanced {...} in the whole text

Each candidate is immediately followed by a copy with trailing commas
removed. Candidates are stripped and deduplicated.
"""

import json
import logging
import re
from collections.abc import Iterator
from typing import Any

logger = logging.getLogger(__name__)

SNIPPET_LENGTH = 500

_FENCE_RE = re.compile(r"```(?:json)?\s*([\s\S]*?)```", re.IGNORECASE)
_TRAILING_COMMA_RE = re.compile(r",\s*([\]}])")


class ExtractionError(ValueError):
    """Raised when no candidate in the model output parses as a JSON object."""


def find_balanced_objects(text: str) -> list[str]:
    """Return every top-level balanced {...} substring, left to right.

    Braces inside double-quoted strings are ignored, backslash escapes inside
    strings are honoured, and a stray "}" at depth 0 is skipped.
    """
    objects: list[str] = []
    depth = 0
    start = -1
    in_string = False
    escaped = False

    for i, char in enumerate(text):
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue

        if char == '"':
            in_string = True
        elif char == "{":
            if depth == 0:
                start = i
            depth += 1
        elif char == "}" and depth > 0:
            depth -= 1
            if depth == 0 and start >= 0:
                objects.append(text[start:i + 1])
                start = -1

    return objects


def strip_trailing_commas(text: str) -> str:
    return _TRAILING_COMMA_RE.sub(r"\1", text)


def _raw_candidates(raw: str) -> Iterator[str]:
    yield raw

    for match in _FENCE_RE.finditer(raw):
        body = match.group(1)
        if body:
            yield body
            yield from find_balanced_objects(body)

    first, last = raw.find("{"), raw.rfind("}")
    if first != -1 and last > first:
        yield raw[first:last + 1]

    yield from find_balanced_objects(raw)


def iter_candidates(raw: str) -> Iterator[str]:
    """Lazily yield deduplicated parse candidates in try-order."""
    seen: set[str] = set()
    for candidate in _raw_candidates(raw):
        trimmed = candidate.strip()
        if not trimmed or trimmed in seen:
            continue
        seen.add(trimmed)
        yield trimmed

        relaxed = strip_trailing_commas(trimmed)
        if relaxed != trimmed and relaxed not in seen:
            seen.add(relaxed)
            yield relaxed


def _try_object(candidate: str) -> dict[str, Any] | None:
    try:
        parsed = json.loads(candidate)
    except json.JSONDecodeError:
        return None
    return parsed if isinstance(parsed, dict) else None


def parse_model_json(raw: str) -> dict[str, Any]:
    """Return the first candidate that parses to a JSON object.

    Arrays and scalars are skipped, so an array response only succeeds if an
    object can be found inside it. Raises ExtractionError when nothing
    parses; the message carries the start of the raw text for debugging.
    """
    found = next(
        (obj for obj in map(_try_object, iter_candidates(raw)) if obj is not None),
        None,
    )
    if found is None:
        logger.warning("no JSON object in model output (len=%d)", len(raw))
        raise ExtractionError(
            "Model response did not include a valid JSON object. "
            f"Output snippet: {raw[:SNIPPET_LENGTH]}"
        )
    return found


def extract_message_content(content: Any) -> str | None:
    """Flatten a chat-completion message content into trimmed text.

    Content is either a string or a list of parts, each a string or a dict
    with a "text" field. Returns None when nothing textual remains.
    """
    if isinstance(content, str):
        return content.strip() or None
    if not isinstance(content, list):
        return None

    parts: list[str] = []
    for part in content:
        if isinstance(part, str):
            parts.append(part)
        elif isinstance(part, dict) and isinstance(part.get("text"), str):
            parts.append(part["text"])
    return "\n".join(parts).strip() or None
