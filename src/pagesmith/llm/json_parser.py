"""
Pull structured data out of completion text.

  extract_json(text) -- first JSON object/array in the text, or None
  extract_code(text) -- markup/component code, unwrapped from fences or JSON

Completion output is untrusted: nothing here raises on bad input.
"""

import json
import logging
import re
from typing import Any

logger = logging.getLogger(__name__)

_FENCE = re.compile(r"```[ \t]*([a-zA-Z0-9_+-]*)[ \t]*\n?(.*?)```", re.DOTALL)
CODE_FENCE_LANGUAGES = ("jsx", "tsx", "javascript", "js", "react", "html", "vue", "svelte", "")
CODE_KEYS = ("code", "artifact", "jsx", "html", "component", "responseText")


def _loads(candidate: str) -> Any:
    try:
        return json.loads(candidate)
    except (json.JSONDecodeError, ValueError):
        return None


def _balanced_span(text: str, start: int) -> str | None:
    """The bracket-balanced substring starting at text[start], honoring strings."""
    opener = text[start]
    closer = "}" if opener == "{" else "]"
    depth = 0
    in_string = False
    escaped = False
    for i in range(start, len(text)):
        ch = text[i]
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch == opener:
            depth += 1
        elif ch == closer:
            depth -= 1
            if depth == 0:
                return text[start:i + 1]
    return None


def extract_json(text: str | None) -> dict | list | None:
    """
    Parse the first JSON value found in completion text.

    Tries, in order: the whole text, each fenced block, then the first
    bracket-balanced object or array. Returns None when nothing parses.
    """
    if not text:
        return None
    stripped = text.strip()

    data = _loads(stripped)
    if isinstance(data, (dict, list)):
        return data

    for match in _FENCE.finditer(stripped):
        data = _loads(match.group(2).strip())
        if isinstance(data, (dict, list)):
            return data

    for i, ch in enumerate(stripped):
        if ch not in "{[":
            continue
        span = _balanced_span(stripped, i)
        if span is None:
            continue
        data = _loads(span)
        if isinstance(data, (dict, list)):
            return data

    logger.debug(f"[LLM] No JSON found in {len(text)} chars of output")
    return None


def extract_code(text: str | None) -> str | None:
    """
    Markup/component code from completion text.

    A JSON body with a code-like key wins, then the first fenced block
    in a known language (preferring jsx/tsx/html over a bare fence), then
    the stripped text itself.
    """
    if not text or not text.strip():
        return None
    stripped = text.strip()

    data = _loads(stripped)
    if isinstance(data, dict):
        for key in CODE_KEYS:
            value = data.get(key)
            if isinstance(value, str) and value.strip():
                stripped = value.strip()
                break

    blocks = [(m.group(1).lower(), m.group(2)) for m in _FENCE.finditer(stripped)]
    for language in CODE_FENCE_LANGUAGES:
        for block_language, body in blocks:
            if block_language == language and body.strip():
                return body.strip()

    return stripped
