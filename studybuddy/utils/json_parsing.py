"""
Tolerant JSON extraction from LLM responses.

Models often wrap JSON in markdown fences or surround it with prose. The
strategies below are tried in order; arrays yield their first element.
"""

from __future__ import annotations

import json
import re
from typing import Any, Optional

FENCED_BLOCK = re.compile(r"```(?:json)?\s*(\{[\s\S]*?\}|\[[\s\S]*?\])\s*```")
OBJECT_SPAN = re.compile(r"\{[\s\S]*\}")
ARRAY_SPAN = re.compile(r"\[[\s\S]*\]")


def _first_item(parsed: Any) -> Any:
    if isinstance(parsed, list):
        return parsed[0] if parsed else None
    return parsed


def _try_load(candidate: str) -> Optional[Any]:
    try:
        return _first_item(json.loads(candidate))
    except json.JSONDecodeError:
        return None


def _trimmed_candidate(response: str) -> Optional[str]:
    """Strip fences and cut from the first opening to the last closing bracket."""
    cleaned = re.sub(r"```(?:json)?\s*", "", response.strip())
    openings = [i for i in (cleaned.find("{"), cleaned.find("[")) if i != -1]
    closing = max(cleaned.rfind("}"), cleaned.rfind("]"))
    if not openings or closing == -1:
        return None
    start = min(openings)
    if start >= closing:
        return None
    return cleaned[start:closing + 1]


def parse_json_response(response: str) -> Any:
    """
    Extract a JSON value from free-form model output.

    Args:
        response: Raw model text

    Returns:
        Parsed JSON (first element if the payload is an array)

    Raises:
        ValueError: If no strategy yields valid JSON
    """
    candidates = [response]

    fenced = FENCED_BLOCK.search(response)
    if fenced:
        candidates.append(fenced.group(1))

    for pattern in (OBJECT_SPAN, ARRAY_SPAN):
        match = pattern.search(response)
        if match:
            candidates.append(match.group(0))

    trimmed = _trimmed_candidate(response)
    if trimmed:
        candidates.append(trimmed)

    for candidate in candidates:
        parsed = _try_load(candidate)
        if parsed is not None:
            return parsed

    raise ValueError(f"Failed to parse JSON response: {response[:200]}...")
