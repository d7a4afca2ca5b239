"""Shared utilities for parsing LLM responses."""

from __future__ import annotations

import json
from typing import List


def _strip_code_fences(text: str) -> str:
    if not text.startswith("```"):
        return text
    lines = [l for l in text.split("\n") if not l.strip().startswith("```")]
    return "\n".join(lines)


def parse_llm_json(raw: str) -> dict:
    """Parse a JSON object from an LLM response, handling code fences and preamble text.

    Tries in order:
    1. Strip markdown code fences, then json.loads
    2. Extract substring between first '{' and last '}', then json.loads
    3. Return empty dict

    Anything that does not decode to an object (arrays, scalars) yields {}.
    """
    if not raw:
        return {}

    text = _strip_code_fences(raw.strip())

    try:
        parsed = json.loads(text)
        return parsed if isinstance(parsed, dict) else {}
    except json.JSONDecodeError:
        pass

    start = text.find("{")
    end = text.rfind("}") + 1
    if start >= 0 and end > start:
        try:
            parsed = json.loads(text[start:end])
            return parsed if isinstance(parsed, dict) else {}
        except json.JSONDecodeError:
            pass

    return {}


def split_comma_list(raw: str) -> List[str]:
    """Split a comma-separated LLM answer into stripped, non-empty items."""
    if not raw:
        return []
    return [item.strip() for item in raw.strip().split(",") if item.strip()]
