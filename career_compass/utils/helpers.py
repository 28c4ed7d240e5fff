"""Helper utilities for the Career Compass pipeline."""

import json
import re
from typing import Iterable, List, Optional

_FENCE_OPEN = re.compile(r"^```(?:json)?\s*")
_FENCE_CLOSE = re.compile(r"\s*```$")
_JSON_OBJECT = re.compile(r"\{[\s\S]*\}")


def parse_llm_json(text: Optional[str]) -> Optional[dict]:
    """Parse a JSON object from an LLM response.

    Strips markdown code fences and, failing a direct parse, falls back to the
    outermost ``{...}`` span. Returns None when no JSON object can be recovered.
    """
    raw = (text or "").strip()
    if not raw:
        return None
    if raw.startswith("```"):
        raw = _FENCE_OPEN.sub("", raw)
        raw = _FENCE_CLOSE.sub("", raw)
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError:
        match = _JSON_OBJECT.search(raw)
        if not match:
            return None
        try:
            parsed = json.loads(match.group(0))
        except json.JSONDecodeError:
            return None
    return parsed if isinstance(parsed, dict) else None


def dedupe_strings(values: Iterable[object], limit: Optional[int] = None) -> List[str]:
    """Strip, drop empties and case-insensitive duplicates; keep first-seen order."""
    seen: set[str] = set()
    result: List[str] = []
    for v in values or []:
        s = str(v).strip() if v is not None else ""
        key = s.lower()
        if s and key not in seen:
            seen.add(key)
            result.append(s)
            if limit is not None and len(result) >= limit:
                break
    return result


def join_or(values: Iterable[str], fallback: str, sep: str = ", ") -> str:
    """Join non-empty values, or return fallback when there are none."""
    items = [v for v in values if v]
    return sep.join(items) if items else fallback
