from __future__ import annotations

import json
import re
from typing import Any

from audionotes.core.exceptions import JsonExtractionError

_FENCE_RE = re.compile(r"```[A-Za-z0-9_-]*[ \t]*\r?\n?(.*?)\r?\n?```", re.DOTALL)

_OPENERS = {"{": "}", "[": "]"}


def _strip_fences(text: str) -> str:
    m = _FENCE_RE.search(text)
    return m.group(1).strip() if m else text


def _outermost(text: str, opener: str) -> str | None:
    closer = _OPENERS[opener]
    start = text.find(opener)
    end = text.rfind(closer)
    if start >= 0 and end > start:
        return text[start : end + 1]
    return None


def extract_json(text: str, *, expect: type | None = None) -> Any:
    """
    Best-effort JSON extraction from model output.

    Handles ```json fences and leading/trailing prose around the value.
    `expect` (dict or list) narrows which value shape is accepted.
    """
    raw = (text or "").strip()
    if not raw:
        raise JsonExtractionError("Empty response from model")

    candidates = [raw]
    unfenced = _strip_fences(raw)
    if unfenced != raw:
        candidates.append(unfenced)

    openers = "{[" if expect is None else ("{" if expect is dict else "[")
    for base in list(candidates):
        for opener in openers:
            sub = _outermost(base, opener)
            if sub and sub not in candidates:
                candidates.append(sub)

    for candidate in candidates:
        try:
            value = json.loads(candidate)
        except json.JSONDecodeError:
            continue
        if expect is None or isinstance(value, expect):
            return value

    raise JsonExtractionError(f"Model returned non-JSON. First 200 chars: {raw[:200]!r}")


def extract_json_object(text: str) -> dict[str, Any]:
    return extract_json(text, expect=dict)


def extract_json_array(text: str) -> list[Any]:
    return extract_json(text, expect=list)
