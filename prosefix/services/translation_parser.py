"""Shape raw model output for a translation chunk into per-paragraph text."""

import json
import logging
import re
from collections.abc import Sequence
from typing import Any

logger = logging.getLogger(__name__)

_FALLBACK_BREAK = re.compile(r"\n{2,}|\r?\n\r?\n")


def strip_fence(text: str | None) -> str:
    """Remove leading/trailing markdown code fences if present."""
    if not text:
        return ""
    stripped = text.strip()
    if not stripped.startswith("```"):
        return stripped

    # Drop opening fence and optional language hint.
    first_newline = stripped.find("\n")
    closing_index = stripped.rfind("```")
    if first_newline == -1 or closing_index <= first_newline:
        return stripped
    return stripped[first_newline + 1 : closing_index].strip()


def _load_payload(cleaned: str) -> Any:
    try:
        return json.loads(cleaned)
    except json.JSONDecodeError:
        pass

    first_brace = cleaned.find("{")
    last_brace = cleaned.rfind("}")
    if first_brace == -1 or last_brace <= first_brace:
        return None
    try:
        return json.loads(cleaned[first_brace : last_brace + 1])
    except json.JSONDecodeError:
        return None


def _entry_index(entry: dict) -> int | None:
    value = entry.get("index")
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str) and value.strip().lstrip("-").isdigit():
        return int(value.strip())
    return None


def parse_translation_payload(raw: str | None, indices: Sequence[int]) -> dict[int, str]:
    """
    Map model output onto the chunk's paragraph indices.

    The structured form is ``{"translations": [{"index": n, "text": "..."}]}``,
    either bare, fenced, or embedded in surrounding chatter. Entries for
    indices outside the chunk are ignored. When no usable entry is found the
    cleaned text is split on blank lines and assigned positionally, padding
    with empty strings.
    """
    if not raw:
        return {}

    cleaned = strip_fence(raw)
    allowed = set(indices)
    payload = _load_payload(cleaned)

    if isinstance(payload, dict) and isinstance(payload.get("translations"), list):
        mapped: dict[int, str] = {}
        for entry in payload["translations"]:
            if not isinstance(entry, dict):
                continue
            index = _entry_index(entry)
            if index is None or index not in allowed:
                continue
            text = entry.get("text")
            mapped[index] = text.strip() if isinstance(text, str) else ""
        if mapped:
            return mapped

    logger.debug(
        "Translation output not structured; falling back to positional split",
        extra={"indices": list(indices)},
    )
    parts = [part.strip() for part in _FALLBACK_BREAK.split(cleaned) if part.strip()]
    return {
        index: parts[position] if position < len(parts) else ""
        for position, index in enumerate(indices)
    }
