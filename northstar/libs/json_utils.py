from __future__ import annotations

import json
import re
from typing import Any


def extract_json_block(blob: str) -> str:
    """
    Strip markdown fences, leading chatter and trailing commas from LLM
    responses, returning a best-effort JSON string.
    """

    text = (blob or "").strip()
    if text.startswith("```"):
        newline_idx = text.find("\n")
        if newline_idx != -1:
            text = text[newline_idx + 1 :]
        if text.endswith("```"):
            text = text[:-3]
    text = text.strip()
    if text:
        if text[0] not in "[{":
            opening_idx = text.find("{")
            if opening_idx != -1:
                text = text[opening_idx:]
        closing_idx = max(text.rfind("]"), text.rfind("}"))
        if closing_idx != -1:
            text = text[: closing_idx + 1]
    text = _strip_trailing_commas(text)
    return text.strip()


def parse_json_object(blob: str) -> dict[str, Any]:
    """Decode a model reply that should contain a single JSON object."""

    payload = json.loads(extract_json_block(blob) or "{}")
    if not isinstance(payload, dict):
        raise ValueError("Expected a JSON object")
    return payload


def _strip_trailing_commas(text: str) -> str:
    return re.sub(r",(\s*[}\]])", r"\1", text)


__all__ = ["extract_json_block", "parse_json_object"]
