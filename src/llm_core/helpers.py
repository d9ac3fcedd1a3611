"""Opt-in helpers for completion results. `complete()` never calls these."""

from __future__ import annotations

import json
import re
from typing import Any

from .contracts import CompletionResult

_CODE_BLOCK_RE = re.compile(r"```(?:json)?\s*\n?([\s\S]*?)\n?```")


def extract_json(text: str) -> Any | None:
    """Parse JSON from model output, unwrapping a markdown code fence if present."""
    clean = text.strip()
    match = _CODE_BLOCK_RE.search(clean)
    if match:
        clean = match.group(1).strip()
    try:
        return json.loads(clean)
    except json.JSONDecodeError:
        return None


def is_truncated(result: CompletionResult) -> bool:
    return result.finish_reason == "max_tokens"
