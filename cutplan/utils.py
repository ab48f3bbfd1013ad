"""
cutplan.utils - Shared utility functions.

Contains common helpers used across the timeline, assist and transcript
modules: hashing, ids, clamping and text cleanup.
"""

from __future__ import annotations

import hashlib
import json
import re
import uuid
from datetime import datetime, timezone
from typing import Any

_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0b-\x1f\x7f]")
_WHITESPACE = re.compile(r"\s+")


def canonical_json(payload: Any) -> str:
    """Serialize a payload to canonical JSON (sorted keys, no extra spacing)."""
    return json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def stable_hash(payload: Any) -> str:
    """Compute a SHA-256 hex digest of the canonical JSON form of a payload."""
    return hashlib.sha256(canonical_json(payload).encode("utf-8")).hexdigest()


def new_id() -> str:
    return str(uuid.uuid4())


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds")


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def clean_text(text: str | None, max_length: int = 400) -> str:
    """Normalize user or transcript text for overlays and captions.

    Strips control characters, collapses whitespace and caps the length.

    Args:
        text: Raw text (None is treated as empty)
        max_length: Maximum number of characters kept

    Returns:
        Cleaned text, possibly empty
    """
    if not text:
        return ""
    cleaned = _CONTROL_CHARS.sub("", text)
    cleaned = _WHITESPACE.sub(" ", cleaned).strip()
    return cleaned[:max_length].rstrip()


def format_ms(ms: int) -> str:
    """Format milliseconds as MM:SS.mmm (HH:MM:SS.mmm past one hour)."""
    ms = max(0, int(ms))
    hours = ms // 3_600_000
    minutes = (ms % 3_600_000) // 60_000
    seconds = (ms % 60_000) // 1000
    millis = ms % 1000
    if hours > 0:
        return f"{hours}:{minutes:02d}:{seconds:02d}.{millis:03d}"
    return f"{minutes:02d}:{seconds:02d}.{millis:03d}"
