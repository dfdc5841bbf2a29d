from __future__ import annotations

import json
import os
import re
import sys
from typing import List, Optional


_WHITESPACE_RE = re.compile(r"\s+")


def tokenize(text: Optional[str]) -> List[str]:
    """
    Split on whitespace and lowercase. Empty tokens are dropped,
    duplicates and punctuation are kept as-is.
    """
    if not text:
        return []
    return [t for t in _WHITESPACE_RE.split(text.lower()) if t]


def clean(value: object) -> str:
    """Coerce a possibly-missing field to a stripped string."""
    if value is None:
        return ""
    return str(value).strip()


def truncate(s: Optional[str], max_len: int = 200) -> str:
    s = s or ""
    if len(s) <= max_len:
        return s
    return s[: max_len - 1] + "…"


def trace_enabled(debug: bool = False) -> bool:
    return bool(debug or os.getenv("DEBUG_TRACE") == "1")


def _trace(enabled: bool, event: str, payload: dict) -> None:
    """
    Lightweight structured tracing to stderr.
    No-op when disabled.
    """
    if not enabled:
        return
    print(
        f"[trace] {event} {json.dumps(payload, ensure_ascii=False, default=str)}",
        file=sys.stderr,
    )
