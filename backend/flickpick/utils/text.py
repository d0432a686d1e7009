from __future__ import annotations

import re

WHITESPACE_RE = re.compile(r"\s+")


def normalize_code(value: str) -> str:
    """Session codes are typed by hand; compare them without spaces and case."""
    return WHITESPACE_RE.sub("", value or "").upper()


def normalize_nickname(value: str | None, default: str = "Guest") -> str:
    cleaned = WHITESPACE_RE.sub(" ", (value or "").strip())
    return cleaned or default
