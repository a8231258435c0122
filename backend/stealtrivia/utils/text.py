from __future__ import annotations

import re


NAME_MAX_LEN = 10


def normalize_text(text: str) -> str:
    t = (text or "").strip().lower()
    t = re.sub(r"\s+", "", t)
    t = re.sub(r"[^0-9a-z\u00c0-\u024f\u4e00-\u9fff]", "", t)
    return t


def validate_name(name: str) -> bool:
    n = (name or "").strip()
    if not n:
        return False
    if len(n) > NAME_MAX_LEN:
        return False
    # Avoid obvious HTML/script injection.
    if "<" in n or ">" in n:
        return False
    # No control characters.
    for ch in n:
        if ord(ch) < 32:
            return False
    return True


def clean_text(raw, max_len: int) -> str | None:
    """Trimmed text, or None when empty or longer than ``max_len``."""
    if not isinstance(raw, str):
        return None
    t = raw.strip()
    if not t or len(t) > max_len:
        return None
    return t
