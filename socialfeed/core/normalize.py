from __future__ import annotations

import re
from typing import Any, Optional

from fastapi import HTTPException

_DIGITS = re.compile(r"\d+", re.ASCII)


def normalize_email(s: str) -> str:
    s = (s or "").strip().lower()
    if "@" not in s or len(s) > 254:
        raise HTTPException(400, "Invalid email")
    return s


def email_local_part(email: Optional[str], default: str = "User") -> str:
    if not email:
        return default
    local = email.split("@", 1)[0].strip()
    return local or default


def is_numeric_id(value: Any) -> bool:
    return isinstance(value, str) and _DIGITS.fullmatch(value) is not None


def _parse_id(value: Any, message: str) -> int:
    # Surrounding whitespace is tolerated; signs, underscores and other int() spellings are not.
    text = "" if value is None else str(value).strip()
    if _DIGITS.fullmatch(text) is None:
        raise HTTPException(400, message)
    return int(text)


def parse_post_id(value: str) -> int:
    return _parse_id(value, "Invalid postId. Must be a number.")


def parse_comment_id(value: str) -> int:
    return _parse_id(value, "Invalid commentId. Must be a number.")


def lenient_limit(value: Optional[str], default: int, maximum: int) -> int:
    """Parse a limit the forgiving way: junk or non-positive falls back to default."""
    try:
        limit = int(value) if value is not None else default
    except (TypeError, ValueError):
        return default
    if limit <= 0:
        return default
    return min(limit, maximum)


def require_search_query(q: Optional[str]) -> str:
    q = (q or "").strip()
    if not q:
        raise HTTPException(400, "Search query is required")
    return q


def valid_post_id(post_id: str) -> int:
    """Path dependency for /posts/{post_id}; listed first so a bad id fails before auth or store access."""
    return parse_post_id(post_id)


def valid_comment_id(comment_id: str) -> int:
    return parse_comment_id(comment_id)
