"""Small text and file-type helpers used by the controllers."""

from __future__ import annotations

import re
from typing import Iterable

from .constants import WILDCARD_TYPE

_WHITESPACE = re.compile(r"\s+")
_SIZE_UNITS = ("Bytes", "KB", "MB", "GB")


def sanitize_input(value: str | None) -> str:
    """Trim the text and collapse internal whitespace runs to single spaces."""

    if not value:
        return ""
    return _WHITESPACE.sub(" ", value.strip())


def format_file_size(size: int) -> str:
    if size <= 0:
        return "0 Bytes"
    scaled = float(size)
    index = 0
    while scaled >= 1024 and index < len(_SIZE_UNITS) - 1:
        scaled /= 1024
        index += 1
    return f"{round(scaled, 2):g} {_SIZE_UNITS[index]}"


def matches_allowed_type(content_type: str, allowed_types: Iterable[str]) -> bool:
    """Return True when ``content_type`` is accepted by one of the patterns.

    ``*/*`` accepts everything, ``image/*`` accepts any ``image/`` subtype and
    any other entry must match exactly.
    """

    patterns = list(allowed_types)
    if WILDCARD_TYPE in patterns:
        return True
    lowered = (content_type or "").lower()
    for pattern in patterns:
        pattern = pattern.lower()
        if pattern.endswith("/*"):
            if lowered.startswith(pattern[:-1]):
                return True
        elif lowered == pattern:
            return True
    return False
