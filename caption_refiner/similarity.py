"""Line similarity scoring used by the DP aligner."""

from __future__ import annotations

import re
from typing import Final

TOKEN_PATTERN: Final[re.Pattern[str]] = re.compile(r"[a-z0-9']+", re.IGNORECASE)

CHAR_WEIGHT: Final[float] = 0.7
TOKEN_WEIGHT: Final[float] = 0.3


def char_similarity(a: str, b: str) -> float:
    """Share of the shorter string's characters found in the longer string's character set."""
    longer, shorter = (a, b) if len(a) > len(b) else (b, a)
    if not longer:
        return 1.0
    longer_chars = set(longer)
    matches = sum(1 for char in shorter if char in longer_chars)
    return matches / len(longer)


def token_jaccard(a: str, b: str) -> float:
    a_tokens = set(TOKEN_PATTERN.findall(a.lower()))
    b_tokens = set(TOKEN_PATTERN.findall(b.lower()))
    union = a_tokens | b_tokens
    if not union:
        return 0.0
    return len(a_tokens & b_tokens) / len(union)


def line_similarity(a: str, b: str) -> float:
    """Blend of character (70%) and token (30%) similarity, in [0, 1]."""
    if not a or not b:
        return 0.0
    return CHAR_WEIGHT * char_similarity(a, b) + TOKEN_WEIGHT * token_jaccard(a, b)


__all__ = ["char_similarity", "token_jaccard", "line_similarity"]
