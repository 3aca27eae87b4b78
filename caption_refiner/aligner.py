"""
aligner.py

Dynamic-programming alignment of original transcript segments to the lines a
model returned. The model may drop, split, merge or invent lines; the aligner
finds the highest scoring monotonic pairing and falls back to the original
text wherever no confident pairing exists. Timestamps always come from the
original segments, so output cardinality and timing never change.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import List, Optional, Sequence

from .segments import Segment
from .similarity import line_similarity

logger = logging.getLogger(__name__)

GAP_PENALTY = -0.5
TAIL_GUARD_SIZE = 3
LENGTH_TOLERANCE = 0.5

# Backpointers. Candidate order below fixes the tie-break: match, then
# original-only, then refined-only.
MATCH = "M"
SKIP_ORIGINAL = "O"
SKIP_REFINED = "R"


def build_alignment_mapping(
    original_texts: Sequence[str],
    refined_lines: Sequence[str],
) -> List[Optional[int]]:
    """Map each original index to a refined line index, or None when unmapped."""

    n_orig = len(original_texts)
    n_ref = len(refined_lines)
    if n_orig == 0:
        return []

    dp = [[float("-inf")] * (n_ref + 1) for _ in range(n_orig + 1)]
    back: List[List[Optional[str]]] = [[None] * (n_ref + 1) for _ in range(n_orig + 1)]
    dp[0][0] = 0.0
    for i in range(1, n_orig + 1):
        dp[i][0] = dp[i - 1][0] + GAP_PENALTY
        back[i][0] = SKIP_ORIGINAL
    for j in range(1, n_ref + 1):
        dp[0][j] = dp[0][j - 1] + GAP_PENALTY
        back[0][j] = SKIP_REFINED

    for i in range(1, n_orig + 1):
        orig_text = original_texts[i - 1]
        for j in range(1, n_ref + 1):
            best_score = dp[i - 1][j - 1] + line_similarity(orig_text, refined_lines[j - 1])
            best_ptr = MATCH
            skip_orig = dp[i - 1][j] + GAP_PENALTY
            if skip_orig > best_score:
                best_score, best_ptr = skip_orig, SKIP_ORIGINAL
            skip_ref = dp[i][j - 1] + GAP_PENALTY
            if skip_ref > best_score:
                best_score, best_ptr = skip_ref, SKIP_REFINED
            dp[i][j] = best_score
            back[i][j] = best_ptr

    mapping: List[Optional[int]] = [None] * n_orig
    i, j = n_orig, n_ref
    while i > 0 or j > 0:
        ptr = back[i][j]
        if ptr == MATCH and i > 0 and j > 0:
            mapping[i - 1] = j - 1
            i -= 1
            j -= 1
        elif ptr == SKIP_REFINED and j > 0:
            j -= 1
        elif i > 0:
            mapping[i - 1] = None
            i -= 1
        else:
            j -= 1

    return mapping


def _exceeds_length_tolerance(replacement: str, original: str) -> bool:
    original_len = len(original) or 1
    return abs(len(replacement) - original_len) / original_len > LENGTH_TOLERANCE


def clamp_overlaps(segments: List[Segment]) -> List[Segment]:
    """Pull each end time back to the next segment's start when they overlap."""

    for idx in range(len(segments) - 1):
        next_start = segments[idx + 1].start_time
        if segments[idx].end_time > next_start:
            segments[idx] = replace(segments[idx], end_time=next_start)
    return segments


def align_segments(
    original: Sequence[Segment],
    refined_lines: Sequence[str],
    apply_tail_guard: bool = False,
) -> List[Segment]:
    """Return one new segment per original, carrying refined text where aligned.

    With ``apply_tail_guard`` the last few segments revert to their original
    text when the replacement length differs by more than the tolerance; this
    catches lines pulled in from a neighbouring chunk.
    """

    mapping = build_alignment_mapping([seg.text for seg in original], refined_lines)
    n_orig = len(original)
    tail_start = n_orig - TAIL_GUARD_SIZE if apply_tail_guard else n_orig + 1

    aligned: List[Segment] = []
    unmapped = 0
    for idx, (segment, ref_idx) in enumerate(zip(original, mapping)):
        if ref_idx is None:
            unmapped += 1
            text = segment.text
        else:
            text = refined_lines[ref_idx]

        if idx >= tail_start and text and _exceeds_length_tolerance(text, segment.text):
            logger.debug("Tail guard reverted segment %s: %r -> %r", idx, segment.text, text)
            text = segment.text

        aligned.append(
            Segment(
                text=text or segment.text,
                start_time=segment.start_time,
                end_time=segment.end_time,
                start_time_text=segment.start_time_text,
            )
        )

    if unmapped:
        logger.debug("%s/%s segments kept original text (unmapped)", unmapped, n_orig)

    return clamp_overlaps(aligned)


__all__ = [
    "GAP_PENALTY",
    "LENGTH_TOLERANCE",
    "TAIL_GUARD_SIZE",
    "align_segments",
    "build_alignment_mapping",
    "clamp_overlaps",
]
