"""
parser.py

Turn raw model output back into segments. Chunked output is split on the
sentinel, each block is cleaned into lines and aligned against the segments of
the range it was produced from; unchunked output is aligned in one pass.
"""

from __future__ import annotations

import logging
import re
from dataclasses import replace
from typing import Final, List, Sequence

from .aligner import align_segments
from .chunker import MAX_SEGMENTS_PER_CHUNK, chunk_segments_by_count
from .segments import ChunkRange, Segment

logger = logging.getLogger(__name__)

CHUNK_SENTINEL: Final[str] = "<<<__CHUNK_END__>>>"

WHITESPACE_PATTERN: Final[re.Pattern[str]] = re.compile(r"\s+")
TIMESTAMP_TAG_PATTERN: Final[re.Pattern[str]] = re.compile(r"^\[[^\]]+\]\s*(.*)$")
LINE_ENDING_PATTERN: Final[re.Pattern[str]] = re.compile(r"\r\n?")


def collapse_whitespace(text: str) -> str:
    return WHITESPACE_PATTERN.sub(" ", text or "")


def remove_sentinel(text: str, sentinel: str = CHUNK_SENTINEL) -> str:
    return text.replace(sentinel, "") if sentinel in text else text


def strip_sentinel_from_segments(
    segments: Sequence[Segment],
    sentinel: str = CHUNK_SENTINEL,
) -> List[Segment]:
    """Copy of ``segments`` with the reserved sentinel removed from every text."""
    cleaned: List[Segment] = []
    stripped = 0
    for segment in segments:
        if sentinel in segment.text:
            stripped += 1
            segment = replace(segment, text=collapse_whitespace(remove_sentinel(segment.text, sentinel)).strip())
        cleaned.append(segment)
    if stripped:
        logger.warning("Removed reserved chunk sentinel from %s transcript segment(s)", stripped)
    return cleaned


def normalize_line_to_text(line: str) -> str:
    """Collapse whitespace and drop a leading ``[timestamp]`` tag."""
    normalized = collapse_whitespace(line).strip()
    match = TIMESTAMP_TAG_PATTERN.match(normalized)
    return match.group(1).strip() if match else normalized


def block_to_lines(block: str) -> List[str]:
    """Split one refined block into non-empty, tag-free lines."""
    lines = [collapse_whitespace(line) for line in block.strip().split("\n") if line.strip()]
    return [text for text in (normalize_line_to_text(line) for line in lines) if text]


def _warn_on_mismatch(label: str, expected: int, received: int) -> None:
    if expected != received:
        logger.warning("%s: expected %s lines, got %s", label, expected, received)


def parse_refined_ranges(
    blocks: Sequence[str],
    original_segments: Sequence[Segment],
    ranges: Sequence[ChunkRange],
) -> List[Segment]:
    """Align ``blocks[i]`` against the segments of ``ranges[i]`` and concatenate.

    Missing blocks count as empty, so their segments keep the original text.
    """

    final_segments: List[Segment] = []
    total = len(ranges)
    for idx, chunk_range in enumerate(ranges):
        block = blocks[idx] if idx < len(blocks) else ""
        original_chunk = original_segments[chunk_range.start : chunk_range.end]
        refined_lines = block_to_lines(block)
        _warn_on_mismatch(f"Parser chunk {idx + 1}/{total}", len(original_chunk), len(refined_lines))
        final_segments.extend(align_segments(original_chunk, refined_lines, apply_tail_guard=True))
    return final_segments


def _parse_with_chunks(
    refined_text: str,
    original_segments: Sequence[Segment],
    sentinel: str,
    max_per_chunk: int,
    ranges: Sequence[ChunkRange] | None,
) -> List[Segment]:
    blocks = refined_text.split(sentinel)
    if ranges is None:
        ranges = chunk_segments_by_count(original_segments, max_per_chunk)
    return parse_refined_ranges(blocks, original_segments, ranges)


def _parse_global(refined_text: str, original_segments: Sequence[Segment]) -> List[Segment]:
    text = LINE_ENDING_PATTERN.sub("\n", refined_text).strip()
    refined_lines = [line for line in (normalize_line_to_text(raw) for raw in text.split("\n")) if line.strip()]
    _warn_on_mismatch("Parser", len(original_segments), len(refined_lines))
    return align_segments(original_segments, refined_lines, apply_tail_guard=False)


def parse_refined_segments(
    refined_text: str,
    original_segments: Sequence[Segment],
    sentinel: str = CHUNK_SENTINEL,
    max_per_chunk: int = MAX_SEGMENTS_PER_CHUNK,
    ranges: Sequence[ChunkRange] | None = None,
) -> List[Segment]:
    """Parse refined model output back into timestamped segments.

    Args:
        refined_text: Raw output, optionally with chunk blocks joined by ``sentinel``.
        original_segments: The segments the output was produced from.
        sentinel: Reserved chunk delimiter.
        max_per_chunk: Chunk size the output was produced with.
        ranges: Ranges the blocks were produced from. Defaults to plain
            count-based chunking with ``max_per_chunk``; pass the dispatched
            ranges when a priority split was used.

    Returns:
        One segment per original segment, in the original order.
    """

    if not refined_text:
        return []

    if sentinel in refined_text:
        return _parse_with_chunks(refined_text, original_segments, sentinel, max_per_chunk, ranges)
    return _parse_global(refined_text, original_segments)


__all__ = [
    "CHUNK_SENTINEL",
    "block_to_lines",
    "collapse_whitespace",
    "normalize_line_to_text",
    "parse_refined_ranges",
    "parse_refined_segments",
    "remove_sentinel",
    "strip_sentinel_from_segments",
]
