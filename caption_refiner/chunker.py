"""
chunker.py

Greedy count-based chunking of a segment list, plus the priority split that
lets the leading minutes of a video be refined and reported before the rest.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Sequence

from .segments import ChunkRange, Segment, transcript_duration_ms

logger = logging.getLogger(__name__)

MAX_SEGMENTS_PER_CHUNK = 30
PRIORITY_WINDOW_CAP_MS = 5 * 60 * 1000
PRIORITY_WINDOW_FRACTION = 0.5


@dataclass(frozen=True)
class PrioritySplit:
    """Chunk ranges with the leading priority ranges counted.

    Attributes:
        ranges: All ranges, priority ranges first, partitioning the segment list.
        priority_range_count: Number of leading ranges that belong to the window.
        split_index: Number of segments in the priority sub-list.
        window_ms: Priority window length in milliseconds.
    """

    ranges: List[ChunkRange]
    priority_range_count: int
    split_index: int
    window_ms: float

    @property
    def standard_range_count(self) -> int:
        return len(self.ranges) - self.priority_range_count


def chunk_segments_by_count(
    segments: Sequence[Segment],
    max_per_chunk: int = MAX_SEGMENTS_PER_CHUNK,
) -> List[ChunkRange]:
    """Slice ``segments`` left to right into ranges of at most ``max_per_chunk``."""

    if max_per_chunk < 1:
        raise ValueError(f"max_per_chunk must be >= 1, got {max_per_chunk}")

    ranges: List[ChunkRange] = []
    total = len(segments)
    start = 0
    while start < total:
        end = min(start + max_per_chunk, total)
        ranges.append(ChunkRange(start, end))
        start = end
    return ranges


def priority_window_ms(duration_ms: float) -> float:
    return min(PRIORITY_WINDOW_CAP_MS, PRIORITY_WINDOW_FRACTION * duration_ms)


def find_priority_split_index(segments: Sequence[Segment], window_ms: float) -> int:
    """Return the size of the priority sub-list.

    The first segment ending past the window is included; if none does, the
    whole list is priority.
    """

    for idx, segment in enumerate(segments):
        if segment.end_time > window_ms:
            return idx + 1
    return len(segments)


def split_priority(
    segments: Sequence[Segment],
    max_per_chunk: int = MAX_SEGMENTS_PER_CHUNK,
    duration_ms: float | None = None,
) -> PrioritySplit:
    """Chunk the priority and remaining segments independently and concatenate."""

    if duration_ms is None:
        duration_ms = transcript_duration_ms(segments)
    window_ms = priority_window_ms(duration_ms)
    split_index = find_priority_split_index(segments, window_ms)

    priority_ranges = chunk_segments_by_count(segments[:split_index], max_per_chunk)
    standard_ranges = [
        ChunkRange(start + split_index, end + split_index)
        for start, end in chunk_segments_by_count(segments[split_index:], max_per_chunk)
    ]

    logger.debug(
        "Priority window %.0fms covers %s/%s segments (%s priority ranges, %s standard)",
        window_ms,
        split_index,
        len(segments),
        len(priority_ranges),
        len(standard_ranges),
    )

    return PrioritySplit(
        ranges=priority_ranges + standard_ranges,
        priority_range_count=len(priority_ranges),
        split_index=split_index,
        window_ms=window_ms,
    )


__all__ = [
    "MAX_SEGMENTS_PER_CHUNK",
    "PrioritySplit",
    "chunk_segments_by_count",
    "find_priority_split_index",
    "priority_window_ms",
    "split_priority",
]
