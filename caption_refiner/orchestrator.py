"""
Coordinate transcript refinement end to end.

Splits the transcript into priority and standard chunks, dispatches every
chunk to the completion endpoint, joins the returned blocks with the chunk
sentinel, and aligns them back onto the original segments. The result always
has the input's length, order and timestamps.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Callable, List, Sequence

from .chunker import MAX_SEGMENTS_PER_CHUNK, split_priority
from .config import DEFAULT_CONCURRENCY, RefinerConfig, load_refiner_config
from .dispatcher import CompleteFn, ProgressCallback, RefinementDispatcher
from .model_client import ModelClient
from .parser import CHUNK_SENTINEL, parse_refined_segments, strip_sentinel_from_segments
from .prompts import PreambleBuilder, build_user_preamble
from .segments import Segment, Transcript

logger = logging.getLogger(__name__)

PrioritySegmentsCallback = Callable[[List[Segment]], None]


def join_chunk_texts(texts: Sequence[str], sentinel: str = CHUNK_SENTINEL) -> str:
    """Join chunk texts, terminating each one with the sentinel on its own line."""

    return "\n".join(f"{text}\n{sentinel}" for text in texts)


def refine_transcript(
    segments: Sequence[Segment],
    title: str,
    description: str,
    complete: CompleteFn,
    *,
    model: str | None = None,
    preamble_builder: PreambleBuilder = build_user_preamble,
    concurrency: int = DEFAULT_CONCURRENCY,
    max_per_chunk: int = MAX_SEGMENTS_PER_CHUNK,
    on_priority: PrioritySegmentsCallback | None = None,
    on_progress: ProgressCallback | None = None,
    cancel_event: threading.Event | None = None,
    duration_ms: float | None = None,
) -> List[Segment]:
    """Refine ``segments`` through ``complete`` and realign the corrected text.

    Args:
        segments: Original transcript segments, ordered by start time.
        title: Video title used as prompt context.
        description: Video description used as prompt context.
        complete: Callable ``(system_prompt, user_content, model) -> text``.
        model: Model identifier forwarded to ``complete``.
        preamble_builder: Builds the user-prompt preamble from title/description.
        concurrency: Maximum concurrent completion calls.
        max_per_chunk: Maximum segments per chunk.
        on_priority: Called once with the aligned priority segments.
        on_progress: Called with ``(completed, total)`` chunk counts.
        cancel_event: Stops starting new chunks once set.
        duration_ms: Video duration; defaults to the last segment's end time.

    Returns:
        New segments, one per input segment, in input order.
    """

    if not segments:
        return []

    segments = strip_sentinel_from_segments(segments, CHUNK_SENTINEL)
    start = time.time()
    split = split_priority(segments, max_per_chunk, duration_ms=duration_ms)
    priority_segments = list(segments[: split.split_index])
    logger.info(
        "Refining %s segments in %s chunks (priority: %s chunks / %s segments, window %.0fs)",
        len(segments),
        len(split.ranges),
        split.priority_range_count,
        split.split_index,
        split.window_ms / 1000,
    )

    def _handle_priority_text(priority_text: str) -> None:
        # Priority texts arrive newline-joined, so the preview is aligned in
        # one global pass over the priority sub-list.
        partial = parse_refined_segments(priority_text, priority_segments, sentinel=CHUNK_SENTINEL)
        if len(partial) != len(priority_segments):
            partial = list(priority_segments)
        logger.debug("Priority preview ready: %s segments", len(partial))
        on_priority(partial)

    dispatcher = RefinementDispatcher(
        complete,
        model=model,
        sentinel=CHUNK_SENTINEL,
        on_priority=_handle_priority_text if on_priority is not None else None,
        on_progress=on_progress,
        cancel_event=cancel_event,
    )
    chunk_texts = dispatcher.dispatch(
        split.ranges,
        segments,
        preamble_builder(title, description),
        concurrency=concurrency,
        priority_count=split.priority_range_count,
    )

    refined = parse_refined_segments(
        join_chunk_texts(chunk_texts),
        segments,
        sentinel=CHUNK_SENTINEL,
        max_per_chunk=max_per_chunk,
        ranges=split.ranges,
    )
    logger.info("Refinement finished in %.2fs", time.time() - start)
    return refined


@dataclass
class CaptionRefiner:
    """Bundle a resolved configuration with a completion client.

    ``complete`` defaults to ``ModelClient(config).complete``; pass any
    callable of the same shape to use another backend.
    """

    config: RefinerConfig = field(default_factory=load_refiner_config)
    complete: CompleteFn | None = None
    preamble_builder: PreambleBuilder = build_user_preamble

    def __post_init__(self) -> None:
        self.config.validate()
        if self.complete is None:
            self.complete = ModelClient(self.config).complete
        self._complete: CompleteFn = self.complete

    def refine(
        self,
        segments: Sequence[Segment],
        title: str = "",
        description: str = "",
        *,
        on_priority: PrioritySegmentsCallback | None = None,
        on_progress: ProgressCallback | None = None,
        cancel_event: threading.Event | None = None,
        duration_ms: float | None = None,
    ) -> List[Segment]:
        return refine_transcript(
            segments,
            title,
            description,
            self._complete,
            model=self.config.model,
            preamble_builder=self.preamble_builder,
            concurrency=self.config.concurrency,
            max_per_chunk=self.config.max_per_chunk,
            on_priority=on_priority,
            on_progress=on_progress,
            cancel_event=cancel_event,
            duration_ms=duration_ms,
        )

    def refine_transcript(self, transcript: Transcript, **kwargs) -> List[Segment]:
        """Refine a loaded Transcript, using its metadata for prompt context."""

        kwargs.setdefault("duration_ms", transcript.duration_ms)
        return self.refine(transcript.segments, transcript.title, transcript.description, **kwargs)


__all__ = [
    "CaptionRefiner",
    "join_chunk_texts",
    "refine_transcript",
]
