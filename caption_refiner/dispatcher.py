"""
dispatcher.py

Concurrent dispatch of transcript chunks to a completion endpoint. A fixed
pool of workers drains one shared FIFO job queue; each worker makes one call
at a time and stores the result by chunk index, so output order never depends
on completion order. Once every priority chunk has finished, a one-shot
callback receives their combined text for early display.
"""

from __future__ import annotations

import logging
import queue
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Sequence

from .parser import CHUNK_SENTINEL, remove_sentinel
from .prompts import SYSTEM_PROMPT, build_chunk_prompt, format_transcript_segments
from .segments import ChunkRange, Segment

logger = logging.getLogger(__name__)

CompleteFn = Callable[[str, str, Optional[str]], str]
PriorityTextCallback = Callable[[str], None]
ProgressCallback = Callable[[int, int], None]


@dataclass(frozen=True)
class ChunkJob:
    """One queued request: prompt plus the text to fall back on."""

    index: int
    chunk_range: ChunkRange
    user_prompt: str
    fallback_text: str


@dataclass
class _DispatchState:
    """Shared per-run state; every mutation happens under ``lock``."""

    results: List[Optional[str]]
    priority_count: int
    lock: threading.Lock = field(default_factory=threading.Lock)
    completed: int = 0
    completed_priority: int = 0
    priority_fired: bool = False


class RefinementDispatcher:
    """Runs chunk prompts through ``complete`` with a bounded worker pool.

    Args:
        complete: Callable ``(system_prompt, user_content, model) -> text``.
        model: Model identifier passed through to ``complete``.
        system_prompt: Fixed correction instructions.
        sentinel: Reserved chunk delimiter scrubbed from every result.
        on_priority: Called once with the priority chunks' joined text.
        on_progress: Called with ``(completed, total)`` after each chunk.
        cancel_event: When set, jobs not yet started keep their original text.
    """

    def __init__(
        self,
        complete: CompleteFn,
        *,
        model: str | None = None,
        system_prompt: str = SYSTEM_PROMPT,
        sentinel: str = CHUNK_SENTINEL,
        on_priority: PriorityTextCallback | None = None,
        on_progress: ProgressCallback | None = None,
        cancel_event: threading.Event | None = None,
    ) -> None:
        self._complete = complete
        self.model = model
        self.system_prompt = system_prompt
        self.sentinel = sentinel
        self.on_priority = on_priority
        self.on_progress = on_progress
        self.cancel_event = cancel_event

    def build_jobs(
        self,
        chunk_ranges: Sequence[ChunkRange],
        segments: Sequence[Segment],
        preamble: str,
    ) -> List[ChunkJob]:
        jobs: List[ChunkJob] = []
        for index, chunk_range in enumerate(chunk_ranges):
            chunk_segments = segments[chunk_range.start : chunk_range.end]
            jobs.append(
                ChunkJob(
                    index=index,
                    chunk_range=chunk_range,
                    user_prompt=build_chunk_prompt(preamble, chunk_segments),
                    fallback_text=remove_sentinel(format_transcript_segments(chunk_segments), self.sentinel),
                )
            )
        return jobs

    def dispatch(
        self,
        chunk_ranges: Sequence[ChunkRange],
        segments: Sequence[Segment],
        preamble: str,
        concurrency: int = 8,
        priority_count: int = 0,
    ) -> List[str]:
        """Refine every chunk and return texts indexed like ``chunk_ranges``."""

        jobs = self.build_jobs(chunk_ranges, segments, preamble)
        if not jobs:
            return []

        job_queue: "queue.Queue[ChunkJob]" = queue.Queue()
        for job in jobs:
            job_queue.put(job)

        state = _DispatchState(
            results=[None] * len(jobs),
            priority_count=max(0, min(priority_count, len(jobs))),
        )
        worker_count = max(1, min(concurrency, len(jobs)))
        logger.info(
            "Dispatching %s chunks (%s priority) with %s workers",
            len(jobs),
            state.priority_count,
            worker_count,
        )

        start = time.time()
        with ThreadPoolExecutor(max_workers=worker_count, thread_name_prefix="refine-worker") as executor:
            futures = [executor.submit(self._worker, job_queue, state, start) for _ in range(worker_count)]
            for future in futures:
                future.result()

        logger.info("Dispatch finished in %.2fs", time.time() - start)
        return [text if text is not None else job.fallback_text for text, job in zip(state.results, jobs)]

    def _worker(self, job_queue: "queue.Queue[ChunkJob]", state: _DispatchState, start: float) -> None:
        while True:
            try:
                job = job_queue.get_nowait()
            except queue.Empty:
                return

            if self.cancel_event is not None and self.cancel_event.is_set():
                logger.debug("Dispatch cancelled; chunk %s keeps original text", job.index + 1)
                continue

            self._run_job(job, state, start)

    def _run_job(self, job: ChunkJob, state: _DispatchState, start: float) -> None:
        is_priority = job.index < state.priority_count
        label = "[PRIORITY]" if is_priority else "[STANDARD]"
        total = len(state.results)

        try:
            raw_text = self._complete(self.system_prompt, job.user_prompt, self.model)
            text = self._scrub(raw_text)
            if not text:
                raise ValueError("completion returned no text")
            logger.info("%s Refined chunk %s/%s (%s lines)", label, job.index + 1, total, job.chunk_range.size)
        except Exception as exc:  # noqa: BLE001
            logger.warning("%s Chunk %s/%s failed, keeping original text: %s", label, job.index + 1, total, exc)
            text = job.fallback_text

        priority_text: str | None = None
        with state.lock:
            state.results[job.index] = text
            state.completed += 1
            completed = state.completed
            if is_priority:
                state.completed_priority += 1
                if not state.priority_fired and state.completed_priority == state.priority_count:
                    state.priority_fired = True
                    priority_text = "\n".join(t or "" for t in state.results[: state.priority_count])

        if priority_text is not None:
            logger.info("Priority chunks completed after %.2fs", time.time() - start)
            self._notify(self.on_priority, priority_text)
        self._notify(self.on_progress, completed, total)

    def _scrub(self, text: str) -> str:
        if self.sentinel in text:
            logger.warning("Removed reserved chunk sentinel from model output")
            text = remove_sentinel(text, self.sentinel)
        return text.strip()

    @staticmethod
    def _notify(callback: Callable[..., None] | None, *args: object) -> None:
        if callback is None:
            return
        try:
            callback(*args)
        except Exception:  # noqa: BLE001
            logger.exception("Refinement callback %r raised", callback)


__all__ = [
    "ChunkJob",
    "CompleteFn",
    "RefinementDispatcher",
]
