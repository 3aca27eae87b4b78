from __future__ import annotations

import logging
import threading
import time
from typing import List

import pytest

from caption_refiner.chunker import chunk_segments_by_count
from caption_refiner.dispatcher import RefinementDispatcher
from caption_refiner.parser import CHUNK_SENTINEL
from caption_refiner.prompts import SYSTEM_PROMPT, build_user_preamble, format_transcript_segments
from caption_refiner.segments import ChunkRange

from conftest import chunk_lines, echo_completion, make_segments

PREAMBLE = build_user_preamble("Title", "Description")


def _segments(count: int):
    return make_segments([f"segment number {i}" for i in range(count)])


def _chunk_index(user_prompt: str, size: int) -> int:
    first_line = chunk_lines(user_prompt)[0]
    return int(first_line.rsplit(" ", 1)[1]) // size


def test_results_are_ordered_by_chunk_index_not_completion() -> None:
    segments = _segments(9)
    ranges = chunk_segments_by_count(segments, 3)

    def complete(system_prompt: str, user_content: str, model: str | None = None) -> str:
        idx = _chunk_index(user_content, 3)
        time.sleep(0.05 * (2 - idx))
        return f"chunk {idx}"

    results = RefinementDispatcher(complete).dispatch(ranges, segments, PREAMBLE, concurrency=3)

    assert results == ["chunk 0", "chunk 1", "chunk 2"]


def test_prompts_carry_system_prompt_preamble_and_model() -> None:
    segments = _segments(2)
    seen: List[tuple] = []

    def complete(system_prompt: str, user_content: str, model: str | None = None) -> str:
        seen.append((system_prompt, user_content, model))
        return "ok"

    RefinementDispatcher(complete, model="test/model").dispatch(
        [ChunkRange(0, 2)], segments, PREAMBLE, concurrency=1
    )

    system_prompt, user_content, model = seen[0]
    assert system_prompt == SYSTEM_PROMPT
    assert model == "test/model"
    assert user_content == f"{PREAMBLE}\n[0:00] segment number 0\n[0:02] segment number 1"


def test_failed_chunk_keeps_original_text(caplog: pytest.LogCaptureFixture) -> None:
    segments = _segments(6)
    ranges = chunk_segments_by_count(segments, 2)

    def complete(system_prompt: str, user_content: str, model: str | None = None) -> str:
        if _chunk_index(user_content, 2) == 1:
            raise RuntimeError("HTTP 502")
        return "refined"

    with caplog.at_level(logging.WARNING, logger="caption_refiner.dispatcher"):
        results = RefinementDispatcher(complete).dispatch(ranges, segments, PREAMBLE, concurrency=2)

    assert results[0] == "refined"
    assert results[1] == format_transcript_segments(segments[2:4])
    assert results[2] == "refined"
    assert "HTTP 502" in caplog.text


def test_sentinel_is_scrubbed_from_results() -> None:
    segments = _segments(2)

    def complete(system_prompt: str, user_content: str, model: str | None = None) -> str:
        return f"line one\n{CHUNK_SENTINEL}\nline two"

    results = RefinementDispatcher(complete).dispatch([ChunkRange(0, 2)], segments, PREAMBLE)

    assert CHUNK_SENTINEL not in results[0]
    assert "line one" in results[0] and "line two" in results[0]


def test_worker_pool_respects_concurrency() -> None:
    segments = _segments(20)
    ranges = chunk_segments_by_count(segments, 2)
    lock = threading.Lock()
    active = 0
    peak = 0

    def complete(system_prompt: str, user_content: str, model: str | None = None) -> str:
        nonlocal active, peak
        with lock:
            active += 1
            peak = max(peak, active)
        time.sleep(0.02)
        with lock:
            active -= 1
        return "ok"

    results = RefinementDispatcher(complete).dispatch(ranges, segments, PREAMBLE, concurrency=3)

    assert len(results) == 10
    assert 1 <= peak <= 3


def test_priority_callback_fires_once_after_only_first_chunk() -> None:
    segments = _segments(65)
    ranges = chunk_segments_by_count(segments, 30)
    assert ranges == [ChunkRange(0, 30), ChunkRange(30, 60), ChunkRange(60, 65)]

    priority_done = threading.Event()
    returned: List[int] = []
    returned_lock = threading.Lock()
    calls: List[tuple] = []

    def complete(system_prompt: str, user_content: str, model: str | None = None) -> str:
        idx = _chunk_index(user_content, 30)
        if idx != 0:
            priority_done.wait(timeout=5)
        with returned_lock:
            returned.append(idx)
        return f"refined chunk {idx}"

    def on_priority(text: str) -> None:
        with returned_lock:
            calls.append((text, list(returned)))
        priority_done.set()

    results = RefinementDispatcher(complete, on_priority=on_priority).dispatch(
        ranges, segments, PREAMBLE, concurrency=2, priority_count=1
    )

    assert len(calls) == 1
    text, returned_at_fire = calls[0]
    assert text == "refined chunk 0"
    assert returned_at_fire == [0]
    assert results == ["refined chunk 0", "refined chunk 1", "refined chunk 2"]


def test_priority_callback_joins_all_priority_chunks_once() -> None:
    segments = _segments(12)
    ranges = chunk_segments_by_count(segments, 2)
    calls: List[str] = []

    def complete(system_prompt: str, user_content: str, model: str | None = None) -> str:
        time.sleep(0.005)
        return f"chunk {_chunk_index(user_content, 2)}"

    RefinementDispatcher(complete, on_priority=calls.append).dispatch(
        ranges, segments, PREAMBLE, concurrency=6, priority_count=3
    )

    assert calls == ["chunk 0\nchunk 1\nchunk 2"]


def test_no_priority_callback_without_priority_chunks() -> None:
    segments = _segments(4)
    calls: List[str] = []

    RefinementDispatcher(echo_completion(), on_priority=calls.append).dispatch(
        chunk_segments_by_count(segments, 2), segments, PREAMBLE, priority_count=0
    )

    assert calls == []


def test_callback_errors_do_not_abort_dispatch() -> None:
    segments = _segments(4)

    def on_priority(text: str) -> None:
        raise RuntimeError("display failed")

    results = RefinementDispatcher(echo_completion(), on_priority=on_priority).dispatch(
        chunk_segments_by_count(segments, 2), segments, PREAMBLE, priority_count=1
    )

    assert len(results) == 2


def test_progress_reports_every_chunk() -> None:
    segments = _segments(10)
    progress: List[tuple] = []
    lock = threading.Lock()

    def on_progress(done: int, total: int) -> None:
        with lock:
            progress.append((done, total))

    RefinementDispatcher(echo_completion(), on_progress=on_progress).dispatch(
        chunk_segments_by_count(segments, 3), segments, PREAMBLE, concurrency=2
    )

    assert sorted(progress) == [(1, 4), (2, 4), (3, 4), (4, 4)]


def test_cancelled_dispatch_keeps_original_text() -> None:
    segments = _segments(4)
    ranges = chunk_segments_by_count(segments, 2)
    cancel = threading.Event()
    cancel.set()
    called: List[str] = []

    def complete(system_prompt: str, user_content: str, model: str | None = None) -> str:
        called.append(user_content)
        return "refined"

    results = RefinementDispatcher(complete, cancel_event=cancel).dispatch(ranges, segments, PREAMBLE)

    assert called == []
    assert results == [format_transcript_segments(segments[0:2]), format_transcript_segments(segments[2:4])]


def test_empty_ranges_return_empty() -> None:
    assert RefinementDispatcher(echo_completion()).dispatch([], [], PREAMBLE) == []


def test_fallback_text_never_carries_the_sentinel() -> None:
    segments = make_segments(["plain line", f"quotes {CHUNK_SENTINEL} verbatim"])

    def complete(system_prompt: str, user_content: str, model: str | None = None) -> str:
        raise ConnectionError("endpoint unreachable")

    results = RefinementDispatcher(complete).dispatch([ChunkRange(0, 2)], segments, PREAMBLE)

    assert CHUNK_SENTINEL not in results[0]
    assert "quotes" in results[0] and "verbatim" in results[0]
