from __future__ import annotations

from typing import Callable, List, Sequence

import pytest

from caption_refiner.config import ENV_API_BASE_URL, ENV_API_KEY, ENV_CONCURRENCY, ENV_MAX_PER_CHUNK, ENV_MODEL
from caption_refiner.segments import Segment

TRANSCRIPT_MARKER = "Transcript Chunk:\n"


def make_segments(texts: Sequence[str], step_ms: int = 2000) -> List[Segment]:
    return [
        Segment(text=text, start_time=i * step_ms, end_time=(i + 1) * step_ms)
        for i, text in enumerate(texts)
    ]


def chunk_lines(user_prompt: str) -> List[str]:
    """The ``[timestamp] text`` lines of a chunk prompt."""
    return user_prompt.split(TRANSCRIPT_MARKER, 1)[1].split("\n")


def echo_completion(transform: Callable[[str], str] = lambda line: line):
    """Fake ``complete`` that returns the chunk lines, each passed through ``transform``."""

    def complete(system_prompt: str, user_content: str, model: str | None = None) -> str:
        return "\n".join(transform(line) for line in chunk_lines(user_content))

    return complete


@pytest.fixture(autouse=True)
def _clean_refiner_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in (ENV_API_KEY, ENV_MODEL, ENV_API_BASE_URL, ENV_CONCURRENCY, ENV_MAX_PER_CHUNK):
        monkeypatch.delenv(name, raising=False)


def boundary_at_22_segments() -> List[Segment]:
    """65 segments whose 50% duration point falls inside segment 22."""
    segments = [Segment(text=f"s{i}", start_time=i * 1000, end_time=(i + 1) * 1000) for i in range(23)]
    start = 23000
    for i in range(23, 64):
        segments.append(Segment(text=f"s{i}", start_time=start, end_time=start + 500))
        start += 500
    segments.append(Segment(text="s64", start_time=start, end_time=45000))
    return segments
