"""
segments.py

Transcript segment model and JSON loading/saving helpers. Segments are the
timestamped lines the rest of the application renders; every refinement step
produces new Segment instances and never mutates its input.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, NamedTuple, Sequence

logger = logging.getLogger(__name__)


class TranscriptFormatError(ValueError):
    """Raised when a transcript file or payload cannot be read as segments."""


def _as_ms(value: Any) -> float:
    # integral values come back as int
    number = float(value)
    return int(number) if number.is_integer() else number


@dataclass(frozen=True)
class Segment:
    """One timestamped transcript line. Times are in milliseconds."""

    text: str
    start_time: float
    end_time: float
    start_time_text: str | None = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Segment":
        """Build a segment from either the camelCase wire shape or startMs/endMs."""

        if not isinstance(data, dict):
            raise TranscriptFormatError(f"Segment entry must be an object, got {type(data).__name__}")

        start = data.get("startTime", data.get("startMs"))
        end = data.get("endTime", data.get("endMs"))
        if start is None or end is None:
            raise TranscriptFormatError(f"Segment entry is missing start/end times: {data!r}")

        try:
            start_val = _as_ms(start)
            end_val = _as_ms(end)
        except (TypeError, ValueError) as exc:
            raise TranscriptFormatError(f"Segment times must be numeric: {data!r}") from exc

        start_text = data.get("startTimeText")
        return cls(
            text=str(data.get("text") or ""),
            start_time=start_val,
            end_time=end_val,
            start_time_text=str(start_text) if start_text else None,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "text": self.text,
            "startTime": self.start_time,
            "endTime": self.end_time,
            "startTimeText": self.start_time_text,
        }


class ChunkRange(NamedTuple):
    """Half-open index interval [start, end) over a segment list."""

    start: int
    end: int

    @property
    def size(self) -> int:
        return self.end - self.start


@dataclass
class Transcript:
    """Segments plus the video metadata used to build prompts."""

    segments: List[Segment]
    title: str = ""
    description: str = ""
    duration_ms: float | None = None


def format_timestamp(ms: float) -> str:
    """Render milliseconds as M:SS (minutes are not wrapped into hours)."""

    total_seconds = int(ms // 1000)
    minutes, seconds = divmod(max(total_seconds, 0), 60)
    return f"{minutes}:{seconds:02d}"


def segment_timestamp(segment: Segment) -> str:
    return segment.start_time_text or format_timestamp(segment.start_time)


def transcript_duration_ms(segments: Sequence[Segment]) -> float:
    """Duration implied by the transcript itself: the last segment's end time."""

    if not segments:
        return 0.0
    return float(segments[-1].end_time)


def parse_transcript_payload(payload: Any) -> Transcript:
    """Coerce a decoded JSON payload into a Transcript.

    Accepts either a bare list of segment objects or a scrape-API style object
    with ``transcript`` plus optional ``title``, ``description`` and
    ``duration`` (seconds).
    """

    if isinstance(payload, list):
        raw_segments = payload
        meta: Dict[str, Any] = {}
    elif isinstance(payload, dict):
        raw_segments = payload.get("transcript", payload.get("segments"))
        meta = payload
        if not isinstance(raw_segments, list):
            raise TranscriptFormatError("Transcript object must contain a 'transcript' or 'segments' list.")
    else:
        raise TranscriptFormatError("Transcript JSON must be a list or an object.")

    segments = [Segment.from_dict(item) for item in raw_segments]

    duration_ms: float | None = None
    duration = meta.get("duration")
    if duration:
        try:
            duration_ms = float(duration) * 1000
        except (TypeError, ValueError):
            logger.warning("Ignoring non-numeric duration %r", duration)

    return Transcript(
        segments=segments,
        title=str(meta.get("title") or ""),
        description=str(meta.get("description") or ""),
        duration_ms=duration_ms,
    )


def load_transcript(path: Path) -> Transcript:
    """Load a transcript JSON file from disk."""

    if not path.exists():
        raise TranscriptFormatError(f"Transcript file not found at '{path}'")

    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise TranscriptFormatError(f"Failed to parse transcript JSON '{path}': {exc}") from exc

    transcript = parse_transcript_payload(payload)
    logger.info("Loaded %s segments from %s", len(transcript.segments), path)
    return transcript


def dump_segments(segments: Sequence[Segment]) -> str:
    return json.dumps([seg.to_dict() for seg in segments], indent=2, ensure_ascii=False)


__all__ = [
    "ChunkRange",
    "Segment",
    "Transcript",
    "TranscriptFormatError",
    "dump_segments",
    "format_timestamp",
    "load_transcript",
    "parse_transcript_payload",
    "segment_timestamp",
    "transcript_duration_ms",
]
