from __future__ import annotations

import json
from pathlib import Path

import pytest

from caption_refiner import cli
from caption_refiner.orchestrator import CaptionRefiner
from caption_refiner.segments import Segment, dump_segments

from conftest import echo_completion


def _write_transcript(path: Path, count: int = 12) -> None:
    segments = [Segment(f"teh line {i}", i * 1000, (i + 1) * 1000) for i in range(count)]
    path.write_text(dump_segments(segments), encoding="utf-8")


def test_refines_file_and_writes_priority_preview(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    source = tmp_path / "in.json"
    output = tmp_path / "out" / "refined.json"
    preview = tmp_path / "out" / "priority.json"
    _write_transcript(source)

    fake = echo_completion(lambda line: line.replace("teh", "the"))
    monkeypatch.setattr(cli, "CaptionRefiner", lambda config: CaptionRefiner(config=config, complete=fake))

    exit_code = cli.main(
        [str(source), "--output", str(output), "--priority-output", str(preview), "--chunk-size", "4"]
    )

    assert exit_code == 0
    refined = json.loads(output.read_text(encoding="utf-8"))
    assert [item["text"] for item in refined] == [f"the line {i}" for i in range(12)]
    priority = json.loads(preview.read_text(encoding="utf-8"))
    assert priority["status"] == "partial_priority"
    # 12s transcript: window 6s, segment 6 is the first to end past it
    assert priority["prioritySegmentsCount"] == 7


def test_missing_api_key_exits_with_error(tmp_path: Path) -> None:
    source = tmp_path / "in.json"
    _write_transcript(source)

    assert cli.main([str(source)]) == 1


def test_missing_transcript_exits_with_error(tmp_path: Path) -> None:
    assert cli.main([str(tmp_path / "absent.json")]) == 1
