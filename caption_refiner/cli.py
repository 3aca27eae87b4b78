"""
Command-line entry point: refine a transcript JSON file.

Example:
    caption-refiner transcript.json --output refined.json \
        --priority-output refined.priority.json --concurrency 4
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import List, Sequence

from .config import ConfigError, load_refiner_config
from .model_client import ModelClientError
from .orchestrator import CaptionRefiner
from .segments import Segment, TranscriptFormatError, dump_segments, load_transcript

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Correct an auto-generated transcript with a completion model and realign it to its timestamps."
    )
    parser.add_argument("transcript", type=Path, help="Transcript JSON (segment list or scrape-API object).")
    parser.add_argument("--title", default=None, help="Video title (overrides the transcript file).")
    parser.add_argument("--description", default=None, help="Video description (overrides the transcript file).")
    parser.add_argument("--model", default=None, help="Model identifier.")
    parser.add_argument("--concurrency", type=int, default=None, help="Concurrent completion calls.")
    parser.add_argument("--chunk-size", type=int, default=None, help="Maximum segments per chunk.")
    parser.add_argument("--config", type=Path, default=None, help="Optional JSON/YAML configuration file.")
    parser.add_argument("--output", type=Path, default=None, help="Write refined segments here (default: stdout).")
    parser.add_argument(
        "--priority-output",
        type=Path,
        default=None,
        help="Write the early priority-window preview here as soon as it is ready.",
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logging.")
    return parser


def _write_priority_preview(path: Path, segments: List[Segment]) -> None:
    payload = {
        "status": "partial_priority",
        "prioritySegmentsCount": len(segments),
        "segments": [seg.to_dict() for seg in segments],
    }
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(payload, indent=2, ensure_ascii=False), encoding="utf-8")
    logger.info("Saved priority preview to %s", path)


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(message)s",
    )

    try:
        config = load_refiner_config(
            model=args.model,
            concurrency=args.concurrency,
            max_per_chunk=args.chunk_size,
            config_path=args.config,
        )
        transcript = load_transcript(args.transcript)
        refiner = CaptionRefiner(config=config)
    except (ConfigError, TranscriptFormatError, ModelClientError) as exc:
        logger.error("%s", exc)
        return 1

    if args.title is not None:
        transcript.title = args.title
    if args.description is not None:
        transcript.description = args.description

    on_priority = None
    if args.priority_output is not None:
        priority_path: Path = args.priority_output

        def on_priority(partial: List[Segment]) -> None:
            _write_priority_preview(priority_path, partial)

    refined = refiner.refine_transcript(transcript, on_priority=on_priority)

    output = dump_segments(refined)
    if args.output is None:
        sys.stdout.write(output + "\n")
    else:
        args.output.parent.mkdir(parents=True, exist_ok=True)
        args.output.write_text(output, encoding="utf-8")
        logger.info("Saved %s refined segments to %s", len(refined), args.output)
    return 0


if __name__ == "__main__":
    sys.exit(main())
