"""Transcript refinement: chunked LLM correction realigned to original timestamps."""

from __future__ import annotations

from .aligner import align_segments, build_alignment_mapping
from .chunker import PrioritySplit, chunk_segments_by_count, split_priority
from .config import ConfigError, RefinerConfig, load_refiner_config
from .dispatcher import RefinementDispatcher
from .model_client import APIKeyError, ModelCallError, ModelClient, ModelClientError
from .orchestrator import CaptionRefiner, refine_transcript
from .parser import CHUNK_SENTINEL, normalize_line_to_text, parse_refined_segments
from .prompts import SYSTEM_PROMPT, build_user_preamble
from .segments import ChunkRange, Segment, Transcript, TranscriptFormatError, load_transcript
from .similarity import line_similarity

__all__ = [
    "APIKeyError",
    "CHUNK_SENTINEL",
    "CaptionRefiner",
    "ChunkRange",
    "ConfigError",
    "ModelCallError",
    "ModelClient",
    "ModelClientError",
    "PrioritySplit",
    "RefinementDispatcher",
    "RefinerConfig",
    "SYSTEM_PROMPT",
    "Segment",
    "Transcript",
    "TranscriptFormatError",
    "align_segments",
    "build_alignment_mapping",
    "build_user_preamble",
    "chunk_segments_by_count",
    "line_similarity",
    "load_refiner_config",
    "load_transcript",
    "normalize_line_to_text",
    "parse_refined_segments",
    "refine_transcript",
    "split_priority",
]
