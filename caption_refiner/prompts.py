"""
prompts.py

Prompt construction for transcript correction. The system prompt carries the
fixed correction rules; the user prompt is the video context preamble followed
by the chunk's ``[timestamp] text`` lines.
"""

from __future__ import annotations

from string import Template
from typing import Callable, Sequence

from .parser import collapse_whitespace
from .segments import Segment, segment_timestamp

PreambleBuilder = Callable[[str, str], str]

# =============================================================================
# CORRECTION RULES
# =============================================================================

CORRECTION_CONSTRAINTS = """CRITICAL CONSTRAINTS:
- Only fix typos and grammar. Do NOT change meaning or structure.
- PRESERVE ALL NEWLINES: each line is a distinct transcript segment.
- Do NOT add, remove, or merge lines. Keep the same number of lines.
- Keep the timestamp tag and text on the same line. Do NOT move the [timestamp] to its own line.
- MAINTAIN SIMILAR LINE LENGTHS: Each output line should be approximately the same character count as its corresponding input line (+/-10% tolerance). Do NOT expand short lines into long paragraphs. Do NOT condense long lines significantly. Keep each line concise.
- If a sentence is broken across lines, keep it broken the same way.
- PRESERVE THE ORIGINAL LANGUAGE: output must be in the same language as the input transcript.
- Focus on minimal corrections: fix typos, correct grammar errors, but keep expansions/additions to an absolute minimum."""

CORRECTION_EXAMPLE = """EXAMPLES OF CORRECT BEHAVIOR:

Input:
[0:12] up to 900. From 900 up to 1,100.
[0:14] If you sold at the reasonable
[0:16] valuations, when the gains that already
[0:18] been had, you missed out big time. I

Output:
[0:12] up to $900. From $900 up to $1,100.
[0:14] If you sold at the reasonable
[0:16] valuations, when the gains that already
[0:18] had been had, you missed out big time. I"""

SYSTEM_PROMPT = Template(
    """You are correcting segments of a YouTube video transcript. These segments could be from anywhere in the video (beginning, middle, or end). Use the video title and description for context.

$constraints

$example"""
).substitute(constraints=CORRECTION_CONSTRAINTS, example=CORRECTION_EXAMPLE)


def build_user_preamble(title: str, description: str) -> str:
    """Video context placed ahead of every chunk."""

    return "\n".join(
        [
            f"Video Title: {title or ''}",
            f"Video Description: {description or ''}",
            "",
            "Transcript Chunk:",
        ]
    )


def format_transcript_segments(segments: Sequence[Segment]) -> str:
    return "\n".join(f"[{segment_timestamp(seg)}] {collapse_whitespace(seg.text)}" for seg in segments)


def build_chunk_prompt(preamble: str, segments: Sequence[Segment]) -> str:
    return f"{preamble}\n{format_transcript_segments(segments)}"


__all__ = [
    "PreambleBuilder",
    "SYSTEM_PROMPT",
    "build_chunk_prompt",
    "build_user_preamble",
    "format_transcript_segments",
]
