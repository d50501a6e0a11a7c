"""Prompt builders for the meeting minutes pipeline.

Prompt wording lives in Jinja2 templates under ``prompts/minutes``; this module
fills them in for each phase.
"""

from __future__ import annotations

from typing import Sequence, TYPE_CHECKING

from .. import config_constants
from ..prompts import render_prompt

if TYPE_CHECKING:
    from .. import config

# Separator placed between partial summaries in the merge prompt
PARTIAL_SUMMARY_SEPARATOR = "\n\n---\n\n"

# Word cap requested for each chunk summary in the map phase
CHUNK_SUMMARY_MAX_WORDS = 200


def resolve_system_prompt(cfg: "config.Config") -> str:
    """Return the configured system prompt, or the default template."""
    if cfg.system_prompt:
        return cfg.system_prompt
    return render_prompt(config_constants.PROMPT_SYSTEM)


def build_direct_prompt(transcript: str) -> str:
    return render_prompt(config_constants.PROMPT_DIRECT, transcript=transcript)


def build_chunk_prompt(chunk: str, index: int, total: int) -> str:
    """Build the map-phase prompt for chunk ``index`` (1-based) of ``total``."""
    return render_prompt(
        config_constants.PROMPT_CHUNK,
        chunk=chunk,
        index=index,
        total=total,
        max_words=CHUNK_SUMMARY_MAX_WORDS,
    )


def build_merge_prompt(partial_summaries: Sequence[str]) -> str:
    """Build the reduce-phase prompt; partial summaries keep their chunk order."""
    return render_prompt(
        config_constants.PROMPT_MERGE,
        partials=PARTIAL_SUMMARY_SEPARATOR.join(partial_summaries),
        total=len(partial_summaries),
    )
