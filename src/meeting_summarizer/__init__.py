"""Meeting Summarizer - Turn meeting transcripts into minutes with a local LLM.

This package sends a transcript to a local Ollama model and writes back
structured minutes (summary, decisions, action items, open questions):
- Single-shot summarization when the transcript fits the context limit
- Token-window map-reduce for longer transcripts
- Markdown, plain-text or JSON output

Programmatic API Example:
    >>> import meeting_summarizer
    >>>
    >>> config = meeting_summarizer.Config(
    ...     input_path="standup.txt",
    ...     output_path="standup-minutes.md",
    ...     model="gemma3:27b",
    ... )
    >>> result, summary = meeting_summarizer.run_pipeline(config)
    >>> print(result.mode, result.generation_calls)

CLI Usage:
    $ meeting-summarizer transcript.txt minutes.md
    $ meeting-summarizer - - --format json < transcript.txt
    $ python -m meeting_summarizer.cli --config config.yaml
"""

from __future__ import annotations

from .config import Config, load_config_file
from .summarization.pipeline import MinutesPipeline, MinutesResult, summarize_transcript
from .workflow import run_pipeline

__all__ = [
    "Config",
    "MinutesPipeline",
    "MinutesResult",
    "load_config_file",
    "run_pipeline",
    "summarize_transcript",
    "__version__",
]

__version__ = "1.0.0"
