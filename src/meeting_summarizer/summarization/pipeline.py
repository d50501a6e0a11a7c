"""Map-reduce meeting minutes pipeline.

A run moves through a fixed sequence of states::

    IDLE -> DECIDING -> DIRECT_SUMMARIZE  -> FORMATTING -> DONE
                     -> CHUNKED_SUMMARIZE -> FORMATTING -> DONE

DECIDING compares the transcript plus system prompt against the context limit.
A transcript that fits is summarized with one generation call. A larger one is
split into overlapping token windows, each window is summarized in order (map),
and the partial summaries are merged with exactly one more call (reduce).

Calls run strictly one after another. Retries happen inside the provider; the
pipeline itself never repeats a phase.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from typing import List, Optional, Tuple, TYPE_CHECKING

from .. import config, progress
from ..formatting import format_minutes
from ..tokenization import Tokenizer
from . import prompts
from .chunking import split_tokens, window_bounds

if TYPE_CHECKING:
    from ..providers.base import FragmentCallback, GenerationProvider

logger = logging.getLogger(__name__)

MODE_DIRECT = "direct"
MODE_CHUNKED = "chunked"


class PipelineState(enum.Enum):
    IDLE = "idle"
    DECIDING = "deciding"
    DIRECT_SUMMARIZE = "direct_summarize"
    CHUNKED_SUMMARIZE = "chunked_summarize"
    FORMATTING = "formatting"
    DONE = "done"


@dataclass
class MinutesResult:
    """Outcome of one pipeline run.

    Attributes:
        text: Final minutes after the output format was applied
        mode: ``"direct"`` or ``"chunked"``
        token_count: Transcript size in tokens
        chunk_count: Number of windows summarized (0 in direct mode)
        generation_calls: Generation calls made (1, or chunk_count + 1)
        partial_summaries: Map-phase outputs in chunk order (empty in direct mode)
    """

    text: str
    mode: str
    token_count: int
    chunk_count: int
    generation_calls: int
    partial_summaries: List[str] = field(default_factory=list)


class MinutesPipeline:
    """Turn one transcript into meeting minutes through a generation provider.

    Args:
        cfg: Run configuration (token budget, chunking and output format)
        provider: Generation provider; its preflight runs before the first call
        tokenizer: Tokenizer for budgeting (default: built from ``cfg.tokenizer_model``)
        on_fragment: Optional callback receiving every streamed fragment
    """

    def __init__(
        self,
        cfg: config.Config,
        provider: "GenerationProvider",
        tokenizer: Optional[Tokenizer] = None,
        on_fragment: Optional["FragmentCallback"] = None,
    ):
        self.cfg = cfg
        self.provider = provider
        self.tokenizer = tokenizer or Tokenizer.for_model(cfg.tokenizer_model)
        self.on_fragment = on_fragment
        self.history: List[PipelineState] = [PipelineState.IDLE]
        self.generation_calls = 0

    @property
    def state(self) -> PipelineState:
        return self.history[-1]

    def _transition(self, state: PipelineState) -> None:
        logger.debug(f"Pipeline state: {self.state.value} -> {state.value}")
        self.history.append(state)

    def _generate(self, prompt: str, system_prompt: str) -> str:
        self.generation_calls += 1
        return self.provider.generate(
            prompt, system_prompt=system_prompt, on_fragment=self.on_fragment
        )

    def fits_in_context(self, transcript_tokens: int, system_prompt: str) -> bool:
        """Return True when transcript plus system prompt stay under ``ctx_limit``."""
        budget = transcript_tokens + self.tokenizer.count(system_prompt)
        return budget < self.cfg.ctx_limit

    def run(self, transcript: str) -> MinutesResult:
        """Summarize ``transcript`` and return the formatted minutes.

        Raises:
            ServiceUnreachableError: If the provider preflight fails
            GenerationFailedError: If any map or reduce call fails after retries
        """
        self.history = [PipelineState.IDLE]
        self.generation_calls = 0

        # Preflight is idempotent and never retried
        self.provider.check_available()
        system_prompt = prompts.resolve_system_prompt(self.cfg)

        self._transition(PipelineState.DECIDING)
        tokens = self.tokenizer.encode(transcript)
        token_count = len(tokens)

        partial_summaries: List[str] = []
        if self.fits_in_context(token_count, system_prompt):
            self._transition(PipelineState.DIRECT_SUMMARIZE)
            logger.info(
                f"Transcript fits in context ({token_count} tokens < {self.cfg.ctx_limit}), "
                "summarizing in one call"
            )
            raw_minutes = self._generate(prompts.build_direct_prompt(transcript), system_prompt)
            mode = MODE_DIRECT
            chunk_count = 0
        else:
            self._transition(PipelineState.CHUNKED_SUMMARIZE)
            raw_minutes, partial_summaries = self._summarize_chunked(tokens, system_prompt)
            mode = MODE_CHUNKED
            chunk_count = len(partial_summaries)

        self._transition(PipelineState.FORMATTING)
        text = format_minutes(raw_minutes, self.cfg.output_format)

        self._transition(PipelineState.DONE)
        logger.info(f"Minutes ready ({mode}, {self.generation_calls} generation call(s))")
        return MinutesResult(
            text=text,
            mode=mode,
            token_count=token_count,
            chunk_count=chunk_count,
            generation_calls=self.generation_calls,
            partial_summaries=partial_summaries,
        )

    def _summarize_chunked(self, tokens: List[int], system_prompt: str) -> Tuple[str, List[str]]:
        """Map each window to a partial summary, then merge them in order."""
        total = len(window_bounds(len(tokens), self.cfg.chunk_size, self.cfg.overlap))
        logger.info(
            f"Transcript exceeds context ({len(tokens)} tokens), splitting into {total} "
            f"chunk(s) of up to {self.cfg.chunk_size} tokens (overlap={self.cfg.overlap})"
        )

        partial_summaries: List[str] = []
        windows = split_tokens(tokens, self.cfg.chunk_size, self.cfg.overlap, self.tokenizer.decode)
        tracked = progress.track(windows, total, "Summarizing chunks")
        for index, chunk in enumerate(tracked, start=1):
            logger.info(f"Summarizing chunk {index}/{total}")
            partial = self._generate(prompts.build_chunk_prompt(chunk, index, total), system_prompt)
            partial_summaries.append(partial)

        logger.info(f"Merging {len(partial_summaries)} partial summaries")
        merged = self._generate(prompts.build_merge_prompt(partial_summaries), system_prompt)
        return merged, partial_summaries


def summarize_transcript(
    transcript: str,
    cfg: config.Config,
    provider: "GenerationProvider",
    tokenizer: Optional[Tokenizer] = None,
    on_fragment: Optional["FragmentCallback"] = None,
) -> MinutesResult:
    """Convenience wrapper running a fresh :class:`MinutesPipeline`."""
    pipeline = MinutesPipeline(cfg, provider, tokenizer=tokenizer, on_fragment=on_fragment)
    return pipeline.run(transcript)
