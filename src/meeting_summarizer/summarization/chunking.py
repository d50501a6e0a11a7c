"""Text chunking utilities for summarization.

This module provides functions for splitting long transcripts into overlapping
token windows for map-reduce summarization workflows.
"""

from __future__ import annotations

import math
from typing import Callable, Iterator, List, Sequence, Tuple


def chunk_step(chunk_size: int, overlap: float) -> int:
    """Return the window advance in tokens for a chunk size and overlap fraction.

    Args:
        chunk_size: Window size in tokens
        overlap: Fraction of each window repeated in the next (0 <= overlap < 1)

    Returns:
        ``floor(chunk_size * (1 - overlap))``

    Raises:
        ValueError: If the configuration would never advance
    """
    if chunk_size <= 0:
        raise ValueError(f"chunk_size must be positive, got: {chunk_size}")
    if not 0.0 <= overlap < 1.0:
        raise ValueError(f"overlap must be in [0, 1), got: {overlap}")
    step = math.floor(chunk_size * (1 - overlap))
    if step < 1:
        raise ValueError(
            f"chunk_size={chunk_size} with overlap={overlap} gives a step below 1 token"
        )
    return step


def window_bounds(total_tokens: int, chunk_size: int, overlap: float) -> List[Tuple[int, int]]:
    """Return the ``[start, end)`` token range of every window.

    A sequence that fits in one window yields exactly one range covering it.
    """
    step = chunk_step(chunk_size, overlap)
    if total_tokens <= chunk_size:
        return [(0, total_tokens)]
    return [
        (start, min(start + chunk_size, total_tokens)) for start in range(0, total_tokens, step)
    ]


def split_tokens(
    tokens: Sequence[int],
    chunk_size: int,
    overlap: float,
    decode: Callable[[Sequence[int]], str],
) -> Iterator[str]:
    """Lazily yield decoded overlapping windows over a token sequence.

    Window ``i`` starts at ``i * floor(chunk_size * (1 - overlap))`` and spans up
    to ``chunk_size`` tokens; iteration stops once the offset reaches the end.

    Args:
        tokens: Token ids of the full text
        chunk_size: Window size in tokens
        overlap: Overlap fraction between consecutive windows
        decode: Callable turning a token slice back into text

    Yields:
        Decoded text of each window, in order
    """
    # Validate eagerly so bad settings fail before the first window is consumed
    bounds = window_bounds(len(tokens), chunk_size, overlap)
    return (decode(tokens[start:end]) for start, end in bounds)
