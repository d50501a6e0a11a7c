"""Tokenizer adapter used for token budgeting and chunking.

Ollama does not expose its tokenizers, so token counts are estimated with a
tiktoken encoding chosen from a model name. The count only has to be stable and
roughly proportional to what the served model sees.
"""

from __future__ import annotations

import logging
from functools import lru_cache
from typing import List, Sequence

import tiktoken

from . import config_constants

logger = logging.getLogger(__name__)


@lru_cache(maxsize=None)
def _resolve_encoding(model_name: str) -> "tiktoken.Encoding":
    """Map a model name to a tiktoken encoding, falling back to cl100k_base."""
    try:
        return tiktoken.encoding_for_model(model_name)
    except KeyError:
        pass
    try:
        # Also accept a bare encoding name such as "o200k_base"
        return tiktoken.get_encoding(model_name)
    except ValueError:
        logger.debug(
            "No tiktoken encoding for '%s', using %s",
            model_name,
            config_constants.FALLBACK_TOKENIZER_ENCODING,
        )
        return tiktoken.get_encoding(config_constants.FALLBACK_TOKENIZER_ENCODING)


class Tokenizer:
    """Encode, decode and count tokens for a given model name."""

    def __init__(self, encoding: "tiktoken.Encoding", model_name: str = "") -> None:
        self._encoding = encoding
        self.model_name = model_name or encoding.name

    @classmethod
    def for_model(cls, model_name: str) -> "Tokenizer":
        """Build a tokenizer for ``model_name`` (e.g. ``gpt-4`` or ``cl100k_base``)."""
        return cls(_resolve_encoding(model_name), model_name)

    @property
    def encoding_name(self) -> str:
        return self._encoding.name

    def encode(self, text: str) -> List[int]:
        # Special-token strings in a transcript encode as plain text
        return self._encoding.encode(text, disallowed_special=())

    def decode(self, tokens: Sequence[int]) -> str:
        return self._encoding.decode(list(tokens))

    def count(self, text: str) -> int:
        if not text:
            return 0
        return len(self.encode(text))

    def __repr__(self) -> str:
        return f"Tokenizer(model_name={self.model_name!r}, encoding={self.encoding_name!r})"
