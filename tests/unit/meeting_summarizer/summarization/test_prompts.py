"""Unit tests for meeting_summarizer.summarization.prompts."""

from __future__ import annotations

import pytest

from meeting_summarizer.summarization import prompts
from tests.conftest import create_test_config


@pytest.mark.unit
class TestPromptBuilders:
    def test_configured_system_prompt_wins(self):
        cfg = create_test_config(system_prompt="Only list action items.")
        assert prompts.resolve_system_prompt(cfg) == "Only list action items."

    def test_default_system_prompt(self):
        text = prompts.resolve_system_prompt(create_test_config())
        assert text.startswith("You are a meeting assistant.")

    def test_direct_prompt_carries_transcript(self):
        assert prompts.build_direct_prompt("Alice: hi").endswith("Alice: hi")

    def test_chunk_prompt_numbering_and_word_cap(self):
        text = prompts.build_chunk_prompt("Bob: ok", 3, 7)
        assert "part 3 of 7" in text
        assert f"at most {prompts.CHUNK_SUMMARY_MAX_WORDS} words" in text

    def test_merge_prompt_joins_with_separator(self):
        text = prompts.build_merge_prompt(["one", "two", "three"])
        assert "one\n\n---\n\ntwo\n\n---\n\nthree" in text
        assert "3 partial summaries" in text
