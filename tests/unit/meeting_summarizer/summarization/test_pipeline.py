"""Unit tests for the meeting minutes pipeline (direct and map-reduce paths)."""

from __future__ import annotations

from contextlib import contextmanager
from unittest.mock import patch

import pytest

from meeting_summarizer import progress
from meeting_summarizer.exceptions import GenerationFailedError, ServiceUnreachableError
from meeting_summarizer.summarization import prompts
from meeting_summarizer.summarization.pipeline import (
    MinutesPipeline,
    MODE_CHUNKED,
    MODE_DIRECT,
    PipelineState,
    summarize_transcript,
)
from tests.conftest import (
    CharTokenizer,
    create_test_config,
    FakeGenerationProvider,
    TEST_TRANSCRIPT,
    unreachable_provider,
)

ALICE_BOB_MINUTES = (
    "Decisions: ship v2 on Friday\n"
    "Action items: Bob updates the changelog by Thursday\n"
    "Open questions: who owns the migration script"
)


def _chunk_settings(**overrides):
    """ctx_limit small enough to force chunking with the character tokenizer."""
    settings = {"ctx_limit": 50, "chunk_size": 40, "overlap": 0.25, "system_prompt": "Be brief."}
    settings.update(overrides)
    return create_test_config(**settings)


@pytest.mark.unit
class TestDirectPath:
    def test_short_transcript_uses_one_call(self, char_tokenizer):
        provider = FakeGenerationProvider(responses=["## SUMMARY\nShort meeting."])
        cfg = create_test_config(ctx_limit=10_000)

        result = MinutesPipeline(cfg, provider, tokenizer=char_tokenizer).run("Alice: hi")

        assert result.mode == MODE_DIRECT
        assert result.generation_calls == 1
        assert len(provider.calls) == 1
        assert result.chunk_count == 0
        assert result.partial_summaries == []
        assert result.text == "## SUMMARY\nShort meeting."
        assert result.token_count == len("Alice: hi")

    def test_direct_prompt_contains_transcript_and_system_prompt(self, char_tokenizer):
        provider = FakeGenerationProvider()
        cfg = create_test_config(system_prompt="You write minutes.")

        MinutesPipeline(cfg, provider, tokenizer=char_tokenizer).run(TEST_TRANSCRIPT)

        prompt, system_prompt = provider.calls[0]
        assert prompt == prompts.build_direct_prompt(TEST_TRANSCRIPT)
        assert TEST_TRANSCRIPT.strip() in prompt
        assert system_prompt == "You write minutes."

    def test_default_system_prompt_is_rendered_from_template(self, char_tokenizer):
        provider = FakeGenerationProvider()
        MinutesPipeline(create_test_config(), provider, tokenizer=char_tokenizer).run("hi")
        _, system_prompt = provider.calls[0]
        assert "meeting assistant" in system_prompt
        assert "## ACTION ITEMS" in system_prompt

    def test_budget_counts_system_prompt(self, char_tokenizer):
        # 10 transcript tokens + 10 system tokens == ctx_limit, which is not "below" it
        cfg = create_test_config(
            ctx_limit=20, chunk_size=100, overlap=0.1, system_prompt="s" * 10
        )
        provider = FakeGenerationProvider()
        result = MinutesPipeline(cfg, provider, tokenizer=char_tokenizer).run("t" * 10)
        assert result.mode == MODE_CHUNKED

    def test_state_history(self, char_tokenizer):
        pipeline = MinutesPipeline(
            create_test_config(), FakeGenerationProvider(), tokenizer=char_tokenizer
        )
        pipeline.run("Alice: hi")
        assert pipeline.history == [
            PipelineState.IDLE,
            PipelineState.DECIDING,
            PipelineState.DIRECT_SUMMARIZE,
            PipelineState.FORMATTING,
            PipelineState.DONE,
        ]
        assert pipeline.state is PipelineState.DONE

    def test_alice_bob_plain_output_is_unchanged(self, char_tokenizer):
        provider = FakeGenerationProvider(responses=[ALICE_BOB_MINUTES])
        cfg = create_test_config(output_format="plain")

        result = MinutesPipeline(cfg, provider, tokenizer=char_tokenizer).run(TEST_TRANSCRIPT)

        assert len(provider.calls) == 1
        assert result.text == ALICE_BOB_MINUTES

    def test_fragments_are_forwarded(self, char_tokenizer):
        seen = []
        provider = FakeGenerationProvider(responses=["line one\nline two"])
        pipeline = MinutesPipeline(
            create_test_config(), provider, tokenizer=char_tokenizer, on_fragment=seen.append
        )
        pipeline.run("Alice: hi")
        assert "".join(seen) == "line one\nline two"


@pytest.mark.unit
class TestChunkedPath:
    def test_chunked_calls_equal_chunks_plus_one(self, char_tokenizer):
        # 100 tokens, size 40, step 30 -> windows at 0, 30, 60, 90
        transcript = "x" * 100
        cfg = _chunk_settings()
        provider = FakeGenerationProvider(
            responses=["partial A", "partial B", "partial C", "partial D", "FINAL"]
        )

        result = MinutesPipeline(cfg, provider, tokenizer=char_tokenizer).run(transcript)

        assert result.mode == MODE_CHUNKED
        assert result.chunk_count == 4
        assert result.generation_calls == result.chunk_count + 1
        assert len(provider.calls) == 5
        assert result.text == "FINAL"

    def test_merge_prompt_holds_partials_in_order(self, char_tokenizer):
        # 90 tokens, size 40, overlap 0.25 -> windows at 0, 30, 60: three chunks
        transcript = "".join(chr(ord("a") + i % 26) for i in range(90))
        cfg = _chunk_settings()
        provider = FakeGenerationProvider(
            responses=["first partial", "second partial", "third partial", "merged minutes"]
        )

        result = MinutesPipeline(cfg, provider, tokenizer=char_tokenizer).run(transcript)

        assert result.chunk_count == 3
        assert len(provider.calls) == 4
        assert result.partial_summaries == ["first partial", "second partial", "third partial"]
        merge_prompt, merge_system = provider.calls[-1]
        assert merge_prompt == prompts.build_merge_prompt(result.partial_summaries)
        assert merge_prompt.index("first partial") < merge_prompt.index("second partial")
        assert merge_prompt.index("second partial") < merge_prompt.index("third partial")
        assert prompts.PARTIAL_SUMMARY_SEPARATOR.join(result.partial_summaries) in merge_prompt
        assert merge_system == "Be brief."

    def test_map_prompts_follow_chunk_order(self, char_tokenizer):
        transcript = "A" * 40 + "B" * 30 + "C" * 20
        cfg = _chunk_settings()
        provider = FakeGenerationProvider()

        MinutesPipeline(cfg, provider, tokenizer=char_tokenizer).run(transcript)

        map_prompts = provider.prompts[:-1]
        assert map_prompts[0] == prompts.build_chunk_prompt(transcript[0:40], 1, 3)
        assert map_prompts[1] == prompts.build_chunk_prompt(transcript[30:70], 2, 3)
        assert map_prompts[2] == prompts.build_chunk_prompt(transcript[60:90], 3, 3)
        assert "part 2 of 3" in map_prompts[1]

    def test_single_window_still_merges(self, char_tokenizer):
        # Over the context limit but within one chunk: one map call and one merge
        cfg = create_test_config(ctx_limit=5, chunk_size=100, overlap=0.1, system_prompt="s")
        provider = FakeGenerationProvider()
        result = MinutesPipeline(cfg, provider, tokenizer=char_tokenizer).run("x" * 20)
        assert result.chunk_count == 1
        assert result.generation_calls == 2

    def test_chunked_state_history(self, char_tokenizer):
        pipeline = MinutesPipeline(
            _chunk_settings(), FakeGenerationProvider(), tokenizer=char_tokenizer
        )
        pipeline.run("y" * 90)
        assert PipelineState.CHUNKED_SUMMARIZE in pipeline.history
        assert PipelineState.DIRECT_SUMMARIZE not in pipeline.history

    def test_progress_reports_each_chunk(self, char_tokenizer):
        events = []

        class _Recorder:
            def update(self, advance):
                events.append(("update", advance))

        @contextmanager
        def factory(total, description):
            events.append(("open", total, description))
            yield _Recorder()

        progress.set_progress_factory(factory)
        MinutesPipeline(
            _chunk_settings(), FakeGenerationProvider(), tokenizer=char_tokenizer
        ).run("z" * 90)

        assert events[0] == ("open", 3, "Summarizing chunks")
        assert events[1:] == [("update", 1)] * 3

    def test_reduce_failure_propagates(self, char_tokenizer):
        def responder(prompt, index):
            if prompt.startswith("Merge"):
                raise GenerationFailedError("boom", provider="Fake", attempts=4)
            return f"partial {index}"

        provider = FakeGenerationProvider(responder=responder)
        with pytest.raises(GenerationFailedError):
            MinutesPipeline(_chunk_settings(), provider, tokenizer=char_tokenizer).run("q" * 90)


@pytest.mark.unit
class TestPreflightAndFormatting:
    def test_preflight_runs_before_generation(self, char_tokenizer):
        provider = unreachable_provider()
        with pytest.raises(ServiceUnreachableError):
            MinutesPipeline(create_test_config(), provider, tokenizer=char_tokenizer).run("hi")
        assert provider.calls == []
        assert provider.preflight_calls == 1

    def test_output_format_applied(self, char_tokenizer):
        provider = FakeGenerationProvider(responses=["## SUMMARY\n**Bold** <b>"])
        cfg = create_test_config(output_format="plain")
        result = MinutesPipeline(cfg, provider, tokenizer=char_tokenizer).run("hi")
        assert result.text == "SUMMARY\nBold &lt;b&gt;"

    def test_summarize_transcript_wrapper(self, char_tokenizer):
        provider = FakeGenerationProvider(responses=["done"])
        result = summarize_transcript(
            "hi", create_test_config(), provider, tokenizer=char_tokenizer
        )
        assert result.text == "done"

    def test_default_tokenizer_built_from_config(self):
        with patch(
            "meeting_summarizer.summarization.pipeline.Tokenizer.for_model",
            return_value=CharTokenizer(),
        ) as for_model:
            MinutesPipeline(create_test_config(tokenizer_model="gpt-4o"), FakeGenerationProvider())
        for_model.assert_called_once_with("gpt-4o")
