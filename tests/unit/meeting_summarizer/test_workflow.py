#!/usr/bin/env python3
"""Tests for run orchestration and logging setup (workflow.py)."""

import logging
import os
import tempfile
import unittest
from unittest.mock import MagicMock, patch

import pytest

from meeting_summarizer import workflow
from meeting_summarizer.exceptions import (
    GenerationFailedError,
    InputReadError,
    ServiceUnreachableError,
)
from meeting_summarizer.summarization.pipeline import MODE_CHUNKED, MODE_DIRECT
from tests.conftest import (
    CharTokenizer,
    create_test_config,
    FakeGenerationProvider,
    TEST_TRANSCRIPT,
    unreachable_provider,
)


@pytest.mark.unit
class TestApplyLogLevel(unittest.TestCase):
    def setUp(self):
        self.root = logging.getLogger()
        self.saved_level = self.root.level
        self.saved_handlers = list(self.root.handlers)
        self.temp_dir = tempfile.mkdtemp()

    def tearDown(self):
        for handler in self.root.handlers:
            if handler not in self.saved_handlers:
                handler.close()
        self.root.handlers = self.saved_handlers
        self.root.setLevel(self.saved_level)

    def test_sets_root_level(self):
        workflow.apply_log_level("DEBUG")
        self.assertEqual(self.root.level, logging.DEBUG)

    def test_client_loggers_kept_quiet(self):
        workflow.apply_log_level("DEBUG")
        self.assertEqual(logging.getLogger("httpx").level, logging.WARNING)
        self.assertEqual(logging.getLogger("openai").level, logging.WARNING)

    def test_invalid_level(self):
        with self.assertRaises(ValueError):
            workflow.apply_log_level("LOUD")

    def test_log_file_handler_added_once(self):
        log_file = os.path.join(self.temp_dir, "logs", "run.log")
        workflow.apply_log_level("INFO", log_file)
        workflow.apply_log_level("INFO", log_file)
        file_handlers = [h for h in self.root.handlers if isinstance(h, logging.FileHandler)]
        self.assertEqual(len(file_handlers), 1)
        self.assertTrue(os.path.exists(log_file))


@pytest.mark.unit
class TestRunPipeline:
    def test_writes_minutes_file(self, transcript_file, tmp_path):
        output = tmp_path / "minutes.md"
        cfg = create_test_config(input_path=str(transcript_file), output_path=str(output))
        provider = FakeGenerationProvider(responses=["## SUMMARY\nShip on Friday."])

        result, summary = workflow.run_pipeline(cfg, provider=provider, tokenizer=CharTokenizer())

        assert output.read_text(encoding="utf-8") == "## SUMMARY\nShip on Friday.\n"
        assert result.mode == MODE_DIRECT
        assert summary.startswith(f"Minutes written to {output}")
        assert "single generation call" in summary

    def test_chunked_summary_message(self, transcript_file, tmp_path):
        output = tmp_path / "minutes.md"
        cfg = create_test_config(
            input_path=str(transcript_file),
            output_path=str(output),
            ctx_limit=50,
            chunk_size=60,
            overlap=0.1,
            system_prompt="s",
        )
        result, summary = workflow.run_pipeline(
            cfg, provider=FakeGenerationProvider(), tokenizer=CharTokenizer()
        )
        assert result.mode == MODE_CHUNKED
        assert f"{result.chunk_count} chunks" in summary
        assert f"{result.generation_calls} generation calls" in summary

    def test_unreachable_service_writes_nothing(self, transcript_file, tmp_path):
        output = tmp_path / "minutes.md"
        cfg = create_test_config(input_path=str(transcript_file), output_path=str(output))
        provider = unreachable_provider()

        with pytest.raises(ServiceUnreachableError):
            workflow.run_pipeline(cfg, provider=provider, tokenizer=CharTokenizer())

        assert not output.exists()
        assert provider.calls == []

    def test_generation_failure_writes_nothing(self, transcript_file, tmp_path):
        output = tmp_path / "minutes.md"
        cfg = create_test_config(input_path=str(transcript_file), output_path=str(output))

        def responder(prompt, index):
            raise GenerationFailedError("stream dropped", provider="Fake", attempts=4)

        with pytest.raises(GenerationFailedError):
            workflow.run_pipeline(
                cfg, provider=FakeGenerationProvider(responder=responder), tokenizer=CharTokenizer()
            )
        assert not output.exists()

    def test_input_error_before_provider_created(self, tmp_path):
        cfg = create_test_config(input_path=str(tmp_path / "absent.txt"))
        with patch.object(workflow, "_create_provider") as create_provider:
            with pytest.raises(InputReadError):
                workflow.run_pipeline(cfg)
        create_provider.assert_not_called()

    def test_owned_provider_is_closed(self, transcript_file, tmp_path):
        cfg = create_test_config(
            input_path=str(transcript_file), output_path=str(tmp_path / "minutes.md")
        )
        fake = FakeGenerationProvider(responses=[TEST_TRANSCRIPT])
        owned = MagicMock()
        owned.__enter__.return_value = fake

        with patch.object(workflow, "_create_provider", return_value=owned):
            workflow.run_pipeline(cfg, tokenizer=CharTokenizer())

        owned.__exit__.assert_called_once()
        assert len(fake.calls) == 1
