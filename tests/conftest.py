"""Shared fixtures and test utilities for meeting_summarizer tests.

This module contains:
- Test constants
- Helper functions for creating test objects
- A fake generation provider and a character-level tokenizer
- Fixtures isolating environment variables and global state

All test files can import from this module using pytest's conftest.py mechanism.
"""

import os

os.environ["TERM"] = "dumb"  # Keep progress bars plain in test output

from typing import Callable, Iterator, List, Optional, Sequence, Tuple

import pytest

from meeting_summarizer import config, progress
from meeting_summarizer.exceptions import ServiceUnreachableError
from meeting_summarizer.prompts import clear_cache

# Test constants
TEST_MODEL = "llama3.1:8b"
TEST_API_BASE = "http://localhost:11434/v1"
TEST_API_ROOT = "http://localhost:11434"
TEST_TRANSCRIPT = (
    "Alice: Let's ship v2 on Friday.\n"
    "Bob: Agreed. I'll update the changelog by Thursday.\n"
    "Alice: Who owns the migration script?\n"
    "Bob: Still open, let's decide next week.\n"
)
TEST_MINUTES_MARKDOWN = """## SUMMARY
The team agreed to ship v2 on Friday.

## KEY DECISIONS
- Ship v2 on Friday

## ACTION ITEMS
- Bob: update the changelog by Thursday
- Unassigned: own the migration script

## OPEN QUESTIONS
- Who owns the migration script?

## PARTICIPANTS
- Alice
- Bob"""

_ENV_VARS = ("OLLAMA_API_BASE", "OLLAMA_HOST", "LOG_LEVEL", "LOG_FILE", "PROMPT_DIR")


# Test helper functions
def create_test_config(**overrides) -> config.Config:
    """Create a Config with fast, offline-friendly defaults.

    Args:
        **overrides: Fields to override from defaults

    Returns:
        Config object with test defaults
    """
    defaults = {
        "model": TEST_MODEL,
        "ollama_api_base": TEST_API_BASE,
        "stream_output": False,
        "retry_delay": 0.0,
    }
    defaults.update(overrides)
    return config.Config(**defaults)


class CharTokenizer:
    """One token per character; exact round trip and trivially predictable counts."""

    model_name = "char"
    encoding_name = "char"

    def encode(self, text: str) -> List[int]:
        return [ord(ch) for ch in text]

    def decode(self, tokens: Sequence[int]) -> str:
        return "".join(chr(token) for token in tokens)

    def count(self, text: str) -> int:
        return len(text)


class FakeGenerationProvider:
    """In-memory GenerationProvider recording every call.

    Args:
        responses: Replies returned in order; once exhausted, a numbered default
        responder: Optional callable ``(prompt, call_index) -> reply`` taking precedence
        preflight_error: Exception raised by ``check_available()``
        models: Names returned by ``list_models()``
    """

    def __init__(
        self,
        responses: Optional[List[str]] = None,
        responder: Optional[Callable[[str, int], str]] = None,
        preflight_error: Optional[Exception] = None,
        models: Optional[List[str]] = None,
    ) -> None:
        self.responses = list(responses or [])
        self.responder = responder
        self.preflight_error = preflight_error
        self.models = list(models or [TEST_MODEL])
        self.calls: List[Tuple[str, Optional[str]]] = []
        self.preflight_calls = 0

    @property
    def prompts(self) -> List[str]:
        return [prompt for prompt, _ in self.calls]

    def check_available(self) -> None:
        self.preflight_calls += 1
        if self.preflight_error is not None:
            raise self.preflight_error

    def list_models(self) -> List[str]:
        return list(self.models)

    def _reply(self, prompt: str) -> str:
        index = len(self.calls)
        if self.responder is not None:
            return self.responder(prompt, index)
        if self.responses:
            return self.responses.pop(0)
        return f"summary {index}"

    def stream(self, prompt: str, system_prompt: Optional[str] = None) -> Iterator[str]:
        reply = self._reply(prompt)
        for word in reply.split(" "):
            yield word + " "

    def generate(self, prompt, system_prompt=None, on_fragment=None) -> str:
        reply = self._reply(prompt)
        self.calls.append((prompt, system_prompt))
        if on_fragment is not None:
            for line in reply.splitlines(keepends=True):
                on_fragment(line)
        return reply.strip()


def unreachable_provider() -> FakeGenerationProvider:
    """Provider whose preflight fails like a stopped Ollama server."""
    return FakeGenerationProvider(
        preflight_error=ServiceUnreachableError(
            message="Ollama server is not reachable: connection refused",
            provider="Ollama",
            url=TEST_API_ROOT,
        )
    )


@pytest.fixture(autouse=True)
def _isolate_environment(monkeypatch):
    """Drop environment variables that would leak into Config defaults."""
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    yield


@pytest.fixture(autouse=True)
def _reset_global_state():
    """Unregister any progress factory and drop cached prompt templates."""
    progress.set_progress_factory(None)
    clear_cache()
    yield
    progress.set_progress_factory(None)
    clear_cache()


@pytest.fixture
def char_tokenizer() -> CharTokenizer:
    return CharTokenizer()


@pytest.fixture
def fake_provider() -> FakeGenerationProvider:
    return FakeGenerationProvider()


@pytest.fixture
def transcript_file(tmp_path):
    path = tmp_path / "standup.txt"
    path.write_text(TEST_TRANSCRIPT, encoding="utf-8")
    return path
