"""Lightweight prompt management for the summarization pipeline.

Features:
- File-based prompts (Jinja2 templates)
- Loading by logical name (e.g. "minutes/chunk_v1")
- In-memory caching to avoid repeated disk I/O
- Optional templating parameters via Jinja2
"""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Any

from jinja2 import Template

# Root directory where prompt templates live (this package).
# Can be overridden via environment variable PROMPT_DIR
_PROMPT_DIR = Path(__file__).resolve().parent


class PromptNotFoundError(FileNotFoundError):
    """Raised when a requested prompt template is not found on disk."""


def set_prompt_dir(path: str | Path) -> None:
    """Set the root directory for prompt templates.

    Args:
        path: Path to prompt directory
    """
    global _PROMPT_DIR
    _PROMPT_DIR = Path(path).resolve()
    # Clear cache when directory changes
    _load_template.cache_clear()


def get_prompt_dir() -> Path:
    """Return the active prompt directory (PROMPT_DIR env var wins)."""
    env_prompt_dir = os.getenv("PROMPT_DIR")
    if env_prompt_dir:
        return Path(env_prompt_dir).resolve()
    return _PROMPT_DIR


def clear_cache() -> None:
    """Drop cached templates so edits on disk are picked up."""
    _load_template.cache_clear()


@lru_cache(maxsize=None)
def _load_template(name: str) -> Template:
    """
    Load and cache a Jinja2 template by logical name.

    Example:
        name="minutes/chunk_v1" -> prompts/minutes/chunk_v1.j2

    Raises:
        PromptNotFoundError: If template file doesn't exist
    """
    prompt_dir = get_prompt_dir()

    # Normalize: allow both "minutes/chunk_v1" and "minutes/chunk_v1.j2"
    if name.endswith(".j2"):
        rel_path = Path(name)
    else:
        rel_path = Path(name + ".j2")

    path = prompt_dir / rel_path

    if not path.exists():
        raise PromptNotFoundError(
            f"Prompt template not found: {path}\n"
            f"  Searched in: {prompt_dir}\n"
            f"  Requested name: {name}"
        )

    text = path.read_text(encoding="utf-8")
    return Template(text)


def render_prompt(name: str, **params: Any) -> str:
    """
    Render a prompt template with optional parameters.

    Args:
        name: Logical name, e.g. "minutes/merge_v1"
        **params: Template parameters passed to Jinja2 .render()

    Returns:
        Rendered prompt string (stripped of leading/trailing whitespace).

    Example:
        >>> render_prompt("minutes/direct_v1", transcript="Alice: hi")
        "Write the meeting minutes for the transcript below.\\n### TRANSCRIPT BELOW\\nAlice: hi"

    Raises:
        PromptNotFoundError: If template file doesn't exist
    """
    tmpl = _load_template(name)
    return tmpl.render(**params).strip()
