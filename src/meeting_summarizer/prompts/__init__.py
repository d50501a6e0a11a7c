"""Prompt template management.

This package contains:
- Prompt store (store.py): Loading and caching of Jinja2 prompt templates
- Meeting minutes prompts (minutes/): system, direct, chunk (map) and merge (reduce)
"""

from .store import (
    clear_cache,
    get_prompt_dir,
    PromptNotFoundError,
    render_prompt,
    set_prompt_dir,
)

__all__ = [
    "PromptNotFoundError",
    "clear_cache",
    "get_prompt_dir",
    "render_prompt",
    "set_prompt_dir",
]
