"""Transcript and minutes I/O for meeting_summarizer."""

from __future__ import annotations

import logging
import os
import sys
from typing import Optional, TextIO

from . import config_constants
from .exceptions import InputReadError, OutputWriteError

logger = logging.getLogger(__name__)


def is_stdio(path: Optional[str]) -> bool:
    """Return True when ``path`` selects stdin/stdout (``-`` or unset)."""
    return path is None or path.strip() == config_constants.STDIO_SENTINEL


def read_transcript(path: Optional[str], stdin: Optional[TextIO] = None) -> str:
    """Read a UTF-8 transcript from a file, or from stdin for ``-`` / ``None``.

    Raises:
        InputReadError: If the source cannot be read, is not UTF-8, or is empty
    """
    source = "<stdin>" if is_stdio(path) else str(path)
    try:
        if is_stdio(path):
            text = (stdin or sys.stdin).read()
        else:
            with open(str(path), "r", encoding=config_constants.TRANSCRIPT_ENCODING) as handle:
                text = handle.read()
    except FileNotFoundError as exc:
        raise InputReadError(f"Transcript not found: {source}", path=source) from exc
    except IsADirectoryError as exc:
        raise InputReadError(f"Transcript path is a directory: {source}", path=source) from exc
    except UnicodeDecodeError as exc:
        raise InputReadError(
            f"Transcript is not valid {config_constants.TRANSCRIPT_ENCODING}: {source}",
            path=source,
        ) from exc
    except OSError as exc:
        raise InputReadError(f"Failed to read transcript {source}: {exc}", path=source) from exc

    if not text.strip():
        raise InputReadError(f"Transcript is empty: {source}", path=source)
    logger.debug(f"Read transcript from {source} ({len(text)} chars)")
    return text


def write_file(path: str, text: str) -> None:
    """Write text to disk as UTF-8, creating parent directories as needed."""
    os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
    with open(path, "w", encoding=config_constants.TRANSCRIPT_ENCODING) as handle:
        handle.write(text)


def write_minutes(path: str, minutes: str, stdout: Optional[TextIO] = None) -> str:
    """Write the final minutes followed by a newline.

    Args:
        path: Destination file, or ``-`` for stdout
        minutes: Final minutes text
        stdout: Stream used for ``-`` (default: ``sys.stdout``)

    Returns:
        The destination actually written (``<stdout>`` or the file path)

    Raises:
        OutputWriteError: If the destination cannot be written
    """
    payload = minutes + "\n"
    if is_stdio(path):
        stream = stdout or sys.stdout
        stream.write(payload)
        stream.flush()
        return "<stdout>"
    try:
        write_file(path, payload)
    except OSError as exc:
        raise OutputWriteError(f"Failed to write minutes to {path}: {exc}", path=path) from exc
    logger.debug(f"Wrote {len(payload)} chars to {path}")
    return path
