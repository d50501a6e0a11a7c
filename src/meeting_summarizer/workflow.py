"""Run orchestration and logging setup.

``run_pipeline`` is the programmatic entry point: it reads the transcript,
runs the provider preflight, summarizes, formats and finally writes the
minutes. Nothing is written unless every generation call succeeded.
"""

from __future__ import annotations

import logging
import os
import time
from contextlib import ExitStack
from pathlib import Path
from typing import Optional, Tuple, TYPE_CHECKING

from . import config, filesystem
from .summarization.pipeline import MinutesPipeline, MinutesResult, MODE_CHUNKED

if TYPE_CHECKING:
    from .providers.base import FragmentCallback, GenerationProvider
    from .tokenization import Tokenizer

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def apply_log_level(level: str, log_file: Optional[str] = None) -> None:
    """Apply logging level to root logger and configure handlers.

    Args:
        level: Log level string (e.g., 'DEBUG', 'INFO', 'WARNING')
        log_file: Optional path to log file. If provided, logs will be written to both
                  console and file.

    Raises:
        ValueError: If log level is invalid
        OSError: If log file cannot be created or written to
    """
    numeric_level = getattr(logging, str(level).upper(), None)
    if not isinstance(numeric_level, int):
        raise ValueError(f"Invalid log level: {level}")

    root_logger = logging.getLogger()
    formatter = logging.Formatter(LOG_FORMAT)

    if not root_logger.handlers:
        # StreamHandler defaults to stderr, keeping stdout free for minutes
        console_handler = logging.StreamHandler()
        console_handler.setLevel(numeric_level)
        console_handler.setFormatter(formatter)
        root_logger.addHandler(console_handler)
        root_logger.setLevel(numeric_level)
    else:
        root_logger.setLevel(numeric_level)
        for handler in root_logger.handlers:
            handler.setLevel(numeric_level)
            handler.setFormatter(formatter)

    # Client libraries are chatty at DEBUG (one line per streamed request)
    for logger_name in ("openai", "httpx", "httpcore"):
        logging.getLogger(logger_name).setLevel(max(numeric_level, logging.WARNING))

    if log_file:
        file_handler_exists = any(
            isinstance(h, logging.FileHandler) and h.baseFilename == os.path.abspath(log_file)
            for h in root_logger.handlers
        )

        if not file_handler_exists:
            log_path = Path(log_file)
            log_path.parent.mkdir(parents=True, exist_ok=True)

            file_handler = logging.FileHandler(log_file, mode="a", encoding="utf-8")
            file_handler.setLevel(numeric_level)
            file_handler.setFormatter(formatter)
            root_logger.addHandler(file_handler)
            logger.info(f"Logging to file: {log_file}")

    logger.setLevel(numeric_level)


def _create_provider(cfg: config.Config) -> "GenerationProvider":
    from .providers.ollama import OllamaProvider

    return OllamaProvider(cfg)


def run_pipeline(
    cfg: config.Config,
    provider: Optional["GenerationProvider"] = None,
    tokenizer: Optional["Tokenizer"] = None,
    on_fragment: Optional["FragmentCallback"] = None,
) -> Tuple[MinutesResult, str]:
    """Summarize the configured transcript and write the minutes.

    Steps:

    1. Read the transcript (file or stdin)
    2. Check that the generation service is reachable
    3. Summarize directly or via map-reduce
    4. Apply the output format
    5. Write the minutes (file or stdout)

    Args:
        cfg: Configuration object with all run settings
        provider: Generation provider (default: an OllamaProvider owned by this call)
        tokenizer: Tokenizer override (default: built from ``cfg.tokenizer_model``)
        on_fragment: Optional callback receiving streamed fragments live

    Returns:
        Tuple of the run result and a human-readable summary message

    Raises:
        InputReadError: If the transcript cannot be read
        ServiceUnreachableError: If the generation service is down
        ModelNotFoundError: If the configured model is not available
        GenerationFailedError: If a generation call fails after retries
        OutputWriteError: If the minutes cannot be written
    """
    start = time.monotonic()
    transcript = filesystem.read_transcript(cfg.input_path)

    with ExitStack() as stack:
        if provider is None:
            provider = stack.enter_context(_create_provider(cfg))  # type: ignore[arg-type]
        pipeline = MinutesPipeline(cfg, provider, tokenizer=tokenizer, on_fragment=on_fragment)
        result = pipeline.run(transcript)

    destination = filesystem.write_minutes(cfg.output_path, result.text)
    elapsed = time.monotonic() - start

    if result.mode == MODE_CHUNKED:
        detail = f"{result.chunk_count} chunks, {result.generation_calls} generation calls"
    else:
        detail = "single generation call"
    summary = (
        f"Minutes written to {destination} "
        f"({result.token_count} transcript tokens, {detail}, {elapsed:.1f}s)"
    )
    logger.info(summary)
    return result, summary
