"""Command-line interface for meeting_summarizer."""

from __future__ import annotations

import argparse
import logging
import sys
from contextlib import contextmanager
from pathlib import Path
from typing import (
    Any,
    Callable,
    cast,
    Dict,
    Iterator,
    List,
    Optional,
    Sequence,
    Set,
    TextIO,
    Tuple,
    TYPE_CHECKING,
)

from pydantic import ValidationError

from . import __version__, config, progress, workflow
from .exceptions import SummarizerError
from .providers.ollama import OllamaProvider

if TYPE_CHECKING:  # pragma: no cover - typing only
    import tqdm

    from .providers.base import FragmentCallback
    from .summarization.pipeline import MinutesResult

_LOGGER = logging.getLogger(__name__)

# Progress bar constants
TQDM_NCOLS = 80
TQDM_MIN_INTERVAL = 0.5
TQDM_MIN_ITERS = 1

USAGE_HINT = "Usage: meeting-summarizer <transcript.txt|-> [output.txt|-]"


class _TqdmProgress:
    """Simple adapter that exposes tqdm's update interface."""

    def __init__(self, bar: "tqdm.tqdm") -> None:
        self._bar = bar

    def update(self, advance: int) -> None:
        self._bar.update(advance)


@contextmanager
def _tqdm_progress(total: Optional[int], description: str) -> Iterator[_TqdmProgress]:
    """Create a tqdm progress context matching the shared progress API."""
    from tqdm import tqdm

    kwargs: Dict[str, Any] = {"desc": description, "file": sys.stderr}
    if total is None:
        kwargs.update(
            total=None,
            unit="",
            leave=False,
            miniters=TQDM_MIN_ITERS,
            mininterval=TQDM_MIN_INTERVAL,
            bar_format="{desc}: {elapsed}",
            ncols=TQDM_NCOLS,
            dynamic_ncols=False,
        )
    else:
        kwargs.update(total=total, unit="chunk", leave=True)

    with tqdm(**kwargs) as bar:
        yield _TqdmProgress(bar)


def _validate_budget_args(args: argparse.Namespace, errors: List[str]) -> None:
    """Validate token budget arguments.

    Args:
        args: Parsed arguments
        errors: List to append validation errors to
    """
    if args.ctx_limit is not None and args.ctx_limit <= 0:
        errors.append(f"--ctx-limit must be positive, got: {args.ctx_limit}")
    if args.chunk_size is not None and args.chunk_size <= 0:
        errors.append(f"--chunk-size must be positive, got: {args.chunk_size}")
    if args.overlap is not None and not 0.0 <= args.overlap < 1.0:
        errors.append(f"--overlap must be in [0, 1), got: {args.overlap}")


def _validate_generation_args(args: argparse.Namespace, errors: List[str]) -> None:
    """Validate generation and retry arguments.

    Args:
        args: Parsed arguments
        errors: List to append validation errors to
    """
    if args.temperature is not None and not (
        config.config_constants.MIN_TEMPERATURE
        <= args.temperature
        <= config.config_constants.MAX_TEMPERATURE
    ):
        errors.append(f"--temperature must be between 0.0 and 2.0, got: {args.temperature}")
    if args.max_output_tokens is not None and args.max_output_tokens <= 0:
        errors.append(f"--max-output-tokens must be positive, got: {args.max_output_tokens}")
    if args.max_retries is not None and args.max_retries < 0:
        errors.append(f"--max-retries must be non-negative, got: {args.max_retries}")
    if args.retry_delay is not None and args.retry_delay < 0:
        errors.append(f"--retry-delay must be non-negative, got: {args.retry_delay}")
    if args.ollama_timeout is not None and args.ollama_timeout <= 0:
        errors.append(f"--ollama-timeout must be positive, got: {args.ollama_timeout}")


def validate_args(args: argparse.Namespace) -> None:
    """Validate parsed CLI arguments and raise ValueError when invalid."""
    errors: List[str] = []

    if not args.list_models:
        input_value = (args.input_path or "").strip()
        if not input_value:
            errors.append(f"A transcript path is required ('-' reads stdin). {USAGE_HINT}")
        elif input_value != config.STDIO_SENTINEL and not Path(input_value).is_file():
            errors.append(f"Transcript file not found: {input_value}")

    _validate_budget_args(args, errors)
    _validate_generation_args(args, errors)

    if args.system_prompt_file and not Path(args.system_prompt_file).is_file():
        errors.append(f"--system-prompt-file not found: {args.system_prompt_file}")

    if errors:
        raise ValueError("Invalid input parameters:\n  " + "\n  ".join(errors))


def _add_io_arguments(parser: argparse.ArgumentParser) -> None:
    """Add input/output and general arguments to parser.

    Args:
        parser: Argument parser to add arguments to
    """
    parser.add_argument("--config", default=None, help="Path to configuration file (JSON or YAML)")
    parser.add_argument(
        "input_path",
        metavar="input",
        nargs="?",
        default=None,
        help="Transcript file ('-' reads stdin)",
    )
    parser.add_argument(
        "output_path",
        metavar="output",
        nargs="?",
        default=None,
        help=f"Minutes file ('-' writes stdout, default: {config.DEFAULT_OUTPUT_PATH})",
    )
    parser.add_argument(
        "--format",
        dest="output_format",
        choices=config.VALID_OUTPUT_FORMATS,
        default=None,
        help="Output format (default: markdown)",
    )
    parser.add_argument("--version", action="store_true", help="Show program version and exit")
    parser.add_argument(
        "--log-file",
        default=None,
        help="Path to log file (logs will be written to both console and file)",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        type=str.upper,
        help="Logging level (e.g., DEBUG, INFO)",
    )


def _add_model_arguments(parser: argparse.ArgumentParser) -> None:
    """Add model and Ollama service arguments to parser.

    Args:
        parser: Argument parser to add arguments to
    """
    group = parser.add_argument_group("Model")
    group.add_argument(
        "--model", default=None, help=f"Ollama model (default: {config.DEFAULT_MODEL})"
    )
    group.add_argument(
        "--tokenizer-model",
        default=None,
        help="Model name used to pick the token counter "
        f"(default: {config.DEFAULT_TOKENIZER_MODEL})",
    )
    group.add_argument(
        "--ollama-api-base",
        default=None,
        help="Ollama OpenAI-compatible base URL (default: OLLAMA_API_BASE, OLLAMA_HOST "
        f"or {config.DEFAULT_OLLAMA_API_BASE})",
    )
    group.add_argument(
        "--ollama-timeout",
        type=int,
        default=None,
        help="Generation read timeout in seconds "
        f"(default: {config.DEFAULT_OLLAMA_TIMEOUT_SECONDS})",
    )
    group.add_argument(
        "--no-validate-model",
        dest="validate_model",
        action="store_false",
        default=None,
        help="Skip checking that the model is pulled before generating",
    )
    group.add_argument(
        "--list-models",
        action="store_true",
        help="List models available on the Ollama server and exit",
    )


def _add_summarization_arguments(parser: argparse.ArgumentParser) -> None:
    """Add token budget and generation arguments to parser.

    Args:
        parser: Argument parser to add arguments to
    """
    group = parser.add_argument_group("Summarization")
    group.add_argument(
        "--ctx-limit",
        type=int,
        default=None,
        help=f"Context limit in tokens; larger transcripts are chunked "
        f"(default: {config.DEFAULT_CTX_LIMIT})",
    )
    group.add_argument(
        "--chunk-size",
        type=int,
        default=None,
        help=f"Chunk size in tokens (default: {config.DEFAULT_CHUNK_SIZE})",
    )
    group.add_argument(
        "--overlap",
        type=float,
        default=None,
        help="Overlap fraction between chunks, 0 <= f < 1 "
        f"(default: {config.DEFAULT_CHUNK_OVERLAP})",
    )
    group.add_argument(
        "--system-prompt-file",
        default=None,
        help="File containing a custom system prompt",
    )
    group.add_argument(
        "--temperature",
        type=float,
        default=None,
        help=f"Sampling temperature (default: {config.DEFAULT_TEMPERATURE})",
    )
    group.add_argument(
        "--max-output-tokens",
        type=int,
        default=None,
        help="Max tokens generated per call (default: model default)",
    )
    group.add_argument(
        "--max-retries",
        type=int,
        default=None,
        help=f"Retries per generation call (default: {config.DEFAULT_MAX_RETRIES})",
    )
    group.add_argument(
        "--retry-delay",
        type=float,
        default=None,
        help="Base delay in seconds; retry k waits k * delay "
        f"(default: {config.DEFAULT_RETRY_DELAY_SECONDS})",
    )
    group.add_argument(
        "--no-stream",
        dest="stream_output",
        action="store_false",
        default=None,
        help="Do not echo generated text while it streams",
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="meeting-summarizer",
        description="Summarize a meeting transcript into minutes with a local Ollama model.",
    )
    _add_io_arguments(parser)
    _add_model_arguments(parser)
    _add_summarization_arguments(parser)
    return parser


def _config_keys() -> Set[str]:
    """Return the keys a config file may use (field names and aliases)."""
    keys: Set[str] = set()
    for name, field in config.Config.model_fields.items():
        keys.add(name)
        if field.alias:
            keys.add(field.alias)
    return keys


def _load_and_merge_config(
    parser: argparse.ArgumentParser, config_path: str, argv: Optional[Sequence[str]]
) -> argparse.Namespace:
    """Load configuration file and merge with CLI arguments.

    Values from the file become parser defaults, so explicit flags still win.

    Args:
        parser: Argument parser
        config_path: Path to configuration file
        argv: Command-line arguments

    Returns:
        Parsed arguments with config merged

    Raises:
        ValueError: If config is invalid
    """
    config_data = config.load_config_file(config_path)
    unknown_keys = [key for key in config_data.keys() if key not in _config_keys()]
    if unknown_keys:
        raise ValueError("Unknown config option(s): " + ", ".join(sorted(unknown_keys)))

    try:
        config_model = config.Config.model_validate(config_data)
    except ValidationError as exc:
        raise ValueError(f"Invalid configuration: {exc}") from exc

    defaults_updates: Dict[str, Any] = config_model.model_dump(exclude_unset=True)
    parser.set_defaults(**defaults_updates)
    return parser.parse_args(argv)


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    """Parse CLI arguments, optionally merging configuration file defaults."""
    parser = _build_parser()

    initial_args, _ = parser.parse_known_args(argv)

    if initial_args.version:
        print(f"meeting_summarizer {__version__}")
        raise SystemExit(0)

    if initial_args.config:
        args = _load_and_merge_config(parser, initial_args.config, argv)
    else:
        args = parser.parse_args(argv)

    validate_args(args)
    return args


def _read_system_prompt(path: Optional[str]) -> Optional[str]:
    if not path:
        return None
    try:
        return Path(path).read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise ValueError(f"Failed to read system prompt file {path}: {exc}") from exc


def _build_config(args: argparse.Namespace) -> config.Config:
    """Materialize a Config object from already-validated CLI arguments."""
    system_prompt = _read_system_prompt(args.system_prompt_file)
    payload: Dict[str, Any] = {
        "input_path": args.input_path,
        "output_path": args.output_path,
        "model": args.model,
        "tokenizer_model": args.tokenizer_model,
        "ctx_limit": args.ctx_limit,
        "chunk_size": args.chunk_size,
        "overlap": args.overlap,
        "system_prompt": system_prompt or getattr(args, "system_prompt", None),
        "temperature": args.temperature,
        "max_output_tokens": args.max_output_tokens,
        "stream_output": args.stream_output,
        "ollama_api_base": args.ollama_api_base,
        "ollama_timeout": args.ollama_timeout,
        "validate_model": args.validate_model,
        "max_retries": args.max_retries,
        "retry_delay": args.retry_delay,
        "output_format": args.output_format,
        "log_level": args.log_level,
        "log_file": args.log_file,
    }
    # Unset options fall through to Config defaults and environment variables
    payload = {key: value for key, value in payload.items() if value is not None}
    return cast(config.Config, config.Config.model_validate(payload))


def _log_configuration(cfg: config.Config, logger: logging.Logger) -> None:
    """Log all configuration values in a structured format.

    Args:
        cfg: Configuration object
        logger: Logger instance to use
    """
    logger.info("=" * 80)
    logger.info("Configuration")
    logger.info("=" * 80)

    logger.info("I/O:")
    logger.info(f"  Input: {cfg.input_path if not cfg.reads_stdin else 'stdin'}")
    logger.info(f"  Output: {cfg.output_path if not cfg.writes_stdout else 'stdout'}")
    logger.info(f"  Format: {cfg.output_format}")
    logger.info(f"  Log Level: {cfg.log_level}")
    logger.info(f"  Log File: {cfg.log_file or 'console only'}")

    logger.info("Model:")
    logger.info(f"  Ollama Model: {cfg.model}")
    logger.info(f"  Ollama API Base: {cfg.ollama_api_base}")
    logger.info(f"  Timeout: {cfg.ollama_timeout}s")
    logger.info(f"  Validate Model: {cfg.validate_model}")
    logger.info(f"  Tokenizer Model: {cfg.tokenizer_model}")

    logger.info("Token Budget:")
    logger.info(f"  Context Limit: {cfg.ctx_limit} tokens")
    logger.info(f"  Chunk Size: {cfg.chunk_size} tokens")
    logger.info(f"  Overlap: {cfg.overlap:.0%}")

    logger.info("Generation:")
    logger.info(f"  Temperature: {cfg.temperature}")
    logger.info(f"  Max Output Tokens: {cfg.max_output_tokens or 'model default'}")
    logger.info(f"  Max Retries: {cfg.max_retries} (delay {cfg.retry_delay}s x attempt)")
    logger.info(f"  Stream Output: {cfg.stream_output}")
    if cfg.system_prompt:
        logger.info(f"  System Prompt: {cfg.system_prompt[:80]}...")
    else:
        logger.info("  System Prompt: default")

    logger.info("=" * 80)


def _make_echo(cfg: config.Config, stream: Optional[TextIO] = None) -> Optional["FragmentCallback"]:
    """Return a callback echoing fragments live, or None when streaming is off.

    When the minutes go to stdout the echo goes to stderr so the two never mix.
    """
    if not cfg.stream_output:
        return None
    target = stream or (sys.stderr if cfg.writes_stdout else sys.stdout)

    def _echo(fragment: str) -> None:
        target.write(fragment)
        target.flush()

    return _echo


def _list_models(cfg: config.Config, log: logging.Logger) -> int:
    with OllamaProvider(cfg) as provider:
        try:
            models = provider.list_models()
        except SummarizerError as exc:
            log.error(f"Error: {exc}")
            return 1
    if not models:
        log.warning("No models installed. Pull one with: ollama pull <model>")
        return 0
    for name in models:
        print(name)
    return 0


def main(
    argv: Optional[Sequence[str]] = None,
    *,
    apply_log_level_fn: Optional[Callable[[str, Optional[str]], None]] = None,
    run_pipeline_fn: Optional[Callable[..., Tuple["MinutesResult", str]]] = None,
    logger: Optional[logging.Logger] = None,
) -> int:
    """Entry point for the CLI; returns an exit status code."""
    progress.set_progress_factory(_tqdm_progress)
    log = logger or _LOGGER
    if apply_log_level_fn is None:
        apply_log_level_fn = workflow.apply_log_level
    if run_pipeline_fn is None:
        run_pipeline_fn = workflow.run_pipeline

    try:
        args = parse_args(argv)
    except SystemExit as exc:
        # --help and --version exit 0; argparse usage errors exit non-zero
        return 0 if exc.code in (0, None) else 1
    except ValueError as exc:
        log.error(f"Error: {exc}")
        return 1

    try:
        cfg = _build_config(args)
    except (ValidationError, ValueError) as exc:
        log.error(f"Invalid configuration: {exc}")
        return 1

    apply_log_level_fn(cfg.log_level, cfg.log_file)

    if args.list_models:
        return _list_models(cfg, log)

    log.info("Starting meeting summarization")
    _log_configuration(cfg, log)

    echo = _make_echo(cfg)
    try:
        _, summary = run_pipeline_fn(cfg, on_fragment=echo)
    except SummarizerError as exc:
        log.error(f"Error: {exc}")
        return 1
    except Exception as exc:  # pragma: no cover
        log.error(f"Unexpected failure: {exc}")
        return 1
    finally:
        if echo is not None:
            echo("\n")

    log.info(summary)
    return 0


if __name__ == "__main__":  # pragma: no cover - script entry
    raise SystemExit(main())
