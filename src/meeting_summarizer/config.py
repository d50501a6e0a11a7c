from __future__ import annotations

import json
import math
import os
from pathlib import Path
from typing import Any, Dict, Literal, Optional

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from . import config_constants


# SKIP .env loading in test environments - tests should use Config objects and
# environment variables directly, never rely on .env files
def _is_test_environment() -> bool:
    """Check if we're running in a test environment."""
    import sys

    if "pytest" in sys.modules or "PYTEST_CURRENT_TEST" in os.environ:
        return True
    if os.environ.get("TESTING", "").lower() in ("1", "true", "yes"):
        return True
    return False


if not _is_test_environment():
    try:
        load_dotenv(override=False)
    except (PermissionError, OSError):
        # If loading fails, continue without .env file
        pass

# Re-exported for convenience
DEFAULT_LOG_LEVEL = config_constants.DEFAULT_LOG_LEVEL
VALID_LOG_LEVELS = config_constants.VALID_LOG_LEVELS
STDIO_SENTINEL = config_constants.STDIO_SENTINEL
DEFAULT_OUTPUT_PATH = config_constants.DEFAULT_OUTPUT_PATH
DEFAULT_OUTPUT_FORMAT = config_constants.DEFAULT_OUTPUT_FORMAT
VALID_OUTPUT_FORMATS = config_constants.VALID_OUTPUT_FORMATS
DEFAULT_MODEL = config_constants.DEFAULT_MODEL
DEFAULT_TOKENIZER_MODEL = config_constants.DEFAULT_TOKENIZER_MODEL
DEFAULT_CTX_LIMIT = config_constants.DEFAULT_CTX_LIMIT
DEFAULT_CHUNK_SIZE = config_constants.DEFAULT_CHUNK_SIZE
DEFAULT_CHUNK_OVERLAP = config_constants.DEFAULT_CHUNK_OVERLAP
DEFAULT_TEMPERATURE = config_constants.DEFAULT_TEMPERATURE
DEFAULT_MAX_RETRIES = config_constants.DEFAULT_MAX_RETRIES
DEFAULT_RETRY_DELAY_SECONDS = config_constants.DEFAULT_RETRY_DELAY_SECONDS
DEFAULT_OLLAMA_API_BASE = config_constants.DEFAULT_OLLAMA_API_BASE
DEFAULT_OLLAMA_TIMEOUT_SECONDS = config_constants.DEFAULT_OLLAMA_TIMEOUT_SECONDS

OutputFormat = Literal["markdown", "plain", "json"]


class Config(BaseModel):
    """Configuration model for a meeting summarization run.

    The model is immutable (frozen) once constructed and is passed explicitly to
    every component; nothing reads configuration from module globals.

    Settings are grouped as:

    - **I/O**: transcript source and minutes destination (``-`` means stdio)
    - **Model**: Ollama model and the tokenizer used for budget accounting
    - **Token budget**: context limit, chunk size and overlap fraction
    - **Generation**: system prompt, temperature, output token cap
    - **Resilience**: retry count and linear backoff delay
    - **Output**: markdown, plain or json
    - **Logging**: log level and optional log file

    Attributes:
        input_path: Transcript path; ``None`` or ``-`` reads stdin.
        output_path: Minutes path; ``-`` writes to stdout.
        model: Ollama model identifier (e.g. ``gemma3:27b``).
        tokenizer_model: Name used to select the tiktoken encoding.
        ctx_limit: Maximum tokens (transcript + system prompt) for a single-shot call.
        chunk_size: Window size in tokens for chunked summarization.
        overlap: Fraction of each window repeated in the next one (0 <= f < 1).
        system_prompt: System instruction; rendered from the default template when unset.
        output_format: Output transform applied to the final minutes.
    """

    # I/O
    input_path: Optional[str] = Field(
        default=None,
        alias="input",
        description="Transcript file path; '-' or unset reads from stdin.",
    )
    output_path: str = Field(
        default=DEFAULT_OUTPUT_PATH,
        alias="output",
        description="Minutes destination; '-' writes to stdout.",
    )

    # Model
    model: str = Field(default=DEFAULT_MODEL, description="Ollama model identifier")
    tokenizer_model: str = Field(
        default=DEFAULT_TOKENIZER_MODEL,
        description="Model name used to pick the tiktoken encoding for token counting",
    )

    # Token budget
    ctx_limit: int = Field(
        default=DEFAULT_CTX_LIMIT,
        description="Context limit in tokens; larger inputs are chunked",
    )
    chunk_size: int = Field(default=DEFAULT_CHUNK_SIZE, description="Chunk size in tokens")
    overlap: float = Field(
        default=DEFAULT_CHUNK_OVERLAP,
        description="Overlap fraction between consecutive chunks (0 <= overlap < 1)",
    )

    # Generation
    system_prompt: Optional[str] = Field(
        default=None,
        description="System instruction text (default: rendered from minutes/system_v1)",
    )
    temperature: float = Field(
        default=DEFAULT_TEMPERATURE,
        description="Sampling temperature (0.0-2.0, lower = more deterministic)",
    )
    max_output_tokens: Optional[int] = Field(
        default=None,
        description="Max tokens generated per call (None = model default)",
    )
    stream_output: bool = Field(
        default=True,
        description="Echo generated fragments live while they stream in",
    )

    # Ollama service
    ollama_api_base: str = Field(
        default=None,  # type: ignore[assignment]
        validate_default=True,
        description="Ollama OpenAI-compatible base URL (default: http://localhost:11434/v1). "
        "Can be set via OLLAMA_API_BASE or OLLAMA_HOST environment variables.",
    )
    ollama_timeout: int = Field(
        default=DEFAULT_OLLAMA_TIMEOUT_SECONDS,
        description="Read timeout in seconds for generation requests",
    )
    validate_model: bool = Field(
        default=True,
        description="Check that the model is pulled before generating",
    )

    # Resilience
    max_retries: int = Field(
        default=DEFAULT_MAX_RETRIES,
        description="Retries per generation call after the first attempt",
    )
    retry_delay: float = Field(
        default=DEFAULT_RETRY_DELAY_SECONDS,
        description="Base delay in seconds; retry k waits k * retry_delay",
    )

    # Output
    output_format: OutputFormat = Field(
        default=DEFAULT_OUTPUT_FORMAT,  # type: ignore[assignment]
        alias="format",
        description="Output format: markdown, plain or json",
    )

    # Logging
    log_level: str = Field(
        default=None,  # type: ignore[assignment]
        validate_default=True,
        description="Logging level (LOG_LEVEL env var applies when unset)",
    )
    log_file: Optional[str] = Field(
        default=None,
        validate_default=True,
        description="Optional log file path (LOG_FILE env var applies when unset)",
    )

    model_config = ConfigDict(
        extra="forbid",
        populate_by_name=True,
        frozen=True,
        protected_namespaces=(),
    )

    @field_validator("input_path", mode="before")
    @classmethod
    def _strip_input(cls, value: Any) -> Optional[str]:
        if value is None:
            return None
        value = str(value).strip()
        return value or None

    @field_validator("output_path", mode="before")
    @classmethod
    def _coerce_output(cls, value: Any) -> str:
        if value is None:
            return DEFAULT_OUTPUT_PATH
        value_str = str(value).strip()
        return value_str or DEFAULT_OUTPUT_PATH

    @field_validator("model", "tokenizer_model", mode="before")
    @classmethod
    def _coerce_model_name(cls, value: Any) -> str:
        if value is None:
            return ""
        return str(value).strip()

    @field_validator("model", mode="after")
    @classmethod
    def _validate_model(cls, value: str) -> str:
        if not value:
            raise ValueError("model cannot be empty")
        return value

    @field_validator("tokenizer_model", mode="after")
    @classmethod
    def _default_tokenizer_model(cls, value: str) -> str:
        return value or DEFAULT_TOKENIZER_MODEL

    @field_validator("ctx_limit", mode="before")
    @classmethod
    def _ensure_ctx_limit(cls, value: Any) -> int:
        if value is None or value == "":
            return DEFAULT_CTX_LIMIT
        try:
            limit = int(value)
        except (TypeError, ValueError) as exc:
            raise ValueError("ctx_limit must be an integer") from exc
        if limit < config_constants.MIN_CTX_LIMIT:
            raise ValueError(f"ctx_limit must be positive, got: {limit}")
        return limit

    @field_validator("chunk_size", mode="before")
    @classmethod
    def _ensure_chunk_size(cls, value: Any) -> int:
        if value is None or value == "":
            return DEFAULT_CHUNK_SIZE
        try:
            size = int(value)
        except (TypeError, ValueError) as exc:
            raise ValueError("chunk_size must be an integer") from exc
        if size < config_constants.MIN_CHUNK_SIZE:
            raise ValueError(f"chunk_size must be positive, got: {size}")
        return size

    @field_validator("overlap", mode="before")
    @classmethod
    def _ensure_overlap(cls, value: Any) -> float:
        if value is None or value == "":
            return DEFAULT_CHUNK_OVERLAP
        try:
            fraction = float(value)
        except (TypeError, ValueError) as exc:
            raise ValueError("overlap must be a number") from exc
        if not 0.0 <= fraction < 1.0:
            raise ValueError(f"overlap must be in [0, 1), got: {fraction}")
        return fraction

    @field_validator("system_prompt", mode="before")
    @classmethod
    def _strip_system_prompt(cls, value: Any) -> Optional[str]:
        if value is None:
            return None
        value = str(value).strip()
        return value or None

    @field_validator("temperature", mode="before")
    @classmethod
    def _validate_temperature(cls, value: Any) -> float:
        """Validate temperature is in valid range (0.0-2.0)."""
        if value is None or value == "":
            return DEFAULT_TEMPERATURE
        try:
            temp = float(value)
        except (TypeError, ValueError) as exc:
            raise ValueError("temperature must be a number") from exc
        if temp < config_constants.MIN_TEMPERATURE or temp > config_constants.MAX_TEMPERATURE:
            raise ValueError("temperature must be between 0.0 and 2.0")
        return temp

    @field_validator("max_output_tokens", mode="before")
    @classmethod
    def _coerce_max_output_tokens(cls, value: Any) -> Optional[int]:
        if value is None or value == "":
            return None
        try:
            parsed = int(value)
        except (TypeError, ValueError) as exc:
            raise ValueError("max_output_tokens must be an integer") from exc
        return parsed if parsed > 0 else None

    @field_validator("ollama_api_base", mode="before")
    @classmethod
    def _load_ollama_api_base_from_env(cls, value: Any) -> str:
        """Load Ollama API base URL from environment variable if not provided."""
        if value is not None and str(value).strip():
            return str(value).strip()
        # Check environment variables (loaded from .env by dotenv)
        env_base = os.getenv("OLLAMA_API_BASE")
        if env_base and env_base.strip():
            return env_base.strip()
        # OLLAMA_HOST is the server's own variable and has no /v1 suffix
        env_host = os.getenv("OLLAMA_HOST")
        if env_host and env_host.strip():
            host = env_host.strip().rstrip("/")
            if "://" not in host:
                host = f"http://{host}"
            return f"{host}/v1"
        return DEFAULT_OLLAMA_API_BASE

    @field_validator("ollama_timeout", mode="before")
    @classmethod
    def _ensure_ollama_timeout(cls, value: Any) -> int:
        if value is None or value == "":
            return DEFAULT_OLLAMA_TIMEOUT_SECONDS
        try:
            timeout = int(value)
        except (TypeError, ValueError) as exc:
            raise ValueError("ollama_timeout must be an integer") from exc
        return max(1, timeout)

    @field_validator("max_retries", mode="before")
    @classmethod
    def _ensure_max_retries(cls, value: Any) -> int:
        if value is None or value == "":
            return DEFAULT_MAX_RETRIES
        try:
            retries = int(value)
        except (TypeError, ValueError) as exc:
            raise ValueError("max_retries must be an integer") from exc
        if retries < 0:
            raise ValueError(f"max_retries must be non-negative, got: {retries}")
        return retries

    @field_validator("retry_delay", mode="before")
    @classmethod
    def _ensure_retry_delay(cls, value: Any) -> float:
        if value is None or value == "":
            return DEFAULT_RETRY_DELAY_SECONDS
        try:
            delay = float(value)
        except (TypeError, ValueError) as exc:
            raise ValueError("retry_delay must be a number") from exc
        if delay < 0:
            raise ValueError(f"retry_delay must be non-negative, got: {delay}")
        return delay

    @field_validator("output_format", mode="before")
    @classmethod
    def _normalize_output_format(cls, value: Any) -> str:
        if value is None or value == "":
            return DEFAULT_OUTPUT_FORMAT
        value_str = str(value).strip().lower()
        if value_str not in VALID_OUTPUT_FORMATS:
            raise ValueError(f"output_format must be one of {VALID_OUTPUT_FORMATS}, got: {value}")
        return value_str

    @field_validator("log_level", mode="before")
    @classmethod
    def _normalize_log_level(cls, value: Any) -> str:
        """Normalize log level value; LOG_LEVEL env var applies when unset."""
        if value is None or str(value).strip() == "":
            env_level = os.getenv("LOG_LEVEL")
            if env_level and env_level.strip():
                return env_level.strip().upper()
            return DEFAULT_LOG_LEVEL
        return str(value).strip().upper()

    @field_validator("log_level", mode="after")
    @classmethod
    def _validate_log_level(cls, value: str) -> str:
        """Validate log level is one of the valid levels."""
        if value not in VALID_LOG_LEVELS:
            raise ValueError(f"log_level must be one of {VALID_LOG_LEVELS}, got: {value}")
        return value

    @field_validator("log_file", mode="before")
    @classmethod
    def _load_log_file_from_env(cls, value: Any) -> Optional[str]:
        """Load log file path from environment variable if not provided."""
        if value is not None and str(value).strip():
            return str(value).strip()
        env_log_file = os.getenv("LOG_FILE")
        if env_log_file and env_log_file.strip():
            return env_log_file.strip()
        return None

    @model_validator(mode="after")
    def _validate_chunk_step(self) -> "Config":
        """Reject chunk settings whose window step would not advance."""
        step = math.floor(self.chunk_size * (1 - self.overlap))
        if step < 1:
            raise ValueError(
                f"chunk_size={self.chunk_size} with overlap={self.overlap} gives a chunk "
                "step below 1 token; lower the overlap or raise the chunk size"
            )
        return self

    @property
    def reads_stdin(self) -> bool:
        return self.input_path in (None, STDIO_SENTINEL)

    @property
    def writes_stdout(self) -> bool:
        return self.output_path == STDIO_SENTINEL


def load_config_file(
    path: str,
) -> Dict[str, Any]:
    """Load configuration from a JSON or YAML file.

    The file format is auto-detected from the file extension (`.json`, `.yaml`,
    or `.yml`). The returned dictionary can be unpacked into `Config`.

    Args:
        path: Path to configuration file. Supports tilde expansion.

    Returns:
        Dict[str, Any]: Configuration values keyed by `Config` field name or alias.

    Raises:
        ValueError: If the path is empty, missing, unreadable, of an unsupported
            type, or does not contain a top-level mapping.

    Example:
        >>> from meeting_summarizer import Config, load_config_file
        >>> cfg = Config(**load_config_file("summarizer.yaml"))

    Supported Formats:
        **YAML** (`.yaml`, `.yml`):

            model: llama3.1:8b
            format: json
            ctx_limit: 32000
            chunk_size: 16000
            overlap: 0.1
    """
    if not path:
        raise ValueError("Config path cannot be empty")

    cfg_path = Path(path).expanduser()
    try:
        resolved = cfg_path.resolve()
    except (OSError, RuntimeError) as exc:
        raise ValueError(f"Invalid config path: {path} ({exc})") from exc

    if not resolved.exists():
        raise ValueError(f"Config file not found: {resolved}")

    suffix = resolved.suffix.lower()
    try:
        text = resolved.read_text(encoding="utf-8")
    except OSError as exc:
        raise ValueError(f"Failed to read config file {resolved}: {exc}") from exc

    if suffix == ".json":
        try:
            data = json.loads(text)
        except json.JSONDecodeError as exc:
            raise ValueError(f"Invalid JSON config file {resolved}: {exc}") from exc
    elif suffix in (".yaml", ".yml"):
        try:
            data = yaml.safe_load(text)
        except yaml.YAMLError as exc:  # type: ignore[attr-defined]
            raise ValueError(f"Invalid YAML config file {resolved}: {exc}") from exc
    else:
        raise ValueError(f"Unsupported config file type: {resolved.suffix}")

    if not isinstance(data, dict):
        raise ValueError("Config file must contain a mapping/object at the top level")

    return data
