"""Custom exceptions for meeting_summarizer.

Typed exceptions let the CLI print actionable messages and let tests assert on
the exact failure cause.

Exception Hierarchy:
    SummarizerError (base)
    ├── ProviderError - Generation service failures
    │   ├── ServiceUnreachableError - Service down; fail fast, never retried
    │   ├── ModelNotFoundError - Model not pulled into Ollama
    │   ├── GenerationFailedError - Generation failed after all retries
    │   └── ProviderNotInitializedError - generate() called before preflight
    ├── InputReadError - Transcript could not be read
    ├── OutputWriteError - Minutes could not be written
    └── OutputFormatParseError - Structured extraction failed (recovered locally)
"""

from typing import Optional


class SummarizerError(Exception):
    """Base exception for all meeting_summarizer errors.

    Attributes:
        source: Component that raised the error (e.g., "Ollama", "Input")
        message: Human-readable error message
        suggestion: Optional suggestion for resolving the error
    """

    def __init__(
        self,
        message: str,
        source: str = "Unknown",
        suggestion: Optional[str] = None,
    ) -> None:
        self.source = source
        self.message = message
        self.suggestion = suggestion
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        """Format the full error message with source and suggestion."""
        parts = [f"[{self.source}] {self.message}"]
        if self.suggestion:
            parts.append(f"Suggestion: {self.suggestion}")
        return " ".join(parts)


class ProviderError(SummarizerError):
    """Base exception for generation provider errors."""

    def __init__(
        self,
        message: str,
        provider: str = "Unknown",
        suggestion: Optional[str] = None,
    ) -> None:
        self.provider = provider
        super().__init__(message=message, source=provider, suggestion=suggestion)


class ServiceUnreachableError(ProviderError):
    """Raised when the generation service cannot be reached.

    This is checked once before any generation call and is never retried.

    Example:
        >>> raise ServiceUnreachableError(
        ...     message="Ollama server is not running at http://localhost:11434",
        ...     provider="Ollama",
        ...     suggestion="Start it with: ollama serve"
        ... )
    """

    def __init__(
        self,
        message: str,
        provider: str = "Unknown",
        url: Optional[str] = None,
        suggestion: Optional[str] = None,
    ) -> None:
        self.url = url
        if url and url not in message:
            message = f"{message} (url: {url})"
        super().__init__(message=message, provider=provider, suggestion=suggestion)


class ModelNotFoundError(ProviderError):
    """Raised when the configured model is not available on the service.

    Attributes:
        model: Requested model name
        available: Model names the service reported
    """

    def __init__(
        self,
        model: str,
        provider: str = "Unknown",
        available: Optional[list] = None,
    ) -> None:
        self.model = model
        self.available = list(available or [])
        listing = ", ".join(self.available) if self.available else "(none)"
        super().__init__(
            message=f"Model '{model}' is not available. Available models: {listing}",
            provider=provider,
            suggestion=f"Install it with: ollama pull {model}",
        )


class GenerationFailedError(ProviderError):
    """Raised when a generation call fails after exhausting its retries.

    Attributes:
        attempts: Number of attempts made before giving up
    """

    def __init__(
        self,
        message: str,
        provider: str = "Unknown",
        attempts: int = 1,
        suggestion: Optional[str] = None,
    ) -> None:
        self.attempts = attempts
        super().__init__(
            message=f"{message} (after {attempts} attempt{'s' if attempts != 1 else ''})",
            provider=provider,
            suggestion=suggestion,
        )


class ProviderNotInitializedError(ProviderError):
    """Raised when a provider is used before its preflight check ran.

    This indicates a programming error where check_available() was not called.
    """

    def __init__(self, provider: str = "Unknown") -> None:
        super().__init__(
            message="Provider not initialized. Call check_available() first.",
            provider=provider,
            suggestion="Call check_available() before generating",
        )


class InputReadError(SummarizerError):
    """Raised when the transcript cannot be read."""

    def __init__(self, message: str, path: Optional[str] = None) -> None:
        self.path = path
        super().__init__(message=message, source="Input")


class OutputWriteError(SummarizerError):
    """Raised when the final minutes cannot be written to the sink."""

    def __init__(self, message: str, path: Optional[str] = None) -> None:
        self.path = path
        super().__init__(message=message, source="Output")


class OutputFormatParseError(SummarizerError):
    """Raised when structured extraction from the minutes text fails.

    The formatter catches this and falls back to the markdown text, so it is
    never surfaced to the user as an error.
    """

    def __init__(self, message: str, output_format: str = "json") -> None:
        self.output_format = output_format
        super().__init__(message=message, source=f"Formatter/{output_format}")
