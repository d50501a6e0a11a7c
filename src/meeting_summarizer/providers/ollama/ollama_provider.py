"""Ollama generation provider.

Generation goes through Ollama's OpenAI-compatible chat API using the OpenAI
SDK with a custom base_url, streamed so callers can echo output live. Health
and model listing use Ollama's native endpoints (``/api/version`` and
``/api/tags``) via httpx.

Key advantages:
- Fully offline - no internet required
- Zero cost - no per-token pricing
- Complete privacy - transcripts never leave the local machine
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterator, List, Optional, TYPE_CHECKING

import httpx
import openai
from openai import OpenAI

from ... import config_constants
from ...exceptions import (
    GenerationFailedError,
    ModelNotFoundError,
    ProviderNotInitializedError,
    ServiceUnreachableError,
)
from ...utils.retry import Retrier, RetryExhaustedError, RetryPolicy
from ...utils.retryable_errors import get_retry_reason, is_retryable_error
from ...utils.timeout_config import get_http_timeout
from ..base import FragmentCallback

if TYPE_CHECKING:
    from ... import config

logger = logging.getLogger(__name__)

PROVIDER_NAME = "Ollama"

OLLAMA_NOT_RUNNING_SUGGESTION = (
    "Start the server with 'ollama serve' or install Ollama from https://ollama.com"
)

# Errors raised while streaming that are worth handing to the retry policy
GENERATION_ERRORS = (openai.OpenAIError, httpx.HTTPError, ConnectionError, TimeoutError)

# Echoed before a retry when the failed attempt already echoed partial output
RETRY_ECHO_SEPARATOR = "\n[stream dropped, retrying]\n"


def api_root(base_url: str) -> str:
    """Strip the OpenAI-compatible ``/v1`` suffix to reach Ollama's native API.

    Examples:
        >>> api_root("http://localhost:11434/v1")
        'http://localhost:11434'
        >>> api_root("http://gpu-box:11434/v1/")
        'http://gpu-box:11434'
    """
    root = base_url.rstrip("/")
    if root.endswith("/v1"):
        root = root[: -len("/v1")]
    return root


class OllamaProvider:
    """GenerationProvider backed by a local Ollama server.

    The provider owns one OpenAI SDK client. Call ``check_available()`` once
    before generating; it fails fast when the server is down.
    """

    def __init__(self, cfg: config.Config):
        """Initialize the Ollama provider.

        Args:
            cfg: Configuration object (model, endpoint, retry and generation settings)
        """
        self.cfg = cfg
        self.base_url = cfg.ollama_api_base
        self.api_root = api_root(self.base_url)
        self.model = self._normalize_model_name(cfg.model)
        self.temperature = cfg.temperature
        self.max_output_tokens = cfg.max_output_tokens
        self.retry_policy = RetryPolicy(max_retries=cfg.max_retries, base_delay=cfg.retry_delay)

        # Suppress verbose SDK debug logs
        root_logger = logging.getLogger()
        root_level = root_logger.level if root_logger.level else logging.INFO
        if root_level <= logging.DEBUG:
            for logger_name in ("openai", "openai._base_client", "httpx", "httpcore"):
                logging.getLogger(logger_name).setLevel(logging.WARNING)

        # Ollama doesn't require an API key, but the OpenAI SDK requires one (use dummy).
        # SDK-level retries are disabled; the retry policy above owns retries.
        client_kwargs: Dict[str, Any] = {
            "api_key": "ollama",
            "base_url": self.base_url,
            "timeout": get_http_timeout(cfg),
            "max_retries": 0,
        }
        self.client = OpenAI(**client_kwargs)

        self._initialized = False
        self.server_version: Optional[str] = None
        logger.debug(
            "Ollama provider configured: model='%s', base_url=%s", self.model, self.base_url
        )

    def __enter__(self) -> "OllamaProvider":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def close(self) -> None:
        """Release the underlying HTTP client."""
        self.client.close()

    def _normalize_model_name(self, model: str) -> str:
        """Normalize Ollama model name to ensure correct format.

        Handles shortened names like "3.1:8b" instead of "llama3.1:8b";
        Ollama requires exact model names.
        """
        if model and model[0].isdigit():
            normalized = f"llama{model}"
            logger.warning(
                "Normalizing Ollama model name: '%s' -> '%s'. "
                "If this is incorrect, specify the full name (e.g., 'llama3.1:8b').",
                model,
                normalized,
            )
            return normalized
        return model

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    def check_available(self) -> None:
        """Validate that Ollama is reachable (and the model pulled) before generating.

        Runs once per provider; later calls are no-ops. Never retried.

        Raises:
            ServiceUnreachableError: If the Ollama server cannot be reached
            ModelNotFoundError: If ``validate_model`` is set and the model is missing
        """
        if self._initialized:
            return

        health_url = f"{self.api_root}/api/version"
        try:
            response = httpx.get(
                health_url, timeout=config_constants.OLLAMA_HEALTH_CHECK_TIMEOUT_SECONDS
            )
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise ServiceUnreachableError(
                message=f"Ollama server is not reachable: {exc}",
                provider=PROVIDER_NAME,
                url=self.api_root,
                suggestion=OLLAMA_NOT_RUNNING_SUGGESTION,
            ) from exc

        try:
            self.server_version = response.json().get("version")
        except ValueError:
            self.server_version = None
        logger.info(
            "Connected to Ollama %s at %s", self.server_version or "(unknown)", self.api_root
        )

        if self.cfg.validate_model:
            self._validate_model_available()

        self._initialized = True

    def list_models(self) -> List[str]:
        """Return the sorted names of models pulled into Ollama.

        Raises:
            ServiceUnreachableError: If the Ollama server cannot be reached
        """
        tags_url = f"{self.api_root}/api/tags"
        try:
            response = httpx.get(tags_url, timeout=config_constants.OLLAMA_TAGS_TIMEOUT_SECONDS)
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPError as exc:
            raise ServiceUnreachableError(
                message=f"Could not list Ollama models: {exc}",
                provider=PROVIDER_NAME,
                url=self.api_root,
                suggestion=OLLAMA_NOT_RUNNING_SUGGESTION,
            ) from exc
        except ValueError as exc:
            raise ServiceUnreachableError(
                message=f"Ollama returned an invalid model listing: {exc}",
                provider=PROVIDER_NAME,
                url=self.api_root,
            ) from exc
        return sorted(m.get("name", "") for m in data.get("models", []) if m.get("name"))

    def _validate_model_available(self) -> None:
        """Raise ModelNotFoundError when the configured model is not pulled."""
        logger.debug("Validating Ollama model availability: %s", self.model)
        available_models = self.list_models()
        # "llama3.1" is served as "llama3.1:latest"
        candidates = {self.model}
        if ":" not in self.model:
            candidates.add(f"{self.model}:latest")

        if candidates.isdisjoint(available_models):
            model_lower = self.model.lower()
            similar_models = [
                m for m in available_models if model_lower in m.lower() or m.lower() in model_lower
            ]
            if similar_models:
                logger.error(
                    "Similar models found (did you mean one of these?): %s",
                    ", ".join(similar_models),
                )
            raise ModelNotFoundError(
                model=self.model, provider=PROVIDER_NAME, available=available_models
            )
        logger.debug("Model '%s' validated successfully", self.model)

    def _build_request(self, prompt: str, system_prompt: Optional[str]) -> Dict[str, Any]:
        messages = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": prompt})
        request: Dict[str, Any] = {
            "model": self.model,
            "messages": messages,
            "temperature": self.temperature,
            "stream": True,
        }
        if self.max_output_tokens:
            request["max_tokens"] = self.max_output_tokens
        return request

    def stream(self, prompt: str, system_prompt: Optional[str] = None) -> Iterator[str]:
        """Yield generated text fragments as Ollama streams them.

        This is a single attempt; retries are applied by ``generate()``.

        Raises:
            ProviderNotInitializedError: If ``check_available()`` has not run
        """
        if not self._initialized:
            raise ProviderNotInitializedError(provider=PROVIDER_NAME)

        response = self.client.chat.completions.create(**self._build_request(prompt, system_prompt))
        for chunk in response:
            if not chunk.choices:
                continue
            content = chunk.choices[0].delta.content
            if content:
                yield content

    def generate(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        on_fragment: Optional[FragmentCallback] = None,
    ) -> str:
        """Stream a full response, retrying transient failures with linear backoff.

        Args:
            prompt: User prompt
            system_prompt: Optional system instruction
            on_fragment: Optional callback receiving each fragment live

        Returns:
            Concatenated response, stripped of surrounding whitespace

        Raises:
            ProviderNotInitializedError: If ``check_available()`` has not run
            GenerationFailedError: If the call still fails after all retries,
                or fails with a non-retryable error
        """
        if not self._initialized:
            raise ProviderNotInitializedError(provider=PROVIDER_NAME)

        echoed = False

        def _attempt() -> str:
            nonlocal echoed
            if echoed and on_fragment is not None:
                on_fragment(RETRY_ECHO_SEPARATOR)
                echoed = False
            parts: List[str] = []
            for fragment in self.stream(prompt, system_prompt):
                parts.append(fragment)
                if on_fragment is not None:
                    on_fragment(fragment)
                    echoed = True
            return "".join(parts).strip()

        retrier = Retrier(
            self.retry_policy,
            retryable_exceptions=GENERATION_ERRORS,
            should_retry=is_retryable_error,
            label=f"Ollama generation ({self.model})",
        )
        logger.debug(
            "Calling Ollama with model '%s' (prompt: %d chars, system: %d chars)",
            self.model,
            len(prompt),
            len(system_prompt or ""),
        )
        try:
            text = retrier.run(_attempt)
        except RetryExhaustedError as exc:
            raise GenerationFailedError(
                message=(
                    f"Ollama generation failed ({get_retry_reason(exc.last_error)}): "
                    f"{exc.last_error}"
                ),
                provider=PROVIDER_NAME,
                attempts=exc.attempts,
                suggestion="Check the Ollama server logs; large models may need a longer timeout",
            ) from exc.last_error
        except GENERATION_ERRORS as exc:
            suggestion = None
            if isinstance(exc, openai.NotFoundError):
                suggestion = f"Install the model with: ollama pull {self.model}"
            raise GenerationFailedError(
                message=f"Ollama generation failed ({get_retry_reason(exc)}): {exc}",
                provider=PROVIDER_NAME,
                attempts=retrier.attempts,
                suggestion=suggestion,
            ) from exc

        logger.debug("Ollama returned %d chars after %d attempt(s)", len(text), retrier.attempts)
        return text
