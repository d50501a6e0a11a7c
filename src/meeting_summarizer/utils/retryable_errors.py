"""Error classification utilities for retry logic.

This module classifies exceptions raised while talking to the generation
service as retryable (transient) or non-retryable (permanent).
"""

from __future__ import annotations

import logging

import httpx
import openai

logger = logging.getLogger(__name__)

# HTTP status codes that indicate a transient condition
RETRYABLE_STATUS_CODES = frozenset({408, 409, 425, 429, 500, 502, 503, 504})


def is_retryable_error(error: BaseException) -> bool:
    """Determine if an error is retryable.

    Retryable errors are transient failures that may succeed on retry:
    - Rate limits (429) and server errors (5xx)
    - Connection errors and dropped streams
    - Timeout errors

    Non-retryable errors are permanent failures that won't succeed on retry:
    - Client errors (4xx except 408/409/425/429), e.g. unknown model (404)
    - Authentication errors (401, 403)

    Args:
        error: Exception to classify

    Returns:
        True if error is retryable, False otherwise
    """
    if isinstance(error, openai.APIStatusError):
        status = error.status_code
        return status in RETRYABLE_STATUS_CODES or status >= 500

    if isinstance(error, (openai.APIConnectionError, httpx.TransportError)):
        return True

    if isinstance(error, httpx.HTTPStatusError):
        status = error.response.status_code
        return status in RETRYABLE_STATUS_CODES or status >= 500

    if isinstance(error, (ConnectionError, TimeoutError)):
        return True

    error_str = str(error).lower()
    if is_non_retryable_message(error_str):
        return False

    # Default: if we can't determine, assume retryable (conservative)
    logger.debug(f"Unknown error type {type(error).__name__}, assuming retryable: {error}")
    return True


def is_non_retryable_message(error_str: str) -> bool:
    """Check an error message for signs of a permanent client error."""
    indicators = (
        "401",
        "403",
        "unauthorized",
        "forbidden",
        "400",
        "bad request",
        "404",
        "not found",
        "422",
        "unprocessable entity",
    )
    return any(indicator in error_str for indicator in indicators)


def get_retry_reason(error: BaseException) -> str:
    """Get a short human-readable reason for a retry (e.g., "429", "timeout").

    Args:
        error: Exception that triggered retry

    Returns:
        Status code, "timeout", "connection_error", or the exception type name
    """
    if isinstance(error, openai.APIStatusError):
        return str(error.status_code)
    if isinstance(error, (openai.APITimeoutError, httpx.TimeoutException, TimeoutError)):
        return "timeout"
    if isinstance(error, (openai.APIConnectionError, httpx.TransportError, ConnectionError)):
        return "connection_error"
    return type(error).__name__
