"""Retry utilities with linear backoff for transient errors.

The retry loop is modelled as a small state machine so the policy can be tested
independently of any network client:

    ATTEMPTING -> SUCCEEDED
    ATTEMPTING -> BACKOFF -> ATTEMPTING
    ATTEMPTING -> EXHAUSTED

Retry ``k`` (1-based) waits ``k * base_delay`` seconds.
"""

from __future__ import annotations

import enum
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, List, Optional, Tuple, Type

logger = logging.getLogger(__name__)


class RetryState(enum.Enum):
    ATTEMPTING = "attempting"
    SUCCEEDED = "succeeded"
    BACKOFF = "backoff"
    EXHAUSTED = "exhausted"


class RetryExhaustedError(Exception):
    """Raised when every attempt allowed by a RetryPolicy has failed.

    Attributes:
        attempts: Number of attempts made
        last_error: Exception raised by the final attempt
    """

    def __init__(self, attempts: int, last_error: BaseException) -> None:
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(f"All {attempts} attempts failed. Last error: {last_error}")


@dataclass(frozen=True)
class RetryPolicy:
    """How many times to retry and how long to wait between attempts.

    Attributes:
        max_retries: Retries after the first attempt (total attempts = max_retries + 1)
        base_delay: Delay unit in seconds for linear backoff
    """

    max_retries: int = 3
    base_delay: float = 2.0

    def __post_init__(self) -> None:
        if self.max_retries < 0:
            raise ValueError(f"max_retries must be non-negative, got: {self.max_retries}")
        if self.base_delay < 0:
            raise ValueError(f"base_delay must be non-negative, got: {self.base_delay}")

    @property
    def max_attempts(self) -> int:
        return self.max_retries + 1

    def delay_for(self, retry_number: int) -> float:
        """Return the delay before retry ``retry_number`` (1-based)."""
        return retry_number * self.base_delay


@dataclass
class Retrier:
    """Drive a callable through the retry state machine.

    Args:
        policy: Retry policy to apply
        retryable_exceptions: Exception types that trigger a retry; anything else
            propagates immediately
        should_retry: Optional predicate; a matching exception for which it returns
            False propagates immediately
        sleep: Sleep function (defaults to time.sleep)
        label: Short description used in log messages
    """

    policy: RetryPolicy
    retryable_exceptions: Tuple[Type[BaseException], ...] = (Exception,)
    should_retry: Optional[Callable[[BaseException], bool]] = None
    sleep: Optional[Callable[[float], None]] = None
    label: str = "operation"
    history: List[RetryState] = field(default_factory=list, init=False)
    attempts: int = field(default=0, init=False)

    @property
    def state(self) -> Optional[RetryState]:
        return self.history[-1] if self.history else None

    def _transition(self, state: RetryState) -> None:
        self.history.append(state)

    def run(self, func: Callable[[], Any]) -> Any:
        """Call ``func`` until it succeeds or the policy is exhausted.

        Returns:
            Result of the first successful call

        Raises:
            RetryExhaustedError: If every attempt raised a retryable exception
            Exception: Any non-retryable exception, unchanged
        """
        self.history = []
        self.attempts = 0
        last_error: Optional[BaseException] = None

        while True:
            self._transition(RetryState.ATTEMPTING)
            self.attempts += 1
            try:
                result = func()
            except self.retryable_exceptions as exc:
                if self.should_retry is not None and not self.should_retry(exc):
                    logger.debug(f"Non-retryable error in {self.label}: {exc}")
                    raise
                last_error = exc
            except Exception as exc:
                # Non-retryable exception - re-raise immediately
                logger.debug(f"Non-retryable exception in {self.label}: {exc}")
                raise
            else:
                self._transition(RetryState.SUCCEEDED)
                return result

            if self.attempts >= self.policy.max_attempts:
                self._transition(RetryState.EXHAUSTED)
                logger.error(
                    f"All {self.attempts} attempts of {self.label} failed. "
                    f"Last error: {last_error}"
                )
                raise RetryExhaustedError(self.attempts, last_error) from last_error

            delay = self.policy.delay_for(self.attempts)
            self._transition(RetryState.BACKOFF)
            logger.warning(
                f"Attempt {self.attempts}/{self.policy.max_attempts} of {self.label} failed: "
                f"{last_error}. Retrying in {delay:.1f}s..."
            )
            (self.sleep or time.sleep)(delay)

