#!/usr/bin/env python3
"""Tests for the linear-backoff retry state machine."""

import unittest
from unittest.mock import patch

import pytest

from meeting_summarizer.utils.retry import (
    Retrier,
    RetryExhaustedError,
    RetryPolicy,
    RetryState,
)


class _Flaky:
    """Callable failing ``failures`` times before returning ``result``."""

    def __init__(self, failures, error=ConnectionError("connection reset"), result="ok"):
        self.failures = failures
        self.error = error
        self.result = result
        self.calls = 0

    def __call__(self):
        self.calls += 1
        if self.calls <= self.failures:
            raise self.error
        return self.result


@pytest.mark.unit
class TestRetryPolicy(unittest.TestCase):
    def test_defaults(self):
        policy = RetryPolicy()
        self.assertEqual(policy.max_retries, 3)
        self.assertEqual(policy.max_attempts, 4)

    def test_linear_delays(self):
        policy = RetryPolicy(max_retries=3, base_delay=2.0)
        self.assertEqual([policy.delay_for(k) for k in (1, 2, 3)], [2.0, 4.0, 6.0])

    def test_negative_values_rejected(self):
        with self.assertRaises(ValueError):
            RetryPolicy(max_retries=-1)
        with self.assertRaises(ValueError):
            RetryPolicy(base_delay=-0.5)


@pytest.mark.unit
class TestRetrier(unittest.TestCase):
    def setUp(self):
        self.delays = []
        self.policy = RetryPolicy(max_retries=3, base_delay=2.0)

    def _retrier(self, **kwargs):
        return Retrier(self.policy, sleep=self.delays.append, **kwargs)

    def test_first_attempt_succeeds(self):
        retrier = self._retrier()
        self.assertEqual(retrier.run(lambda: "done"), "done")
        self.assertEqual(retrier.history, [RetryState.ATTEMPTING, RetryState.SUCCEEDED])
        self.assertEqual(retrier.attempts, 1)
        self.assertEqual(self.delays, [])

    def test_succeeds_after_transient_failures(self):
        func = _Flaky(failures=2)
        retrier = self._retrier()
        self.assertEqual(retrier.run(func), "ok")
        self.assertEqual(func.calls, 3)
        self.assertEqual(self.delays, [2.0, 4.0])
        self.assertEqual(
            retrier.history,
            [
                RetryState.ATTEMPTING,
                RetryState.BACKOFF,
                RetryState.ATTEMPTING,
                RetryState.BACKOFF,
                RetryState.ATTEMPTING,
                RetryState.SUCCEEDED,
            ],
        )

    def test_exhausted_after_max_attempts(self):
        func = _Flaky(failures=10)
        retrier = self._retrier()
        with self.assertRaises(RetryExhaustedError) as context:
            retrier.run(func)
        self.assertEqual(func.calls, 4)
        self.assertEqual(context.exception.attempts, 4)
        self.assertIs(context.exception.last_error, func.error)
        self.assertEqual(self.delays, [2.0, 4.0, 6.0])
        self.assertEqual(retrier.state, RetryState.EXHAUSTED)

    def test_zero_retries_means_single_attempt(self):
        self.policy = RetryPolicy(max_retries=0)
        func = _Flaky(failures=1)
        with self.assertRaises(RetryExhaustedError):
            self._retrier().run(func)
        self.assertEqual(func.calls, 1)
        self.assertEqual(self.delays, [])

    def test_non_retryable_type_propagates(self):
        func = _Flaky(failures=1, error=KeyError("bad"))
        with self.assertRaises(KeyError):
            self._retrier(retryable_exceptions=(ConnectionError,)).run(func)
        self.assertEqual(func.calls, 1)

    def test_predicate_can_refuse_retry(self):
        func = _Flaky(failures=1, error=ConnectionError("401 unauthorized"))
        with self.assertRaises(ConnectionError):
            self._retrier(should_retry=lambda exc: False).run(func)
        self.assertEqual(func.calls, 1)

    def test_history_reset_between_runs(self):
        retrier = self._retrier()
        retrier.run(_Flaky(failures=1))
        retrier.run(lambda: 1)
        self.assertEqual(retrier.history, [RetryState.ATTEMPTING, RetryState.SUCCEEDED])

    @patch("meeting_summarizer.utils.retry.time.sleep")
    def test_defaults_to_time_sleep(self, mock_sleep):
        Retrier(RetryPolicy(max_retries=1, base_delay=0.5)).run(_Flaky(failures=1))
        mock_sleep.assert_called_once_with(0.5)
