"""Shared utilities for meeting_summarizer.

This package provides:
- Retry state machine with linear backoff (retry.py)
- Retryable error classification (retryable_errors.py)
- HTTP timeout helpers (timeout_config.py)
"""
