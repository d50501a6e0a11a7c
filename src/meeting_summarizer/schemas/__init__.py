"""Schemas package for meeting_summarizer.

This package contains the structured minutes model used by the JSON output format.
"""

from .minutes_schema import ActionItem, MinutesSchema, parse_action_item, parse_minutes

__all__ = [
    "ActionItem",
    "MinutesSchema",
    "parse_action_item",
    "parse_minutes",
]
