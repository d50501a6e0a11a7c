"""Structured meeting minutes schema and tolerant parsing.

Minutes come back from the model as loosely formatted markdown. This module
extracts the well-known sections into a pydantic schema:

- Sections are found by label (SUMMARY, KEY DECISIONS, ACTION ITEMS,
  OPEN QUESTIONS, PARTICIPANTS) written as markdown headings, numbered items
  or lines ending in ``:``
- Bulleted or numbered lines become list items
- Action items are split into task, owner and deadline using common phrasings
- A section that is not present is left as ``None`` rather than failing
"""

from __future__ import annotations

import logging
import re
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, Field, field_validator, ValidationError

from ..exceptions import OutputFormatParseError

logger = logging.getLogger(__name__)

# Heading label (lower case) -> schema field
SECTION_LABELS: Dict[str, str] = {
    "summary": "summary",
    "overview": "summary",
    "key decisions": "key_decisions",
    "decisions": "key_decisions",
    "action items": "action_items",
    "actions": "action_items",
    "open questions": "open_questions",
    "questions": "open_questions",
    "participants": "participants",
    "attendees": "participants",
}

# Placeholder items meaning "nothing in this section"
_EMPTY_ITEMS = {"none", "n/a", "na", "-", "nothing", "none.", "no items"}

# Owner values meaning "nobody"
_NO_OWNER = {"unassigned", "tbd", "none", "n/a", "nobody"}

_LABEL_PATTERN = "|".join(
    re.escape(label) for label in sorted(SECTION_LABELS, key=len, reverse=True)
)

_HEADING_RE = re.compile(
    r"^\s*(?P<prefix>#{1,6}\s*|\d+[.)]\s+)?"
    r"(?P<bold>\*\*|__)?\s*"
    rf"(?P<label>{_LABEL_PATTERN})\b"
    r"\s*(?:\([^)]*\))?\s*(?:\*\*|__)?\s*"
    r"(?P<colon>:)?\s*(?:\*\*|__)?\s*"
    r"(?P<rest>.*)$",
    re.IGNORECASE,
)

_BULLET_RE = re.compile(r"^\s*(?:[-*•+]|\d+[.)])\s+(?P<item>.+)$")

_OWNER_BRACKET_RE = re.compile(r"^\[(?P<owner>[^\]]+)\]\s*[-–:]?\s*(?P<task>.+)$")
_OWNER_MENTION_RE = re.compile(r"^@(?P<owner>[\w.'-]+)\s*[-–:]?\s*(?P<task>.+)$")
_OWNER_LABEL_RE = re.compile(
    r"^owner\s*:\s*(?P<owner>[^,;:–-]+?)\s*[-–:,;]\s*(?P<task>.+)$", re.IGNORECASE
)
_OWNER_NAME = r"(?P<owner>[A-Z][\w.'-]*(?:\s+[A-Z][\w.'-]*){0,2})"
_OWNER_COLON_RE = re.compile(rf"^{_OWNER_NAME}\s*:\s+(?P<task>.+)$")
_OWNER_DASH_RE = re.compile(rf"^{_OWNER_NAME}\s+[-–]\s+(?P<task>.+)$")
_OWNER_SUFFIX_RE = re.compile(r"\s*\(\s*owner\s*:\s*(?P<owner>[^)]+?)\s*\)", re.IGNORECASE)

_DATE_START = (
    r"(?:mon|tue|wed|thu|fri|sat|sun|jan|feb|mar|apr|may|jun|jul|aug|sep|oct|nov|dec"
    r"|next|end|eod|eow|eom|tomorrow|today|tonight|q[1-4]|\d)"
)
_DEADLINE_RE = re.compile(
    r"[\s,;–-]*\(?\s*(?:"
    r"\bdeadline\s*:\s*(?P<explicit>[^()]+?)"
    rf"|\bdue(?:\s+(?:by|on))?\s*:?\s+(?P<due>{_DATE_START}[^()]*?)"
    rf"|\bby\s+(?P<by>{_DATE_START}[^()]*?)"
    r")\s*\)?\s*\.?$",
    re.IGNORECASE,
)


class ActionItem(BaseModel):
    """One follow-up task extracted from the minutes.

    Attributes:
        task: What has to be done
        owner: Person responsible, when stated
        deadline: Due date or phrase, when stated
    """

    task: str = Field(description="Task description")
    owner: Optional[str] = Field(default=None, description="Responsible person")
    deadline: Optional[str] = Field(default=None, description="Deadline phrase")

    @field_validator("task")
    @classmethod
    def validate_task(cls, v: str) -> str:
        """Validate task is a non-empty string."""
        v = v.strip()
        if not v:
            raise ValueError("task cannot be empty")
        return v

    @field_validator("owner", "deadline")
    @classmethod
    def strip_optional(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        return v.strip() or None


class MinutesSchema(BaseModel):
    """Normalized meeting minutes.

    Every field is optional: a section missing from the model output is
    ``None``, a section present but empty is an empty list.
    """

    summary: Optional[str] = Field(default=None, description="Short narrative summary")
    key_decisions: Optional[List[str]] = Field(default=None, description="Decisions made")
    action_items: Optional[List[ActionItem]] = Field(default=None, description="Follow-up tasks")
    open_questions: Optional[List[str]] = Field(default=None, description="Unresolved questions")
    participants: Optional[List[str]] = Field(default=None, description="People in the meeting")

    @property
    def has_content(self) -> bool:
        return any(
            value is not None
            for value in (
                self.summary,
                self.key_decisions,
                self.action_items,
                self.open_questions,
                self.participants,
            )
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert schema to dictionary, omitting absent sections."""
        return self.model_dump(exclude_none=True)


def _clean_inline(text: str) -> str:
    """Remove inline emphasis and code markers from an item."""
    text = re.sub(r"(\*\*|__)(.+?)\1", r"\2", text)
    text = text.replace("`", "")
    return " ".join(text.split())


def _match_heading(line: str) -> Optional[Tuple[str, str]]:
    """Return ``(field, inline_text)`` when ``line`` opens a section."""
    match = _HEADING_RE.match(line)
    if not match:
        return None
    rest = match.group("rest").strip()
    is_marked = bool(match.group("prefix") or match.group("bold") or match.group("colon"))
    # "1. Decisions were deferred" is content, not a heading
    if not is_marked or (rest and not match.group("colon")):
        return None
    return SECTION_LABELS[match.group("label").lower()], rest


def split_sections(text: str) -> Dict[str, List[str]]:
    """Group the lines of ``text`` under the section headings they follow.

    Lines before the first recognized heading are dropped. A heading that
    appears twice keeps appending to the same section.
    """
    sections: Dict[str, List[str]] = {}
    current: Optional[str] = None
    for line in text.splitlines():
        heading = _match_heading(line)
        if heading is not None:
            current, inline = heading
            sections.setdefault(current, [])
            if inline:
                sections[current].append(inline)
            continue
        if current is not None and line.strip():
            sections[current].append(line.rstrip())
    return sections


def extract_items(lines: List[str]) -> List[str]:
    """Turn section lines into list items.

    Bulleted and numbered lines start new items; other lines continue the
    previous item. When the section has no bullets at all, each line is an item.
    """
    has_bullets = any(_BULLET_RE.match(line) for line in lines)
    items: List[str] = []
    for line in lines:
        bullet = _BULLET_RE.match(line)
        if bullet:
            items.append(bullet.group("item"))
        elif has_bullets and items:
            items[-1] = f"{items[-1]} {line.strip()}"
        else:
            items.append(line.strip())
    cleaned = [_clean_inline(item) for item in items]
    return [item for item in cleaned if item and item.lower() not in _EMPTY_ITEMS]


def _normalize_owner(owner: Optional[str]) -> Optional[str]:
    if owner is None:
        return None
    owner = owner.strip().strip("*_").strip()
    if not owner or owner.lower() in _NO_OWNER:
        return None
    return owner


def _strip_deadline_prefix(phrase: str) -> str:
    return re.sub(r"^(?:by|due(?:\s+(?:by|on))?|deadline\s*:)\s*", "", phrase, flags=re.I).strip()


def parse_action_item(text: str) -> ActionItem:
    """Split an action item line into task, owner and deadline.

    Recognized owner forms: ``Alice: task``, ``Alice - task``, ``[Alice] task``,
    ``@alice task``, ``Owner: Alice - task``, ``task (owner: Alice)`` and
    ``task • Alice • Friday``. Deadlines: ``by Friday``, ``due 3 March``,
    ``deadline: Q3``.

    Examples:
        >>> parse_action_item("Bob: send the budget by Friday").model_dump()
        {'task': 'send the budget', 'owner': 'Bob', 'deadline': 'Friday'}
    """
    task = text.strip()
    owner: Optional[str] = None
    deadline: Optional[str] = None

    if "•" in task:
        parts = [part.strip() for part in task.split("•") if part.strip()]
        task = parts[0] if parts else task
        if len(parts) > 1:
            owner = parts[1]
        if len(parts) > 2:
            deadline = _strip_deadline_prefix(parts[2])

    suffix = _OWNER_SUFFIX_RE.search(task)
    if suffix:
        owner = owner or suffix.group("owner")
        task = (task[: suffix.start()] + task[suffix.end() :]).strip()

    if owner is None:
        for pattern in (
            _OWNER_LABEL_RE,
            _OWNER_BRACKET_RE,
            _OWNER_MENTION_RE,
            _OWNER_COLON_RE,
            _OWNER_DASH_RE,
        ):
            match = pattern.match(task)
            if match:
                owner = match.group("owner")
                task = match.group("task")
                break

    if deadline is None:
        due = _DEADLINE_RE.search(task)
        if due:
            phrase = due.group("explicit") or due.group("due") or due.group("by")
            remaining = task[: due.start()].strip()
            if remaining:
                deadline = phrase.strip()
                task = remaining

    return ActionItem(task=task.rstrip(" .,;"), owner=_normalize_owner(owner), deadline=deadline)


def _split_participants(items: List[str]) -> List[str]:
    names: List[str] = []
    for item in items:
        for name in re.split(r",|;|\band\b", item):
            name = name.strip().rstrip(".")
            if name and name not in names:
                names.append(name)
    return names


def parse_minutes(text: str) -> MinutesSchema:
    """Parse markdown minutes into a MinutesSchema.

    Args:
        text: Minutes text as returned by the model

    Returns:
        MinutesSchema with every recognized section filled in

    Raises:
        OutputFormatParseError: If the text is empty, no section is recognized,
            or the extracted values fail validation
    """
    if not text or not text.strip():
        raise OutputFormatParseError("Empty minutes text")

    sections = split_sections(text)
    if not sections:
        raise OutputFormatParseError("No minutes sections found")
    logger.debug(f"Found minutes sections: {', '.join(sections)}")

    data: Dict[str, Any] = {}
    try:
        for field_name, lines in sections.items():
            if field_name == "summary":
                summary = "\n".join(_clean_inline(line) for line in lines if line.strip())
                data["summary"] = summary or None
            elif field_name == "action_items":
                data["action_items"] = [parse_action_item(item) for item in extract_items(lines)]
            elif field_name == "participants":
                data["participants"] = _split_participants(extract_items(lines))
            else:
                data[field_name] = extract_items(lines)
        return MinutesSchema(**data)
    except ValidationError as exc:
        raise OutputFormatParseError(f"Extracted minutes failed validation: {exc}") from exc
