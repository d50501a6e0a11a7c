"""Output formatting for the final minutes.

Three formats are supported:

- ``markdown``: the model output, unchanged
- ``plain``: markdown markers stripped and angle brackets escaped
- ``json``: structured sections extracted into :class:`MinutesSchema`

JSON extraction is best effort. When the minutes cannot be parsed the
markdown text is returned and a warning is logged.
"""

from __future__ import annotations

import json
import logging
import re

from . import config_constants
from .exceptions import OutputFormatParseError
from .schemas.minutes_schema import parse_minutes

logger = logging.getLogger(__name__)

_HEADING_MARKER_RE = re.compile(r"^[ \t]{0,3}#{1,6}[ \t]+", re.MULTILINE)
_CODE_FENCE_RE = re.compile(r"^[ \t]*```[^\n]*\n?", re.MULTILINE)
_STRONG_RE = re.compile(r"(\*\*|__)(?=\S)(.+?)(?<=\S)\1")
_EMPHASIS_STAR_RE = re.compile(r"(?<![\w*])\*(?=[^\s*])(.+?)(?<=[^\s*])\*(?![\w*])")
_EMPHASIS_UNDERSCORE_RE = re.compile(r"(?<![\w_])_(?=[^\s_])(.+?)(?<=[^\s_])_(?![\w_])")


def _strip_markers(text: str) -> str:
    text = _HEADING_MARKER_RE.sub("", text)
    text = _CODE_FENCE_RE.sub("", text)
    text = _STRONG_RE.sub(r"\2", text)
    text = _EMPHASIS_STAR_RE.sub(r"\1", text)
    text = _EMPHASIS_UNDERSCORE_RE.sub(r"\1", text)
    return text.replace("`", "")


def to_plain_text(text: str) -> str:
    """Strip markdown markers and escape angle brackets.

    Removes heading markers, ``**``/``__`` strong emphasis, ``*``/``_``
    emphasis around words, code fences and backticks. Nested markers such as
    ``**__x__**`` are removed layer by layer until none remain, so the result
    is stable under a second pass. ``<`` and ``>`` become ``&lt;`` and
    ``&gt;``. Text without markdown or angle brackets is returned unchanged.

    Examples:
        >>> to_plain_text("## Decisions\\n- **Ship** v2 <now>")
        'Decisions\\n- Ship v2 &lt;now&gt;'
    """
    stripped = _strip_markers(text)
    while stripped != text:
        text = stripped
        stripped = _strip_markers(text)
    return text.replace("<", "&lt;").replace(">", "&gt;")


def to_json(text: str) -> str:
    """Extract structured minutes and serialize them as indented JSON.

    Raises:
        OutputFormatParseError: If no minutes section can be recognized
    """
    schema = parse_minutes(text)
    if not schema.has_content:
        raise OutputFormatParseError("No minutes sections found")
    return json.dumps(schema.to_dict(), indent=2, ensure_ascii=False)


def format_minutes(text: str, output_format: str = config_constants.DEFAULT_OUTPUT_FORMAT) -> str:
    """Apply the configured output transform to the final minutes.

    Args:
        text: Final minutes from the model (markdown)
        output_format: One of ``markdown``, ``plain`` or ``json``

    Returns:
        Formatted minutes; for ``json`` the markdown text when extraction fails

    Raises:
        ValueError: If ``output_format`` is not a known format
    """
    if output_format == config_constants.OUTPUT_FORMAT_MARKDOWN:
        return text
    if output_format == config_constants.OUTPUT_FORMAT_PLAIN:
        return to_plain_text(text)
    if output_format == config_constants.OUTPUT_FORMAT_JSON:
        try:
            return to_json(text)
        except OutputFormatParseError as exc:
            logger.warning(f"Could not extract structured minutes, writing markdown instead: {exc}")
            return text
    raise ValueError(
        f"Unknown output format '{output_format}', "
        f"expected one of {config_constants.VALID_OUTPUT_FORMATS}"
    )
