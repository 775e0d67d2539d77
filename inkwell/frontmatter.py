"""Front matter parsing for Inkwell.

A content file carries front matter when it starts with a ``---`` line,
followed by YAML and a closing ``---`` (or ``...``) line. Files without
front matter are treated as static files and copied verbatim.

Key functions:
- split_frontmatter: Separate the YAML block from the body.
- parse_date: Parse front matter dates, including UTC offsets.
- normalize_list: Normalize ``categories``/``tags`` values to a list.
"""

from __future__ import annotations

import re
from datetime import date, datetime, timedelta, timezone, tzinfo
from pathlib import Path
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import yaml

FRONTMATTER_RE = re.compile(
    r"\A---[ \t]*\r?\n(.*?)(?:\r?\n)?^(?:---|\.\.\.)[ \t]*(?:\r?\n|\Z)",
    re.DOTALL | re.MULTILINE,
)

DATE_RE = re.compile(
    r"^(?P<date>\d{4}-\d{1,2}-\d{1,2})"
    r"(?:[ T](?P<time>\d{1,2}:\d{2}(?::\d{2}(?:\.\d+)?)?))?"
    r"\s*(?P<offset>Z|[+-]\d{2}:?\d{2})?$"
)


class FrontMatterError(Exception):
    """Error raised for malformed front matter.

    Attributes:
        source_path: Path of the offending file, when known.
        message: Human-readable error message.
    """

    def __init__(self, message: str, source_path: Path | None = None):
        self.source_path = source_path
        self.message = message
        prefix = f"{source_path}: " if source_path else ""
        super().__init__(f"{prefix}{message}")


def has_frontmatter(text: str) -> bool:
    """Return True when ``text`` opens with a front matter delimiter."""
    return FRONTMATTER_RE.match(text) is not None


def split_frontmatter(text: str) -> tuple[dict[str, Any] | None, str]:
    """Extract YAML front matter from content.

    Args:
        text: Raw file content.

    Returns:
        Tuple of (front matter dict, remaining content). The dict is None
        when the file has no front matter block at all.

    Raises:
        FrontMatterError: If the block is not valid YAML or not a mapping.
    """
    match = FRONTMATTER_RE.match(text)
    if not match:
        return None, text
    try:
        data = yaml.safe_load(match.group(1))
    except yaml.YAMLError as exc:
        raise FrontMatterError(f"Invalid YAML front matter: {exc}") from exc
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise FrontMatterError(
            f"Front matter must be a mapping, got {type(data).__name__}"
        )
    return data, text[match.end() :]


def resolve_timezone(name: str | None) -> tzinfo | None:
    """Resolve an IANA timezone name from the site configuration.

    Raises:
        FrontMatterError: If the name is not a known timezone.
    """
    if not name:
        return None
    try:
        return ZoneInfo(str(name))
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise FrontMatterError(f"Unknown timezone: {name}") from exc


def _parse_offset(text: str) -> timezone:
    if text == "Z":
        return timezone.utc
    sign = -1 if text[0] == "-" else 1
    digits = text[1:].replace(":", "")
    hours, minutes = int(digits[:2]), int(digits[2:])
    return timezone(sign * timedelta(hours=hours, minutes=minutes))


def parse_date(value: Any, tz: tzinfo | None = None) -> datetime:
    """Parse a front matter date.

    Accepts ``datetime`` and ``date`` objects (as produced by YAML) and
    strings such as ``2024-01-15``, ``2024-01-15 10:30`` or
    ``2024-01-15 10:30:00 +0530``.

    Args:
        value: Raw front matter value.
        tz: Site timezone used to localize naive values.

    Returns:
        Parsed datetime; aware when an offset or ``tz`` was available.

    Raises:
        FrontMatterError: If the value cannot be parsed.
    """
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime(value.year, value.month, value.day)
    elif isinstance(value, str):
        match = DATE_RE.match(value.strip())
        if not match:
            raise FrontMatterError(f"Invalid date: {value!r}")
        time_part = match.group("time") or "00:00:00"
        if time_part.count(":") == 1:
            time_part += ":00"
        try:
            parsed = datetime.strptime(
                f"{match.group('date')} {time_part.split('.')[0]}",
                "%Y-%m-%d %H:%M:%S",
            )
        except ValueError as exc:
            raise FrontMatterError(f"Invalid date: {value!r}") from exc
        if match.group("offset"):
            parsed = parsed.replace(tzinfo=_parse_offset(match.group("offset")))
    else:
        raise FrontMatterError(f"Invalid date: {value!r}")

    if tz is not None:
        if parsed.tzinfo is None:
            return parsed.replace(tzinfo=tz)
        return parsed.astimezone(tz)
    return parsed


def normalize_list(value: Any) -> list[str]:
    """Normalize a ``categories``/``tags`` value to a list of strings.

    Examples:
        >>> normalize_list("design resilience")
        ['design', 'resilience']

        >>> normalize_list(["Distributed Systems", 2024])
        ['Distributed Systems', '2024']
    """
    if value is None:
        return []
    if isinstance(value, str):
        return value.split()
    if isinstance(value, (list, tuple, set)):
        return [str(item) for item in value if item is not None]
    return [str(value)]
