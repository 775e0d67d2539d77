"""Utility functions for Inkwell.

This module contains small helpers used throughout the Inkwell codebase.
These include string processing, post filename parsing, and path handling.

Key functions:
    slugify: Convert titles and filenames to URL slugs.
    titleize: Convert filenames to human-readable titles.
    parse_post_filename: Split a YYYY-MM-DD-title filename into date and slug.
    is_markdown: Check if a path is a Markdown file.
    is_html: Check if a path is an HTML file.
    is_hidden: Check if a path component is internal (leading _ or .).
    ensure_clean_dir: Ensure a directory exists and is empty.
"""

from __future__ import annotations

import re
import shutil
from datetime import datetime
from pathlib import Path

POST_FILENAME_RE = re.compile(r"^(\d{4})-(\d{2})-(\d{2})-(.+)$")


def slugify(name: str) -> str:
    """Convert a title or filename stem to a lowercase, hyphenated slug.

    Letters and digits from any script are kept; runs of anything else
    become a single hyphen.

    Args:
        name: Text to slugify.

    Returns:
        URL-friendly slug, or an empty string when nothing survives.

    Examples:
        >>> slugify("Circuit Breakers, Explained!")
        'circuit-breakers-explained'

        >>> slugify("Café Notes")
        'café-notes'
    """
    cleaned = re.sub(r"[\W_]+", "-", str(name))
    return cleaned.strip("-").lower()


def titleize(filename: str) -> str:
    """Convert a filename to a human-readable title.

    Removes date prefixes (YYYY-MM-DD), replaces hyphens and underscores
    with spaces, and capitalizes each word.

    Args:
        filename: Filename with or without extension.

    Returns:
        Human-readable title string.

    Examples:
        >>> titleize("2024-01-15-hello-world.md")
        'Hello World'

        >>> titleize("getting-started.md")
        'Getting Started'
    """
    base = Path(filename).stem
    match = POST_FILENAME_RE.match(base)
    if match:
        base = match.group(4)
    words = re.split(r"[\s\-_]+", base)
    return " ".join(word.capitalize() for word in words if word) or "Untitled"


def parse_post_filename(name: str) -> tuple[datetime, str] | None:
    """Split a post filename into its date and title parts.

    Args:
        name: Filename stem (without extension), e.g. ``2024-01-15-hello``.

    Returns:
        Tuple of (date, title part), or None if the name does not follow
        the ``YYYY-MM-DD-title`` convention or the date is invalid.

    Examples:
        >>> parse_post_filename("2024-01-15-hello-world")
        (datetime.datetime(2024, 1, 15, 0, 0), 'hello-world')

        >>> parse_post_filename("hello-world") is None
        True
    """
    match = POST_FILENAME_RE.match(name)
    if not match:
        return None
    year, month, day, title = match.groups()
    try:
        return datetime(int(year), int(month), int(day)), title
    except ValueError:
        return None


def markdown_extensions(config: dict) -> set[str]:
    """Return the set of Markdown file suffixes configured for the site.

    Args:
        config: Site configuration with a comma separated ``markdown_ext``.

    Returns:
        Set of suffixes including the leading dot, lowercased.
    """
    raw = config.get("markdown_ext") or "md"
    return {
        f".{ext.strip().lower().lstrip('.')}"
        for ext in str(raw).split(",")
        if ext.strip()
    }


def is_markdown(path: Path, extensions: set[str] | None = None) -> bool:
    """Check if a path is a Markdown file.

    Args:
        path: Path to check.
        extensions: Optional set of Markdown suffixes; defaults to ``.md``
            and ``.markdown``.

    Returns:
        True if the file has a Markdown extension (case-insensitive).
    """
    return path.suffix.lower() in (extensions or {".md", ".markdown"})


def is_html(path: Path) -> bool:
    """Check if a path is an HTML file."""
    return path.suffix.lower() in (".html", ".htm")


def is_hidden(part: str) -> bool:
    """Check if a path component is internal (starts with _ or .)."""
    return part.startswith(("_", "."))


def ensure_clean_dir(path: Path) -> None:
    """Ensure a directory exists and is empty.

    If the directory exists, removes all contents. Creates the
    directory if it doesn't exist.

    Args:
        path: Directory path to clean or create.
    """
    if path.exists():
        shutil.rmtree(path)
    path.mkdir(parents=True, exist_ok=True)


def relative_posix(path: Path, root: Path) -> str:
    """Return ``path`` relative to ``root`` as a forward-slash string."""
    return path.relative_to(root).as_posix()
