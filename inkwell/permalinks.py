"""URL derivation for posts and pages.

Post URLs come from a permalink style (``date``, ``pretty``, ``ordinal``,
``none``) or a custom template built from ``:placeholders``. Page URLs
follow the source path unless a ``permalink`` is set in front matter.
"""

from __future__ import annotations

import re
from datetime import datetime
from pathlib import Path, PurePosixPath

from .utils import slugify

PERMALINK_STYLES = {
    "date": "/:categories/:year/:month/:day/:title:output_ext",
    "pretty": "/:categories/:year/:month/:day/:title/",
    "ordinal": "/:categories/:year/:y_day/:title:output_ext",
    "none": "/:categories/:title:output_ext",
}

PLACEHOLDER_RE = re.compile(r":([a-z_]+)")


class PermalinkError(ValueError):
    """Raised when a URL would write outside the destination directory."""


def permalink_template(style: str | None) -> str:
    """Resolve a permalink style name to its template."""
    style = style or "date"
    return PERMALINK_STYLES.get(style, style)


def expand_template(template: str, placeholders: dict[str, str]) -> str:
    """Substitute ``:name`` placeholders and collapse empty segments.

    Unknown placeholders are left as written.

    Examples:
        >>> expand_template("/:categories/:title/", {"categories": "", "title": "hi"})
        '/hi/'
    """

    def repl(match: re.Match) -> str:
        return placeholders.get(match.group(1), match.group(0))

    url = PLACEHOLDER_RE.sub(repl, template)
    url = re.sub(r"/{2,}", "/", url)
    if not url.startswith("/"):
        url = f"/{url}"
    return url


def post_placeholders(
    date: datetime, slug: str, categories: list[str], output_ext: str = ".html"
) -> dict[str, str]:
    """Build the placeholder values for a post URL."""
    return {
        "year": f"{date.year:04d}",
        "short_year": f"{date.year % 100:02d}",
        "month": f"{date.month:02d}",
        "i_month": str(date.month),
        "day": f"{date.day:02d}",
        "i_day": str(date.day),
        "y_day": f"{date.timetuple().tm_yday:03d}",
        "hour": f"{date.hour:02d}",
        "minute": f"{date.minute:02d}",
        "second": f"{date.second:02d}",
        "title": slug,
        "slug": slug,
        "categories": "/".join(s for s in (slugify(c) for c in categories) if s),
        "output_ext": output_ext,
    }


def post_url(
    style: str | None,
    date: datetime,
    slug: str,
    categories: list[str],
    permalink: str | None = None,
) -> str:
    """Derive the URL of a post.

    Args:
        style: Site ``permalink`` setting (style name or template).
        date: Post date.
        slug: Post slug from the filename or front matter.
        categories: Post categories.
        permalink: Front matter ``permalink``, which may itself use
            placeholders.

    Returns:
        URL path beginning with ``/``.
    """
    template = permalink or permalink_template(style)
    return expand_template(template, post_placeholders(date, slug, categories))


def page_url(
    relative_path: str, permalink: str | None = None, output_ext: str = ".html"
) -> str:
    """Derive the URL of a page.

    Args:
        relative_path: Source path relative to the project root.
        permalink: Front matter ``permalink``.
        output_ext: Extension of the rendered file; Markdown pages become
            ``.html`` while other pages keep their own extension.

    Examples:
        >>> page_url("about.md")
        '/about.html'

        >>> page_url("blog/index.html")
        '/blog/'

        >>> page_url("about.md", "/about/")
        '/about/'
    """
    if permalink:
        url = str(permalink)
        return url if url.startswith("/") else f"/{url}"
    path = PurePosixPath(relative_path).with_suffix(output_ext)
    if path.name == "index.html":
        parent = path.parent.as_posix()
        return "/" if parent == "." else f"/{parent}/"
    return f"/{path.as_posix()}"


def output_path(destination: Path, url: str) -> Path:
    """Map a URL to the file that serves it inside ``destination``.

    A URL ending in ``/`` maps to ``index.html`` in that directory; an
    extensionless URL such as ``/about`` maps to ``about.html``.

    Raises:
        PermalinkError: If the URL resolves outside ``destination``.
    """
    rel = url.split("?", 1)[0].split("#", 1)[0].lstrip("/")
    parts = PurePosixPath(rel).parts if rel else ()
    if any(part == ".." for part in parts):
        raise PermalinkError(f"URL escapes the destination directory: {url}")
    target = destination.joinpath(*parts)
    if url.endswith("/") or not rel:
        return target / "index.html"
    if not PurePosixPath(rel).suffix:
        return target.with_name(f"{target.name}.html")
    return target
