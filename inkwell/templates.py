"""Template rendering engine for Inkwell.

This module uses Jinja2 to render document bodies and wrap them in layouts.
Layouts live in ``_layouts/`` and partials in ``_includes/``; the project
directories are searched before the theme's, so a blog can override any
theme file by creating one with the same name.

Key class:
- TemplateEngine: Loads layouts and includes, renders bodies and layout chains.

Layouts may begin with front matter naming a parent ``layout``. Rendering
walks that chain from the innermost layout outwards, passing the HTML built
so far as ``content``.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import date, datetime
from pathlib import Path
from typing import Any
from urllib.parse import quote_plus

from jinja2 import (
    ChoiceLoader,
    Environment,
    FileSystemLoader,
    PrefixLoader,
    Template,
    TemplateNotFound,
    select_autoescape,
)
from markupsafe import Markup, escape

from .config import ConfigError
from .content import Document, _layout_name
from .frontmatter import split_frontmatter
from .html_utils import join_root_url, strip_html
from .renderers import markdownify, pygments_css
from .utils import slugify

logger = logging.getLogger(__name__)

THEMES_DIR = Path(__file__).parent / "themes"


class TemplateError(Exception):
    """Error raised for layout problems Jinja2 cannot detect itself."""


def resolve_theme(source: Path, name: str | None) -> Path | None:
    """Resolve the configured theme to a directory.

    A theme is either a directory relative to the project, or the name of a
    theme bundled with Inkwell.

    Raises:
        ConfigError: If the theme cannot be found.
    """
    if not name:
        return None
    local = source / str(name)
    if local.is_dir():
        return local
    bundled = THEMES_DIR / str(name)
    if bundled.is_dir():
        return bundled
    raise ConfigError(source / "_config.yml", f"Unknown theme: {name}")


class _FrontMatterLoader(FileSystemLoader):
    """FileSystemLoader that strips front matter and remembers it by name."""

    def __init__(self, searchpath: list[Path]):
        super().__init__([str(p) for p in searchpath if p.is_dir()])
        self.frontmatter: dict[str, dict[str, Any]] = {}

    def get_source(self, environment, template):
        source, filename, uptodate = super().get_source(environment, template)
        frontmatter, body = split_frontmatter(source)
        self.frontmatter[template] = frontmatter or {}
        return body, filename, uptodate


@dataclass
class Layout:
    name: str
    template: Template
    frontmatter: dict[str, Any]


def _to_datetime(value: Any) -> datetime | None:
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    return None


def date_to_xmlschema(value: Any) -> str:
    dt = _to_datetime(value)
    return dt.isoformat() if dt else str(value or "")


def date_to_rfc822(value: Any) -> str:
    dt = _to_datetime(value)
    return dt.strftime("%a, %d %b %Y %H:%M:%S %z").strip() if dt else str(value or "")


def date_to_string(value: Any) -> str:
    dt = _to_datetime(value)
    return dt.strftime("%d %b %Y") if dt else str(value or "")


def date_to_long_string(value: Any) -> str:
    dt = _to_datetime(value)
    return dt.strftime("%d %B %Y") if dt else str(value or "")


def format_date(value: Any, fmt: str = "%b %d, %Y") -> str:
    dt = _to_datetime(value)
    return dt.strftime(fmt) if dt else str(value or "")


def xml_escape(value: Any) -> Markup:
    return escape("" if value is None else str(value))


def number_of_words(value: Any) -> int:
    return len(strip_html(str(value or "")).split())


def where(items: Any, key: str, value: Any) -> list:
    """Select items whose ``key`` equals ``value`` (or contains it, for lists)."""
    selected = []
    for item in items or []:
        if isinstance(item, dict) or hasattr(item, "get"):
            field_value = item.get(key)
        else:
            field_value = getattr(item, key, None)
        if field_value == value or (
            isinstance(field_value, (list, tuple)) and value in field_value
        ):
            selected.append(item)
    return selected


def jsonify(value: Any) -> Markup:
    return Markup(json.dumps(value, default=str, ensure_ascii=False))


class TemplateEngine:
    """Template rendering engine using Jinja2.

    Attributes:
        source: Project root directory.
        config: Site configuration.
        theme_dir: Optional theme directory searched after the project.
        env: Jinja2 environment.
    """

    def __init__(
        self,
        source: Path,
        config: dict[str, Any],
        theme_dir: Path | None = None,
    ):
        self.source = source
        self.config = config
        self.theme_dir = theme_dir
        layout_dirs = [source / "_layouts"]
        include_dirs = [source / "_includes"]
        if theme_dir is not None:
            layout_dirs.append(theme_dir / "_layouts")
            include_dirs.append(theme_dir / "_includes")
        self._layout_loader = _FrontMatterLoader(layout_dirs)
        self.env = Environment(
            loader=ChoiceLoader(
                [
                    _FrontMatterLoader(include_dirs),
                    PrefixLoader({"_layouts": self._layout_loader}),
                ]
            ),
            autoescape=select_autoescape(["html", "xml"]),
        )
        self._install_filters()
        self.env.globals["pygments_css"] = pygments_css

    def _install_filters(self) -> None:
        """Install Jekyll-flavoured filters in the Jinja environment."""
        filters = self.env.filters
        filters["relative_url"] = self.relative_url
        filters["absolute_url"] = self.absolute_url
        filters["date_to_xmlschema"] = date_to_xmlschema
        filters["date_to_rfc822"] = date_to_rfc822
        filters["date_to_string"] = date_to_string
        filters["date_to_long_string"] = date_to_long_string
        filters["date"] = format_date
        filters["xml_escape"] = xml_escape
        filters["cgi_escape"] = lambda value: quote_plus(str(value or ""))
        filters["markdownify"] = lambda value: Markup(markdownify(value))
        filters["strip_html"] = strip_html
        filters["number_of_words"] = number_of_words
        filters["slugify"] = slugify
        filters["jsonify"] = jsonify
        filters["where"] = where

    def relative_url(self, path: Any) -> str:
        """Prefix a root-relative path with the site ``baseurl``."""
        text = str(path or "")
        if text.startswith(("http://", "https://", "//")):
            return text
        return join_root_url(self.config.get("baseurl", ""), text)

    def absolute_url(self, path: Any) -> str:
        """Prefix a path with the site ``url`` and ``baseurl``."""
        text = str(path or "")
        if text.startswith(("http://", "https://", "//")):
            return text
        base = f"{self.config.get('url', '')}{self.config.get('baseurl', '')}"
        return join_root_url(base, text)

    def get_layout(self, name: str) -> Layout | None:
        """Return the named layout, or None when neither project nor theme has it."""
        for candidate in (name, f"{name}.html"):
            try:
                template = self.env.get_template(f"_layouts/{candidate}")
            except TemplateNotFound:
                continue
            return Layout(
                name=name,
                template=template,
                frontmatter=self._layout_loader.frontmatter.get(candidate, {}),
            )
        return None

    def has_layout(self, name: str) -> bool:
        return self.get_layout(name) is not None

    def render_body(self, document: Document, site: dict[str, Any]) -> str:
        """Run the document body through Jinja2.

        Documents opt out with ``render_with_liquid: false`` in front matter.
        """
        if document.frontmatter.get("render_with_liquid") is False:
            return document.body
        template = self.env.from_string(document.body)
        return template.render(site=site, page=document)

    def render_layouts(
        self, document: Document, content: str, site: dict[str, Any]
    ) -> str:
        """Wrap converted content in the document's layout chain.

        Raises:
            TemplateError: If the layout chain loops.
        """
        name = document.layout
        seen: list[str] = []
        output = content
        while name:
            if name in seen:
                chain = " -> ".join([*seen, name])
                raise TemplateError(f"Layout cycle detected: {chain}")
            seen.append(name)
            layout = self.get_layout(name)
            if layout is None:
                logger.warning(
                    "Layout '%s' requested in %s does not exist",
                    name,
                    document.relative_path,
                )
                break
            output = layout.template.render(
                site=site,
                page=document,
                layout=layout.frontmatter,
                content=Markup(output),
            )
            name = _layout_name(layout.frontmatter.get("layout"))
        return output

    def render_string(self, template: str, context: dict[str, Any]) -> str:
        """Render a template string."""
        return self.env.from_string(template).render(**context)
