"""Content converters for Inkwell.

This module turns document bodies into HTML. Each converter handles a
single kind of source file.

Key classes:
- MarkdownConverter: Renders Markdown to HTML with syntax highlighting.
- HTMLConverter: Passes HTML content through unchanged.
- ConverterRegistry: Picks the converter for a file.
"""

from __future__ import annotations

import re
from pathlib import Path

import mistune
from pygments import highlight
from pygments.formatters import HtmlFormatter
from pygments.lexers import get_lexer_by_name
from pygments.util import ClassNotFound

from .html_utils import escape_html


def _generate_heading_id(text: str) -> str:
    """Generate a URL-friendly ID from heading text.

    Args:
        text: The heading text (may contain inline HTML).

    Returns:
        URL-friendly slug suitable for anchor links.
    """
    slug = re.sub(r"<[^>]+>", "", text).lower().strip()
    slug = re.sub(r"[^\w\s-]", "", slug)
    slug = re.sub(r"[-\s]+", "-", slug)
    return slug.strip("-")


class _HighlightRenderer(mistune.HTMLRenderer):
    """Markdown renderer adding heading anchors and Pygments highlighting."""

    def __init__(self):
        super().__init__(escape=False)
        self._heading_id_counts: dict[str, int] = {}

    def heading(self, text: str, level: int, **attrs) -> str:
        base_id = _generate_heading_id(text) or "section"

        if base_id in self._heading_id_counts:
            self._heading_id_counts[base_id] += 1
            heading_id = f"{base_id}-{self._heading_id_counts[base_id]}"
        else:
            self._heading_id_counts[base_id] = 0
            heading_id = base_id

        return f'<h{level} id="{heading_id}">{text}</h{level}>\n'

    def block_code(self, code: str, info: str | None = None) -> str:
        """Render a code block with Pygments syntax highlighting.

        Args:
            code: The code content.
            info: Language identifier (e.g., 'python', 'go').

        Returns:
            HTML string with highlighted code.
        """
        lang = info.split()[0] if info else ""
        if lang:
            try:
                lexer = get_lexer_by_name(lang, stripall=True)
            except ClassNotFound:
                lexer = None
            if lexer is not None:
                formatter = HtmlFormatter(cssclass="highlight")
                return highlight(code, lexer, formatter)
        lang_class = f' class="language-{escape_html(lang)}"' if lang else ""
        return f"<pre><code{lang_class}>{escape_html(code)}</code></pre>\n"


class MarkdownConverter:
    """Converts Markdown content to HTML."""

    source_type = "markdown"

    def __init__(self, extensions: set[str] | None = None):
        self.extensions = extensions or {".md", ".markdown"}

    def can_convert(self, path: Path) -> bool:
        return path.suffix.lower() in self.extensions

    def convert(self, content: str) -> str:
        """Render Markdown content to HTML.

        A fresh renderer is used per call so heading ids never leak
        between documents.
        """
        markdown = mistune.create_markdown(
            renderer=_HighlightRenderer(),
            plugins=["strikethrough", "footnotes", "table", "url"],
        )
        return markdown(content)


class HTMLConverter:
    """Passes HTML content through unchanged."""

    source_type = "html"

    def can_convert(self, path: Path) -> bool:
        return True

    def convert(self, content: str) -> str:
        return content


class ConverterRegistry:
    """Registry for content converters.

    Markdown files go to the Markdown converter; everything else passes
    through the HTML converter, which accepts anything.
    """

    def __init__(self, markdown_exts: set[str] | None = None):
        self._converters: list = [MarkdownConverter(markdown_exts), HTMLConverter()]

    def get_converter(self, path: Path):
        """Get the appropriate converter for a file."""
        for converter in self._converters:
            if converter.can_convert(path):
                return converter
        return None


def markdownify(text: str) -> str:
    """Convert a Markdown string to HTML with the default converter."""
    return MarkdownConverter().convert(str(text or ""))


def pygments_css(style: str = "default") -> str:
    """Return Pygments CSS rules for the ``.highlight`` class."""
    return HtmlFormatter(style=style).get_style_defs(".highlight")
