"""HTML helpers for feeds, SEO tags and template filters.

Feed readers and search engines need absolute links and plain text, while
rendered posts carry root-relative links and markup. These helpers bridge
the two.

Functions:
    escape_html: Escape text for use in HTML or XML content and attributes.
    join_root_url: Join a site root and a root-relative path.
    absolutize_html_urls: Point root-relative links in a fragment at a site root.
    strip_html: Reduce an HTML fragment to its text.
"""

from __future__ import annotations

import html
import re

_ESCAPES = str.maketrans({"&": "&amp;", "<": "&lt;", ">": "&gt;", '"': "&quot;"})

# Attributes holding a single URL, and srcset which holds a list of them.
_LINK_ATTR_RE = re.compile(
    r'\b(?P<attr>href|src|action|poster)=(?P<quote>["\'])(?P<url>.*?)(?P=quote)',
    re.IGNORECASE,
)
_SRCSET_RE = re.compile(
    r'\bsrcset=(?P<quote>["\'])(?P<value>.*?)(?P=quote)', re.IGNORECASE
)

_TAG_RE = re.compile(r"<[^>]+>")


def escape_html(text: str) -> str:
    """Escape ``&``, ``<``, ``>`` and ``"``.

    Examples:
        >>> escape_html('<script>alert("XSS")</script>')
        '&lt;script&gt;alert(&quot;XSS&quot;)&lt;/script&gt;'

        >>> escape_html('Tom & Jerry')
        'Tom &amp; Jerry'
    """
    return str(text).translate(_ESCAPES)


def join_root_url(root_url: str, path: str) -> str:
    """Join a site root and a path with exactly one slash between them.

    With an empty root the path is returned root-relative.

    Examples:
        >>> join_root_url('https://example.com/blog/', '/about/')
        'https://example.com/blog/about/'

        >>> join_root_url('', 'about')
        '/about'
    """
    path = "/" + path.lstrip("/")
    return f"{root_url.rstrip('/')}{path}" if root_url else path


def _absolute(url: str, root_url: str) -> str:
    # Only root-relative paths; "//host/x" is protocol-relative.
    if url.startswith("/") and not url.startswith("//"):
        return join_root_url(root_url, url)
    return url


def absolutize_html_urls(fragment: str, root_url: str) -> str:
    """Point root-relative links in an HTML fragment at ``root_url``.

    ``href``, ``src``, ``action`` and ``poster`` attributes are rewritten,
    as is every candidate of a ``srcset``. Absolute, protocol-relative,
    document-relative, fragment and scheme URLs (``mailto:``, ``data:``...)
    are left as they are.

    Examples:
        >>> absolutize_html_urls('<a href="/about">About</a>', 'https://example.com')
        '<a href="https://example.com/about">About</a>'

        >>> absolutize_html_urls('<img srcset="/a.png 1x, /b.png 2x">', 'https://x.org')
        '<img srcset="https://x.org/a.png 1x, https://x.org/b.png 2x">'
    """
    if not root_url:
        return fragment

    def link(match: re.Match) -> str:
        quote = match.group("quote")
        url = _absolute(match.group("url").strip(), root_url)
        return f"{match.group('attr')}={quote}{url}{quote}"

    def srcset(match: re.Match) -> str:
        candidates = []
        for candidate in match.group("value").split(","):
            url, _, descriptor = candidate.strip().partition(" ")
            url = _absolute(url, root_url)
            candidates.append(f"{url} {descriptor.strip()}".rstrip())
        quote = match.group("quote")
        return f"srcset={quote}{', '.join(candidates)}{quote}"

    return _SRCSET_RE.sub(srcset, _LINK_ATTR_RE.sub(link, fragment))


def strip_html(fragment: str) -> str:
    """Remove tags, decode entities and collapse whitespace.

    Examples:
        >>> strip_html('<p>Tom &amp; <em>Jerry</em></p>')
        'Tom & Jerry'
    """
    text = html.unescape(_TAG_RE.sub(" ", str(fragment)))
    return " ".join(text.split())
