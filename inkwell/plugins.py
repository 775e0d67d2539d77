"""Plugins for Inkwell.

Plugins are enabled by name in the ``plugins`` list of ``_config.yml``.
Names may carry a ``jekyll-`` prefix (``jekyll-feed``), so configurations
written for Jekyll keep working.

Classes:
    Plugin: Base class; may install template globals and write output files.
    FeedPlugin: Atom feed of recent posts at ``/feed.xml``.
    SitemapPlugin: ``/sitemap.xml`` listing every post and page.
    SeoPlugin: ``seo()`` template global emitting title and meta tags.

Functions:
    load_plugins: Instantiate the plugins named in the configuration.
"""

from __future__ import annotations

import logging
from abc import ABC
from collections.abc import Iterable
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING, Any

from jinja2 import pass_context
from markupsafe import Markup

from . import __version__
from .html_utils import absolutize_html_urls, escape_html, join_root_url, strip_html

if TYPE_CHECKING:
    from .content import Document
    from .templates import TemplateEngine

logger = logging.getLogger(__name__)


def _site_root(config: dict[str, Any]) -> str:
    return f"{config.get('url', '')}{config.get('baseurl', '')}"


def _absolute(config: dict[str, Any], url: str) -> str:
    return join_root_url(_site_root(config), url)


class Plugin(ABC):
    """Base class for plugins.

    Subclasses override ``setup`` to extend the template engine and
    ``generate`` to write extra files after documents are rendered.
    """

    name: str = ""

    def setup(self, engine: TemplateEngine) -> None:
        """Install template globals or filters."""

    def generate(self, output_dir: Path, site: dict[str, Any]) -> list[str]:
        """Write output files.

        Returns:
            Filenames written, relative to ``output_dir``.
        """
        return []


class FeedPlugin(Plugin):
    """Generates an Atom feed of the newest posts.

    Requires ``url`` in the site configuration to build absolute links.
    """

    name = "feed"
    filename = "feed.xml"
    limit = 10

    def setup(self, engine: TemplateEngine) -> None:
        config = engine.config

        def feed_meta() -> Markup:
            href = _absolute(config, f"/{self.filename}")
            title = escape_html(config.get("title", ""))
            return Markup(
                f'<link type="application/atom+xml" rel="alternate" '
                f'href="{escape_html(href)}" title="{title}" />'
            )

        engine.env.globals["feed_meta"] = feed_meta

    def render(self, posts: Iterable[Document], config: dict[str, Any]) -> str | None:
        """Render the Atom document, or None when no site ``url`` is set."""
        if not config.get("url"):
            logger.warning("Skipping %s: set `url` in _config.yml", self.filename)
            return None

        root = _site_root(config)
        feed_url = _absolute(config, f"/{self.filename}")
        recent = list(posts)[: self.limit]
        updated = (
            recent[0].date if recent else datetime.now(timezone.utc)
        ).isoformat()

        lines = [
            '<?xml version="1.0" encoding="utf-8"?>',
            '<feed xmlns="http://www.w3.org/2005/Atom">',
            f'<generator version="{__version__}">Inkwell</generator>',
            f'<link href="{escape_html(feed_url)}" rel="self" type="application/atom+xml" />',
            f'<link href="{escape_html(root)}/" rel="alternate" type="text/html" />',
            f"<updated>{updated}</updated>",
            f"<id>{escape_html(feed_url)}</id>",
            f'<title type="html">{escape_html(config.get("title", ""))}</title>',
        ]
        if config.get("description"):
            lines.append(f"<subtitle>{escape_html(config['description'])}</subtitle>")
        if config.get("author"):
            lines.append(
                f"<author><name>{escape_html(config['author'])}</name></author>"
            )

        for post in recent:
            link = _absolute(config, post.url)
            content = absolutize_html_urls(str(post.content), root)
            entry = [
                "<entry>",
                f'<title type="html">{escape_html(post.title)}</title>',
                f'<link href="{escape_html(link)}" rel="alternate" type="text/html" '
                f'title="{escape_html(post.title)}" />',
                f"<published>{post.date.isoformat()}</published>",
                f"<updated>{post.date.isoformat()}</updated>",
                f"<id>{escape_html(link)}</id>",
                f'<content type="html" xml:base="{escape_html(link)}">'
                f"{escape_html(content)}</content>",
            ]
            if post.author:
                entry.append(f"<author><name>{escape_html(post.author)}</name></author>")
            for category in post.categories:
                entry.append(f'<category term="{escape_html(category)}" />')
            if post.excerpt:
                entry.append(
                    f'<summary type="html">{escape_html(strip_html(post.excerpt))}</summary>'
                )
            entry.append("</entry>")
            lines.append("".join(entry))
        lines.append("</feed>")
        return "\n".join(lines)

    def generate(self, output_dir: Path, site: dict[str, Any]) -> list[str]:
        content = self.render(site["posts"], site)
        if content is None:
            return []
        (output_dir / self.filename).write_text(content, encoding="utf-8")
        return [self.filename]


class SitemapPlugin(Plugin):
    """Generates sitemap.xml for search engine indexing.

    Lists every post and HTML page with its last modification date.
    Documents with ``sitemap: false`` in front matter are left out.
    """

    name = "sitemap"
    filename = "sitemap.xml"

    def render(self, documents: Iterable[Document], config: dict[str, Any]) -> str | None:
        if not config.get("url"):
            logger.warning("Skipping %s: set `url` in _config.yml", self.filename)
            return None

        lines = [
            '<?xml version="1.0" encoding="UTF-8"?>',
            '<urlset xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">',
        ]
        for doc in documents:
            if doc.frontmatter.get("sitemap") is False:
                continue
            if not (doc.url.endswith("/") or doc.url.endswith(".html")):
                continue
            loc = escape_html(_absolute(config, doc.url))
            lastmod = doc.date.strftime("%Y-%m-%d")
            lines.append(f"  <url><loc>{loc}</loc><lastmod>{lastmod}</lastmod></url>")
        lines.append("</urlset>")
        return "\n".join(lines)

    def generate(self, output_dir: Path, site: dict[str, Any]) -> list[str]:
        content = self.render([*site["posts"], *site["pages"]], site)
        if content is None:
            return []
        (output_dir / self.filename).write_text(content, encoding="utf-8")
        return [self.filename]


class SeoPlugin(Plugin):
    """Provides the ``seo()`` template global.

    Emits the ``<title>`` element, description, canonical link, OpenGraph
    and Twitter card tags for the page being rendered.
    """

    name = "seo-tag"
    description_limit = 200

    def setup(self, engine: TemplateEngine) -> None:
        @pass_context
        def seo(context) -> Markup:
            return self.render(context.get("page"), context.get("site") or engine.config)

        engine.env.globals["seo"] = seo

    def render(self, page: Any, site: dict[str, Any]) -> Markup:
        site_title = str(site.get("title") or "")
        page_title = str(getattr(page, "title", "") or "")
        if page_title and page_title != site_title:
            full_title = f"{page_title} | {site_title}" if site_title else page_title
        else:
            full_title = site_title

        description = ""
        if page is not None:
            description = str(page.get("description") or "") or strip_html(
                getattr(page, "excerpt", "") or ""
            )
        description = (description or str(site.get("description") or ""))[
            : self.description_limit
        ]

        tags = [
            f"<title>{escape_html(full_title)}</title>",
            f'<meta name="generator" content="Inkwell {__version__}" />',
            f'<meta property="og:title" content="{escape_html(page_title or site_title)}" />',
            '<meta property="og:locale" content="en_US" />',
        ]
        author = getattr(page, "author", "") or site.get("author")
        if author:
            tags.append(f'<meta name="author" content="{escape_html(author)}" />')
        if description:
            tags.append(f'<meta name="description" content="{escape_html(description)}" />')
            tags.append(
                f'<meta property="og:description" content="{escape_html(description)}" />'
            )
        if page is not None and site.get("url"):
            canonical = escape_html(_absolute(site, page.url))
            tags.append(f'<link rel="canonical" href="{canonical}" />')
            tags.append(f'<meta property="og:url" content="{canonical}" />')
        if site_title:
            tags.append(f'<meta property="og:site_name" content="{escape_html(site_title)}" />')
        if page is not None and getattr(page, "is_post", False):
            tags.append('<meta property="og:type" content="article" />')
            tags.append(
                f'<meta property="article:published_time" content="{page.date.isoformat()}" />'
            )
        else:
            tags.append('<meta property="og:type" content="website" />')
        tags.append('<meta name="twitter:card" content="summary" />')
        twitter = str(site.get("twitter_username") or "").lstrip("@")
        if twitter:
            tags.append(f'<meta name="twitter:site" content="@{escape_html(twitter)}" />')
        return Markup("\n".join(tags))


PLUGINS: dict[str, type[Plugin]] = {
    FeedPlugin.name: FeedPlugin,
    SitemapPlugin.name: SitemapPlugin,
    SeoPlugin.name: SeoPlugin,
}


def normalize_plugin_name(name: str) -> str:
    """Strip the ``jekyll-`` prefix from a plugin name.

    Examples:
        >>> normalize_plugin_name("jekyll-seo-tag")
        'seo-tag'
    """
    name = str(name).strip()
    return name[len("jekyll-") :] if name.startswith("jekyll-") else name


def load_plugins(names: Iterable[str]) -> list[Plugin]:
    """Instantiate the plugins named in the site configuration.

    Unknown names are logged and ignored; duplicates load once.
    """
    plugins: list[Plugin] = []
    seen: set[str] = set()
    for raw in names:
        name = normalize_plugin_name(raw)
        if name in seen:
            continue
        seen.add(name)
        plugin_cls = PLUGINS.get(name)
        if plugin_cls is None:
            logger.warning("Unknown plugin '%s' ignored", raw)
            continue
        plugins.append(plugin_cls())
    return plugins
