"""Content discovery for Inkwell.

This module walks a blog project, classifies every file, and builds the
objects the rest of the build works with.

Key classes:
- Document: A post or page with its front matter and rendered output.
- StaticFile: A file copied to the destination unchanged.
- SiteContent: Everything read from a project.
- SiteReader: Walks the project and produces a SiteContent.

Classification rules:
- Files under ``_posts`` directories are posts; directories above
  ``_posts`` become categories.
- Files under ``_drafts`` are drafts, read only when requested.
- Other files are pages when they start with front matter, static files
  otherwise.
- Names starting with ``_`` or ``.``, the destination, and configured
  ``exclude`` entries are skipped unless listed in ``include``.
"""

from __future__ import annotations

import fnmatch
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from .frontmatter import (
    FrontMatterError,
    has_frontmatter,
    normalize_list,
    parse_date,
    resolve_timezone,
    split_frontmatter,
)
from .permalinks import page_url, post_url
from .utils import (
    is_hidden,
    is_html,
    is_markdown,
    markdown_extensions,
    parse_post_filename,
    relative_posix,
    slugify,
    titleize,
)

logger = logging.getLogger(__name__)

POSTS_DIR = "_posts"
DRAFTS_DIR = "_drafts"


@dataclass(eq=False)
class Document:
    """Represents a post or page with all its metadata and content.

    Attributes:
        path: Path to the source file.
        relative_path: Source path relative to the project root.
        kind: ``"post"`` or ``"page"``.
        frontmatter: Raw front matter mapping.
        body: Source text after the front matter block.
        title: Document title.
        date: Publication date (timezone aware).
        layout: Layout name, or None to render without a layout.
        url: URL path of the rendered document.
        slug: URL-friendly slug.
        categories: Categories (posts only).
        tags: Tags from front matter.
        author: Author from front matter.
        draft: Whether this document was read from ``_drafts``.
        content: Converted body HTML, filled in during the build.
        output: Final HTML including layouts, filled in during the build.
        excerpt: HTML of the first paragraph, filled in during the build.
        previous: Older neighbouring post.
        next: Newer neighbouring post.
    """

    path: Path
    relative_path: str
    kind: str
    frontmatter: dict[str, Any]
    body: str
    title: str
    date: datetime
    layout: str | None
    url: str
    slug: str
    categories: list[str] = field(default_factory=list)
    tags: list[str] = field(default_factory=list)
    author: str = ""
    draft: bool = False
    content: str = ""
    output: str = ""
    excerpt: str = ""
    previous: Document | None = field(default=None, repr=False)
    next: Document | None = field(default=None, repr=False)

    @property
    def id(self) -> str:
        return self.url

    @property
    def is_post(self) -> bool:
        return self.kind == "post"

    def __getitem__(self, key: str) -> Any:
        # Jinja falls back to item access for unknown attributes, which lets
        # templates read arbitrary front matter keys as ``page.image``.
        if key in _DOCUMENT_ATTRS:
            return getattr(self, key)
        return self.frontmatter[key]

    def __contains__(self, key: str) -> bool:
        return key in _DOCUMENT_ATTRS or key in self.frontmatter

    def get(self, key: str, default: Any = None) -> Any:
        try:
            return self[key]
        except KeyError:
            return default


_DOCUMENT_ATTRS = frozenset(Document.__dataclass_fields__) | {"id", "is_post"}


@dataclass
class StaticFile:
    """A file copied to the destination without rendering."""

    path: Path
    relative_path: str
    url: str

    @property
    def name(self) -> str:
        return self.path.name

    @property
    def extname(self) -> str:
        return self.path.suffix


@dataclass
class SiteContent:
    """Everything read from a blog project."""

    posts: list[Document] = field(default_factory=list)
    pages: list[Document] = field(default_factory=list)
    static_files: list[StaticFile] = field(default_factory=list)

    @property
    def documents(self) -> list[Document]:
        return [*self.posts, *self.pages]


class SiteReader:
    """Reads posts, drafts, pages and static files from a project.

    Attributes:
        source: Root directory of the project.
        config: Loaded site configuration.
    """

    def __init__(self, source: Path, config: dict[str, Any], now: datetime | None = None):
        self.source = source
        self.config = config
        self.tz = resolve_timezone(config.get("timezone"))
        self.markdown_exts = markdown_extensions(config)
        self.destination = (source / config.get("destination", "_site")).resolve()
        self.now = now or datetime.now(timezone.utc)
        self._include = set(config.get("include") or [])
        self._exclude = list(config.get("exclude") or [])

    def read(self, include_drafts: bool = False) -> SiteContent:
        """Read the whole project.

        Args:
            include_drafts: Whether to read ``_drafts`` directories.

        Returns:
            SiteContent with posts sorted newest first.

        Raises:
            FrontMatterError: If any document has malformed front matter.
        """
        content = SiteContent()
        self._read_dir(self.source, [], content, include_drafts)
        content.posts.sort(key=lambda d: (d.date, d.slug), reverse=True)
        for newer, older in zip(content.posts, content.posts[1:]):
            newer.previous = older
            older.next = newer
        return content

    def _read_dir(
        self,
        directory: Path,
        categories: list[str],
        content: SiteContent,
        include_drafts: bool,
    ) -> None:
        for entry in sorted(directory.iterdir()):
            if entry.is_dir() and entry.name == POSTS_DIR:
                for path in self._iter_files(entry):
                    post = self._read_post(path, categories, draft=False)
                    if post is not None:
                        content.posts.append(post)
                continue
            if entry.is_dir() and entry.name == DRAFTS_DIR:
                if include_drafts:
                    for path in self._iter_files(entry):
                        post = self._read_post(path, categories, draft=True)
                        if post is not None:
                            content.posts.append(post)
                continue
            if self._is_skipped(entry):
                continue
            if entry.is_dir():
                self._read_dir(entry, categories + [entry.name], content, include_drafts)
                continue
            page = self._read_page(entry)
            if page is not None:
                content.pages.append(page)
            else:
                rel = relative_posix(entry, self.source)
                content.static_files.append(StaticFile(entry, rel, f"/{rel}"))

    def _iter_files(self, directory: Path) -> list[Path]:
        return sorted(
            p
            for p in directory.rglob("*")
            if p.is_file() and not is_hidden(p.name)
        )

    def _is_skipped(self, entry: Path) -> bool:
        rel = relative_posix(entry, self.source)
        if entry.name in self._include or rel in self._include:
            return False
        if self._is_output(entry):
            return True
        if is_hidden(entry.name):
            return True
        return any(
            fnmatch.fnmatch(entry.name, pattern) or fnmatch.fnmatch(rel, pattern.strip("/"))
            for pattern in self._exclude
        )

    def _is_output(self, entry: Path) -> bool:
        # The destination plus the serve staging and retired copies next to it.
        if not entry.is_dir() or entry.parent.resolve() != self.destination.parent:
            return False
        name = self.destination.name
        return entry.name == name or entry.name.startswith(f"{name}.")

    def _read_text(self, path: Path) -> str:
        try:
            return path.read_text(encoding="utf-8")
        except (UnicodeDecodeError, OSError) as exc:
            raise FrontMatterError(f"Cannot read file: {exc}", path) from exc

    def _load(
        self, path: Path, text: str | None = None
    ) -> tuple[dict[str, Any] | None, str]:
        if text is None:
            text = self._read_text(path)
        try:
            return split_frontmatter(text)
        except FrontMatterError as exc:
            raise FrontMatterError(exc.message, path) from exc

    def _is_renderable(self, path: Path) -> bool:
        return is_markdown(path, self.markdown_exts) or is_html(path)

    def _parse_date(self, value: Any, path: Path) -> datetime:
        try:
            return self._localize(parse_date(value, self.tz))
        except FrontMatterError as exc:
            raise FrontMatterError(exc.message, path) from exc

    def _localize(self, value: datetime) -> datetime:
        if value.tzinfo is not None:
            return value
        if self.tz is not None:
            return value.replace(tzinfo=self.tz)
        return value.astimezone()

    def _read_post(
        self, path: Path, categories: list[str], draft: bool
    ) -> Document | None:
        if not self._is_renderable(path):
            logger.warning("Skipping %s: not a Markdown or HTML file", path)
            return None

        if draft:
            stem_date, title_part = None, path.stem
        else:
            parsed = parse_post_filename(path.stem)
            if parsed is None:
                logger.warning(
                    "Skipping %s: post filenames must look like YYYY-MM-DD-title%s",
                    path,
                    path.suffix,
                )
                return None
            stem_date, title_part = parsed

        frontmatter, body = self._load(path)
        frontmatter = frontmatter or {}
        if frontmatter.get("published") is False:
            logger.info("Skipping unpublished post %s", path)
            return None

        if "date" in frontmatter and frontmatter["date"] is not None:
            date = self._parse_date(frontmatter["date"], path)
        elif stem_date is not None:
            date = self._localize(stem_date)
        else:
            date = self._localize(datetime.fromtimestamp(path.stat().st_mtime))

        if not draft and not self.config.get("future") and date > self.now:
            logger.info("Skipping future-dated post %s (%s)", path, date.isoformat())
            return None

        post_categories = list(categories)
        for name in normalize_list(frontmatter.get("category")) + normalize_list(
            frontmatter.get("categories")
        ):
            if name not in post_categories:
                post_categories.append(name)

        slug = slugify(frontmatter.get("slug") or title_part) or "post"
        layout = frontmatter.get("layout", "post")
        url = post_url(
            self.config.get("permalink"),
            date,
            slug,
            post_categories,
            frontmatter.get("permalink"),
        )
        return Document(
            path=path,
            relative_path=relative_posix(path, self.source),
            kind="post",
            frontmatter=frontmatter,
            body=body,
            title=str(frontmatter.get("title") or titleize(title_part)),
            date=date,
            layout=_layout_name(layout),
            url=url,
            slug=slug,
            categories=post_categories,
            tags=normalize_list(frontmatter.get("tags")),
            author=str(frontmatter.get("author") or self.config.get("author") or ""),
            draft=draft,
        )

    def _read_page(self, path: Path) -> Document | None:
        # Peek first so binary static files are never decoded.
        try:
            with open(path, "rb") as f:
                head = f.read(3)
        except OSError as exc:
            raise FrontMatterError(f"Cannot read file: {exc}", path) from exc
        if head != b"---":
            return None
        text = self._read_text(path)
        if not has_frontmatter(text):
            return None
        frontmatter, body = self._load(path, text)
        frontmatter = frontmatter or {}

        rel = relative_posix(path, self.source)
        markdown = is_markdown(path, self.markdown_exts)
        output_ext = ".html" if markdown else path.suffix
        layout = frontmatter.get("layout", "page" if markdown else None)
        if frontmatter.get("date") is not None:
            date = self._parse_date(frontmatter["date"], path)
        else:
            date = self._localize(datetime.fromtimestamp(path.stat().st_mtime))
        return Document(
            path=path,
            relative_path=rel,
            kind="page",
            frontmatter=frontmatter,
            body=body,
            title=str(frontmatter.get("title") or ""),
            date=date,
            layout=_layout_name(layout),
            url=page_url(rel, frontmatter.get("permalink"), output_ext),
            slug=slugify(path.stem) or "index",
            categories=normalize_list(frontmatter.get("categories")),
            tags=normalize_list(frontmatter.get("tags")),
            author=str(frontmatter.get("author") or ""),
        )


def _layout_name(value: Any) -> str | None:
    if value is None or str(value).strip().lower() in ("", "none", "null"):
        return None
    return str(value)
