"""Site building functionality for Inkwell.

This module contains the core logic for building a static blog from a
project directory. It loads configuration and data, reads posts and pages,
renders them through Jinja2 and Markdown, and writes the output tree.

Key functions:
- build_site: Build the entire site.
- clean_site: Remove the build destination.
- load_data: Load ``_data`` files exposed to templates as ``site.data``.
"""

from __future__ import annotations

import json
import logging
import shutil
import time
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import yaml
from jinja2 import TemplateNotFound, TemplateSyntaxError
from markupsafe import Markup

from .collections import PostCollection, TaxonomyIndex
from .config import check_destination, load_config
from .content import Document, SiteContent, SiteReader, StaticFile
from .frontmatter import FrontMatterError
from .permalinks import PermalinkError, output_path
from .plugins import load_plugins
from .renderers import ConverterRegistry
from .static_files import StaticFileError, StaticFilePipeline
from .templates import TemplateEngine, resolve_theme
from .utils import ensure_clean_dir, markdown_extensions

logger = logging.getLogger(__name__)

DATA_DIR = "_data"


class BuildError(Exception):
    """Error during site build with file context.

    Attributes:
        source_path: Path to the source file that caused the error.
        message: Human-readable error message.
        original_error: The original exception that was caught.
    """

    def __init__(
        self,
        source_path: Path,
        message: str,
        original_error: Exception | None = None,
    ):
        self.source_path = source_path
        self.message = message
        self.original_error = original_error
        super().__init__(f"{source_path}: {message}")


@dataclass
class BuildResult:
    """Result of a site build operation.

    Attributes:
        posts: Rendered posts, newest first.
        pages: Rendered pages.
        static_files: Static files copied to the destination.
        output_dir: Directory where the site was built.
        config: Effective site configuration.
        generated: Files written by plugins.
        elapsed: Build duration in seconds.
    """

    posts: list[Document]
    pages: list[Document]
    static_files: list[StaticFile]
    output_dir: Path
    config: dict[str, Any]
    generated: list[str] = field(default_factory=list)
    elapsed: float = 0.0


def load_data(source: Path) -> dict[str, Any]:
    """Load site data from ``_data``.

    Each ``.yml``, ``.yaml`` or ``.json`` file becomes a key named after the
    file stem; subdirectories become nested mappings.

    Raises:
        BuildError: If a data file cannot be parsed.
    """
    return _load_data_dir(source / DATA_DIR)


def _load_data_dir(directory: Path) -> dict[str, Any]:
    data: dict[str, Any] = {}
    if not directory.is_dir():
        return data
    for path in sorted(directory.iterdir()):
        if path.name.startswith("."):
            continue
        if path.is_dir():
            data[path.name] = _load_data_dir(path)
            continue
        suffix = path.suffix.lower()
        try:
            if suffix in (".yml", ".yaml"):
                with open(path, encoding="utf-8") as f:
                    data[path.stem] = yaml.safe_load(f)
            elif suffix == ".json":
                with open(path, encoding="utf-8") as f:
                    data[path.stem] = json.load(f)
        except (yaml.YAMLError, json.JSONDecodeError) as exc:
            raise BuildError(path, f"Invalid data file: {exc}", exc) from exc
        except (UnicodeDecodeError, OSError) as exc:
            raise BuildError(path, f"Cannot read file: {exc}", exc) from exc
    return data


def build_site(
    source: Path,
    overrides: dict[str, Any] | None = None,
    include_drafts: bool = False,
    output_dir_override: Path | None = None,
    clean_output: bool = True,
) -> BuildResult:
    """Build the entire static site.

    Args:
        source: Root directory of the blog project.
        overrides: Configuration values overriding ``_config.yml``
            (for example ``baseurl`` or ``url`` for local preview).
        include_drafts: Whether to render posts from ``_drafts``.
        output_dir_override: Write the output here instead of ``destination``.
        clean_output: Whether to wipe the output directory before writing.

    Returns:
        BuildResult describing what was written.

    Raises:
        BuildError: If any document, layout, include, data or static file
            fails.
        ConfigError: If ``_config.yml``, the theme or the destination is
            invalid.
    """
    started = time.perf_counter()
    config = load_config(source, overrides)
    include_drafts = include_drafts or bool(config.get("show_drafts"))
    output_dir = check_destination(
        source, output_dir_override or (source / config["destination"])
    )
    theme_dir = resolve_theme(source, config.get("theme"))

    try:
        content = SiteReader(source, config).read(include_drafts=include_drafts)
    except FrontMatterError as exc:
        raise BuildError(exc.source_path or source, exc.message, exc) from exc
    logger.info(
        "Read %d posts, %d pages, %d static files",
        len(content.posts),
        len(content.pages),
        len(content.static_files),
    )

    engine = TemplateEngine(source, config, theme_dir)
    plugins = load_plugins(config["plugins"])
    for plugin in plugins:
        plugin.setup(engine)

    site = _site_payload(config, content, load_data(source))
    converters = ConverterRegistry(markdown_extensions(config))

    for doc in content.documents:
        with _document_errors(doc):
            _convert_document(doc, engine, converters, site)
    for doc in content.documents:
        with _document_errors(doc):
            doc.output = engine.render_layouts(doc, str(doc.content), site)

    targets = _plan_outputs(output_dir, content.documents)

    if clean_output:
        ensure_clean_dir(output_dir)
    else:
        output_dir.mkdir(parents=True, exist_ok=True)

    for target, doc in targets.items():
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(doc.output, encoding="utf-8")
        except OSError as exc:
            raise BuildError(doc.path, f"Cannot write {target}: {exc}", exc) from exc
        logger.debug("Wrote %s -> %s", doc.relative_path, target)

    occupied = {str(t.relative_to(output_dir).as_posix()) for t in targets}
    try:
        static_files = StaticFilePipeline(output_dir, config, theme_dir).run(
            s for s in content.static_files if s.relative_path not in occupied
        )
    except StaticFileError as exc:
        raise BuildError(
            exc.source_path, _format_error_message(exc.original_error), exc.original_error
        ) from exc

    generated: list[str] = []
    for plugin in plugins:
        try:
            generated.extend(plugin.generate(output_dir, site))
        except OSError as exc:
            raise BuildError(
                source / "_config.yml", f"Plugin '{plugin.name}' failed: {exc}", exc
            ) from exc

    return BuildResult(
        posts=content.posts,
        pages=content.pages,
        static_files=static_files,
        output_dir=output_dir,
        config=config,
        generated=generated,
        elapsed=time.perf_counter() - started,
    )


def clean_site(source: Path, overrides: dict[str, Any] | None = None) -> Path:
    """Remove the build destination.

    Returns:
        The destination path, whether or not it existed.

    Raises:
        ConfigError: If the destination is the project or one of its parents.
    """
    config = load_config(source, overrides)
    destination = check_destination(source, source / config["destination"])
    if destination.exists():
        shutil.rmtree(destination)
        logger.info("Removed %s", destination)
    return destination


def _site_payload(
    config: dict[str, Any], content: SiteContent, data: dict[str, Any]
) -> dict[str, Any]:
    """Build the ``site`` variable exposed to templates."""
    posts = PostCollection(content.posts)
    site = dict(config)
    site.update(
        posts=posts,
        pages=content.pages,
        html_pages=[p for p in content.pages if p.url.endswith(("/", ".html"))],
        categories=TaxonomyIndex.of_categories(posts),
        tags=TaxonomyIndex.of_tags(posts),
        data=data,
        static_files=content.static_files,
        time=datetime.now(timezone.utc),
    )
    return site


def _convert_document(
    doc: Document,
    engine: TemplateEngine,
    converters: ConverterRegistry,
    site: dict[str, Any],
) -> None:
    """Render the body through Jinja2 and convert it to HTML."""
    body = engine.render_body(doc, site)
    converter = converters.get_converter(doc.path)
    doc.content = Markup(converter.convert(body))

    if "excerpt" in doc.frontmatter:
        excerpt_source = str(doc.frontmatter["excerpt"] or "")
    else:
        separator = doc.frontmatter.get(
            "excerpt_separator", site.get("excerpt_separator") or "\n\n"
        )
        excerpt_source = body.strip().split(separator, 1)[0]
    doc.excerpt = Markup(converter.convert(excerpt_source)) if excerpt_source else Markup("")


def _plan_outputs(output_dir: Path, documents: list[Document]) -> dict[Path, Document]:
    """Map each document to its output file, rejecting collisions."""
    targets: dict[Path, Document] = {}
    for doc in documents:
        try:
            target = output_path(output_dir, doc.url)
        except PermalinkError as exc:
            raise BuildError(doc.path, str(exc), exc) from exc
        other = targets.get(target)
        if other is not None:
            raise BuildError(
                doc.path,
                f"Output {doc.url} conflicts with {other.relative_path}",
            )
        targets[target] = doc
    return targets


@contextmanager
def _document_errors(doc: Document) -> Iterator[None]:
    """Turn rendering failures for ``doc`` into BuildError."""
    try:
        yield
    except BuildError:
        raise
    except TemplateSyntaxError as exc:
        where = f" in {exc.name}" if exc.name else ""
        raise BuildError(
            doc.path,
            f"Template syntax error{where} on line {exc.lineno}: {exc.message}",
            exc,
        ) from exc
    except TemplateNotFound as exc:
        raise BuildError(doc.path, f"Template not found: {exc.name}", exc) from exc
    except FrontMatterError as exc:
        raise BuildError(exc.source_path or doc.path, exc.message, exc) from exc
    except Exception as exc:
        raise BuildError(doc.path, _format_error_message(exc), exc) from exc


def _format_error_message(exc: Exception) -> str:
    """Format an exception into a user-friendly error message."""
    error_type = type(exc).__name__
    error_msg = str(exc)

    if error_type == "UndefinedError":
        return f"Undefined variable: {error_msg}"
    if error_type == "TypeError":
        return f"Type error: {error_msg}"
    if error_type == "AttributeError":
        return f"Attribute error: {error_msg}"

    return f"{error_type}: {error_msg}"
