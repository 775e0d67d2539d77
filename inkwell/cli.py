"""Command-line interface for Inkwell.

This module defines the CLI commands using the Click framework.

Commands:
- new: Scaffold a new blog.
- post: Create a new post in ``_posts``.
- build: Build the site into the destination directory.
- serve: Build, serve and rebuild on change with live reload.
- clean: Remove the destination directory.
"""

from __future__ import annotations

import json
import logging
import os
import shutil
import subprocess
from datetime import datetime
from pathlib import Path

import click
import questionary
import yaml

from . import __version__
from .utils import parse_post_filename, slugify

# Path to the scaffold copied by `inkwell new`
_SCAFFOLD_DIR = Path(__file__).parent / "scaffold"

_LEVEL_COLORS = {
    logging.DEBUG: "blue",
    logging.INFO: "cyan",
    logging.WARNING: "yellow",
    logging.ERROR: "red",
    logging.CRITICAL: "red",
}


class _ClickHandler(logging.Handler):
    """Logging handler writing coloured records to stderr through click."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            label = click.style(
                f"{record.levelname.lower():>7}", fg=_LEVEL_COLORS.get(record.levelno)
            )
            click.echo(f"{label} {self.format(record)}", err=True)
        except Exception:  # pragma: no cover - mirrors logging.Handler.handleError
            self.handleError(record)


def _configure_logging(verbose: bool, quiet: bool) -> None:
    logger = logging.getLogger("inkwell")
    if not any(isinstance(h, _ClickHandler) for h in logger.handlers):
        logger.addHandler(_ClickHandler())
        logger.propagate = False
    if verbose:
        logger.setLevel(logging.DEBUG)
    elif quiet:
        logger.setLevel(logging.ERROR)
    else:
        logger.setLevel(logging.WARNING)


def _source_option(func):
    return click.option(
        "-s",
        "--source",
        type=click.Path(file_okay=False, path_type=Path),
        default=".",
        show_default=True,
        help="Blog project directory",
    )(func)


def _logging_options(func):
    func = click.option("-q", "--quiet", is_flag=True, help="Only print errors")(func)
    func = click.option("-V", "--verbose", is_flag=True, help="Print debug output")(func)
    return func


def _report_failure(exc: Exception, source: Path) -> None:
    """Print a build or configuration error and exit with status 1."""
    source_path = getattr(exc, "source_path", None)
    message = getattr(exc, "message", str(exc))
    click.echo(click.style("Build failed:", fg="red", bold=True), err=True)
    if source_path is not None:
        try:
            shown = Path(source_path).resolve().relative_to(source.resolve())
        except ValueError:
            shown = source_path
        click.echo(click.style(f"  File: {shown}", fg="yellow"), err=True)
    click.echo(click.style(f"  Error: {message}", fg="white"), err=True)
    raise SystemExit(1)


@click.group()
@click.version_option(version=__version__, prog_name="inkwell")
def cli():
    """Inkwell static blog generator."""


@cli.command()
@click.argument("path", type=click.Path(file_okay=False, path_type=Path))
@click.option("--blank", is_flag=True, help="Create an empty blog without sample content")
def new(path: Path, blank: bool):
    """Scaffold a new blog."""
    target = path.resolve()
    if target.exists() and any(target.iterdir()):
        raise click.ClickException(
            f"Refusing to initialize into non-empty directory: {target}"
        )
    _scaffold(target, blank=blank)
    click.echo(f"New blog created at {target}")
    click.echo(f"  cd {path} && inkwell serve")


@cli.command()
@_source_option
@click.option("-d", "--destination", help="Output directory (overrides _config.yml)")
@click.option("--baseurl", help="Serve the site under this path (overrides _config.yml)")
@click.option("--drafts", is_flag=True, help="Render posts in _drafts")
@click.option("--future", is_flag=True, help="Publish posts dated in the future")
@_logging_options
def build(
    source: Path,
    destination: str | None,
    baseurl: str | None,
    drafts: bool,
    future: bool,
    verbose: bool,
    quiet: bool,
):
    """Build the site into the destination directory."""
    _configure_logging(verbose, quiet)
    from .build import BuildError, build_site
    from .config import ConfigError

    overrides = {"destination": destination, "baseurl": baseurl, "future": future or None}
    click.echo(f"Source: {source.resolve()}")
    try:
        result = build_site(source, overrides=overrides, include_drafts=drafts)
    except (BuildError, ConfigError) as exc:
        _report_failure(exc, source)
    click.echo(
        f"Built {len(result.posts)} posts and {len(result.pages)} pages "
        f"into {result.output_dir} in {result.elapsed:.2f}s"
    )


@cli.command()
@_source_option
@click.option("-P", "--port", type=int, help="HTTP port (overrides _config.yml)")
@click.option("-H", "--host", help="Interface to bind (overrides _config.yml)")
@click.option("--baseurl", help="Serve the site under this path (overrides _config.yml)")
@click.option("--drafts", is_flag=True, help="Render posts in _drafts")
@click.option("--future", is_flag=True, help="Publish posts dated in the future")
@click.option(
    "--livereload/--no-livereload", default=True, help="Reload browsers after rebuilds"
)
@click.option("--livereload-port", type=int, help="Port for the live reload websocket")
@_logging_options
def serve(
    source: Path,
    port: int | None,
    host: str | None,
    baseurl: str | None,
    drafts: bool,
    future: bool,
    livereload: bool,
    livereload_port: int | None,
    verbose: bool,
    quiet: bool,
):
    """Build the site and serve it with live reload."""
    _configure_logging(verbose, quiet)
    from .build import BuildError
    from .config import ConfigError
    from .server import DevServer

    try:
        server = DevServer(
            source,
            host=host,
            port=port,
            livereload_port=livereload_port,
            livereload=livereload,
            overrides={"baseurl": baseurl, "future": future or None},
        )
        server.start(include_drafts=drafts)
    except (BuildError, ConfigError) as exc:
        _report_failure(exc, source)


@cli.command()
@click.argument("title", required=False)
@_source_option
@click.option("-c", "--category", "categories", multiple=True, help="Category (repeatable)")
@click.option("--layout", default="post", show_default=True, help="Layout for the post")
@click.option(
    "--date",
    "date_",
    type=click.DateTime(formats=["%Y-%m-%d", "%Y-%m-%d %H:%M"]),
    help="Publication date (defaults to now)",
)
def post(
    title: str | None,
    source: Path,
    categories: tuple[str, ...],
    layout: str,
    date_: datetime | None,
):
    """Create a new post in _posts."""
    if not title:
        title = questionary.text(
            "Post title:",
            validate=lambda x: len(x.strip()) > 0 or "Title cannot be empty",
            style=_questionary_style(),
        ).ask()
        if title is None:
            raise click.Abort()
    title = title.strip()
    slug = slugify(title)
    if not slug:
        raise click.ClickException(f"Cannot derive a filename from title: {title!r}")

    when = (date_ or datetime.now()).astimezone()
    posts_dir = source / "_posts"
    target = posts_dir / f"{when:%Y-%m-%d}-{slug}.md"
    if target.exists():
        raise click.ClickException(f"File already exists: {target}")
    conflicting = _find_slug(posts_dir, slug)
    if conflicting is not None:
        raise click.ClickException(
            f"A post with slug '{slug}' already exists: {conflicting.name}"
        )

    frontmatter = {
        "layout": layout,
        "title": title,
        "date": when.strftime("%Y-%m-%d %H:%M:%S %z"),
        "categories": list(categories),
    }
    posts_dir.mkdir(parents=True, exist_ok=True)
    target.write_text(
        "---\n"
        + yaml.safe_dump(frontmatter, sort_keys=False, allow_unicode=True)
        + "---\n\n",
        encoding="utf-8",
    )
    click.echo(f"Created {target}")


@cli.command()
@_source_option
def clean(source: Path):
    """Remove the destination directory."""
    from .build import clean_site
    from .config import ConfigError

    try:
        destination = clean_site(source)
    except ConfigError as exc:
        _report_failure(exc, source)
    click.echo(f"Cleaned {destination}")


def _find_slug(posts_dir: Path, slug: str) -> Path | None:
    """Return an existing post whose filename carries ``slug``."""
    if not posts_dir.is_dir():
        return None
    for path in posts_dir.rglob("*"):
        if not path.is_file():
            continue
        parsed = parse_post_filename(path.stem)
        if parsed is not None and slugify(parsed[1]) == slug:
            return path
    return None


def _questionary_style():
    """Return consistent questionary style."""
    return questionary.Style(
        [
            ("qmark", "fg:cyan bold"),
            ("question", "bold"),
            ("answer", "fg:cyan"),
        ]
    )


def main():
    """Entry point for the CLI application."""
    cli()


def _scaffold(root: Path, blank: bool = False) -> None:
    """Create the directory structure and files for a new blog.

    Sample posts in the scaffold are dated today.

    Args:
        root: Root directory for the new blog.
        blank: Skip sample posts and pages.
    """
    today = datetime.now().strftime("%Y-%m-%d")
    for src_path in _SCAFFOLD_DIR.rglob("*"):
        if src_path.is_dir():
            continue
        rel_path = src_path.relative_to(_SCAFFOLD_DIR)
        if blank and rel_path.as_posix() not in ("_config.yml", "index.md"):
            continue
        if rel_path.parts[0] == "_posts":
            rel_path = rel_path.with_name(f"{today}-{rel_path.name}")
        dest_path = root / rel_path
        dest_path.parent.mkdir(parents=True, exist_ok=True)
        shutil.copy2(src_path, dest_path)

    config_path = root / "_config.yml"
    title = root.name.replace("-", " ").replace("_", " ").title()
    config_path.write_text(
        config_path.read_text(encoding="utf-8").replace(
            "title: My Blog", f"title: {json.dumps(title)}", 1
        ),
        encoding="utf-8",
    )
    (root / "_posts").mkdir(exist_ok=True)
    (root / ".gitignore").write_text("_site/\n_site.*/\n", encoding="utf-8")
    _try_git_init(root)


def _try_git_init(root: Path) -> None:
    """Initialize a git repository if git is available."""
    if os.environ.get("INKWELL_SKIP_GIT_INIT") == "1":
        return
    git_bin = shutil.which("git")
    if not git_bin:
        return
    try:
        subprocess.run(
            [git_bin, "init"],
            cwd=root,
            check=True,
            capture_output=True,
        )
    except (OSError, subprocess.CalledProcessError):
        logging.getLogger(__name__).warning(
            "git init failed in %s; run it manually", root
        )
