"""Inkwell static blog generator.

Inkwell builds a blog from Markdown posts with YAML front matter and Jinja2
layouts. Posts live in ``_posts`` as ``YYYY-MM-DD-title.md`` files, pages are
any other file with front matter, and everything else is copied as is.

The main entry point is the CLI module, which provides commands for
scaffolding a blog, creating posts, building the site and running a preview
server with live reload.
"""

__all__ = ["__version__"]
__version__ = "0.1.0"
