"""Site configuration for Inkwell.

The configuration lives in ``_config.yml`` at the project root. Values from
the file are merged over ``DEFAULT_CONFIG`` and command-line overrides are
applied last.
"""

from __future__ import annotations

import copy
import logging
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger(__name__)

CONFIG_FILENAME = "_config.yml"

DEFAULT_EXCLUDE = [
    "Gemfile",
    "Gemfile.lock",
    "node_modules",
    "vendor",
    "README.md",
    "LICENSE",
]

DEFAULT_CONFIG: dict[str, Any] = {
    "title": "My Blog",
    "description": "",
    "author": "",
    "url": "",
    "baseurl": "",
    "theme": "minima",
    "plugins": [],
    "destination": "_site",
    "permalink": "date",
    "excerpt_separator": "\n\n",
    "markdown_ext": "markdown,mkdown,mkdn,mkd,md",
    "exclude": list(DEFAULT_EXCLUDE),
    "include": [],
    "timezone": None,
    "future": False,
    "show_drafts": False,
    "port": 4000,
    "host": "127.0.0.1",
    "livereload_port": 35729,
    "minify_js": False,
    "optimize_images": False,
    "twitter_username": "",
    "github_username": "",
}


class ConfigError(Exception):
    """Error raised when the site configuration cannot be loaded.

    Attributes:
        source_path: Path to the configuration file.
        message: Human-readable error message.
    """

    def __init__(self, source_path: Path, message: str):
        self.source_path = source_path
        self.message = message
        super().__init__(f"{source_path}: {message}")


def normalize_baseurl(value: Any) -> str:
    """Normalize ``baseurl`` to ``""`` or ``/path`` without trailing slash.

    Examples:
        >>> normalize_baseurl("blog/")
        '/blog'

        >>> normalize_baseurl("/")
        ''
    """
    text = str(value or "").strip().strip("/")
    return f"/{text}" if text else ""


def _as_list(value: Any) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [item for item in value.replace(",", " ").split() if item]
    return [str(item) for item in value]


def load_config(
    source: Path, overrides: dict[str, Any] | None = None
) -> dict[str, Any]:
    """Load site configuration from ``_config.yml``.

    Args:
        source: Root directory of the blog project.
        overrides: Values that take precedence over the file, typically from
            command-line flags. ``None`` values are ignored.

    Returns:
        Dictionary containing configuration values, with defaults applied.

    Raises:
        ConfigError: If the file is not valid YAML or not a mapping.
    """
    config = copy.deepcopy(DEFAULT_CONFIG)
    config_path = source / CONFIG_FILENAME
    if config_path.exists():
        try:
            with open(config_path, encoding="utf-8") as f:
                loaded = yaml.safe_load(f)
        except yaml.YAMLError as exc:
            raise ConfigError(config_path, f"Invalid YAML: {exc}") from exc
        except (UnicodeDecodeError, OSError) as exc:
            raise ConfigError(config_path, f"Cannot read file: {exc}") from exc
        if loaded is None:
            loaded = {}
        if not isinstance(loaded, dict):
            raise ConfigError(
                config_path,
                f"Expected a mapping at the top level, got {type(loaded).__name__}",
            )
        extra_exclude = _as_list(loaded.pop("exclude", None))
        config.update(loaded)
        config["exclude"] = DEFAULT_EXCLUDE + [
            item for item in extra_exclude if item not in DEFAULT_EXCLUDE
        ]
    else:
        logger.info("No %s found in %s; using defaults", CONFIG_FILENAME, source)

    for key, value in (overrides or {}).items():
        if value is not None:
            config[key] = value

    config["plugins"] = _as_list(config.get("plugins"))
    config["include"] = _as_list(config.get("include"))
    config["baseurl"] = normalize_baseurl(config.get("baseurl"))
    config["url"] = str(config.get("url") or "").rstrip("/")
    config["source"] = str(source)
    return config


def check_destination(source: Path, destination: Path) -> Path:
    """Refuse a build destination that is the project itself or one of its parents.

    The destination is wiped before every build, so either case would
    delete the project sources.

    Returns:
        ``destination`` unchanged.

    Raises:
        ConfigError: If ``destination`` is ``source`` or contains it.
    """
    root = source.resolve()
    target = destination.resolve()
    if target == root or target in root.parents:
        raise ConfigError(
            source / CONFIG_FILENAME,
            "destination must not be the source directory or contain it",
        )
    return destination
