"""Static file pipeline for Inkwell.

Static files are copied into the destination through a registry of
processors. Each processor handles one kind of file; the plain copy
processor is the fallback.

Key classes:
- ImageProcessor: Re-saves PNG/JPEG/WebP images optimized (opt-in).
- JSProcessor: Minifies JavaScript with rjsmin (opt-in).
- CopyProcessor: Copies files without modification.
- StaticFileProcessorRegistry: Picks the processor for a file.
- StaticFilePipeline: Copies theme assets, then project static files.
"""

from __future__ import annotations

import logging
import shutil
from abc import ABC, abstractmethod
from collections.abc import Iterable
from pathlib import Path
from typing import Any

from PIL import Image, UnidentifiedImageError
from rjsmin import jsmin

from .content import StaticFile

logger = logging.getLogger(__name__)


class StaticFileError(Exception):
    """Error raised when a static file cannot be processed.

    Attributes:
        source_path: Path to the static file.
        original_error: The exception raised by the processor.
    """

    def __init__(self, source_path: Path, original_error: Exception):
        self.source_path = source_path
        self.original_error = original_error
        super().__init__(f"{source_path}: {original_error}")


class BaseProcessor(ABC):
    """Base class for static file processors."""

    @property
    @abstractmethod
    def priority(self) -> int:
        """Return processor priority (higher = checked first)."""
        ...

    @abstractmethod
    def can_process(self, path: Path) -> bool:
        ...

    @abstractmethod
    def process(self, source: Path, dest: Path) -> None:
        ...

    def ensure_dest_dir(self, dest: Path) -> None:
        dest.parent.mkdir(parents=True, exist_ok=True)


class ImageProcessor(BaseProcessor):
    """Optimizes image files using Pillow.

    Files Pillow cannot read are copied unchanged.
    """

    SUPPORTED_EXTENSIONS = {".png", ".jpg", ".jpeg", ".webp"}

    @property
    def priority(self) -> int:
        return 100

    def can_process(self, path: Path) -> bool:
        return path.suffix.lower() in self.SUPPORTED_EXTENSIONS

    def process(self, source: Path, dest: Path) -> None:
        self.ensure_dest_dir(dest)
        try:
            with Image.open(source) as img:
                img.save(dest, optimize=True)
        except (UnidentifiedImageError, OSError) as exc:
            logger.warning("Could not optimize %s (%s); copying as is", source, exc)
            shutil.copy2(source, dest)


class JSProcessor(BaseProcessor):
    """Minifies JavaScript files with rjsmin.

    Files that are already minified (``*.min.js``) or not UTF-8 are copied.
    """

    @property
    def priority(self) -> int:
        return 80

    def can_process(self, path: Path) -> bool:
        return path.suffix.lower() == ".js" and not path.name.endswith(".min.js")

    def process(self, source: Path, dest: Path) -> None:
        self.ensure_dest_dir(dest)
        try:
            script = source.read_text(encoding="utf-8")
        except UnicodeDecodeError:
            logger.warning("Could not minify %s (not UTF-8); copying as is", source)
            shutil.copy2(source, dest)
            return
        dest.write_text(jsmin(script), encoding="utf-8")


class CopyProcessor(BaseProcessor):
    """Copies files without modification; the fallback processor."""

    @property
    def priority(self) -> int:
        return 0

    def can_process(self, path: Path) -> bool:
        return True

    def process(self, source: Path, dest: Path) -> None:
        self.ensure_dest_dir(dest)
        shutil.copy2(source, dest)


class StaticFileProcessorRegistry:
    """Registry for static file processors, highest priority first."""

    def __init__(self):
        self._processors: list[BaseProcessor] = []

    def register(self, processor: BaseProcessor) -> None:
        self._processors.append(processor)
        self._processors.sort(key=lambda p: p.priority, reverse=True)

    def get_processor(self, path: Path) -> BaseProcessor | None:
        for processor in self._processors:
            if processor.can_process(path):
                return processor
        return None

    def process(self, source: Path, dest: Path) -> bool:
        """Process a file with the matching processor.

        Returns:
            True if a processor handled the file.
        """
        processor = self.get_processor(source)
        if processor is None:
            return False
        processor.process(source, dest)
        return True


def create_default_registry(config: dict[str, Any]) -> StaticFileProcessorRegistry:
    """Create a registry honouring ``minify_js`` and ``optimize_images``."""
    registry = StaticFileProcessorRegistry()
    if config.get("optimize_images"):
        registry.register(ImageProcessor())
    if config.get("minify_js"):
        registry.register(JSProcessor())
    registry.register(CopyProcessor())
    return registry


class StaticFilePipeline:
    """Copies static files into the destination.

    Attributes:
        output_dir: Destination directory.
        theme_dir: Optional theme directory whose ``assets/`` are copied first.
        registry: Processor registry.
    """

    def __init__(
        self,
        output_dir: Path,
        config: dict[str, Any],
        theme_dir: Path | None = None,
        registry: StaticFileProcessorRegistry | None = None,
    ):
        self.output_dir = output_dir
        self.theme_dir = theme_dir
        self.registry = registry or create_default_registry(config)

    def theme_files(self) -> list[StaticFile]:
        """List the theme's ``assets/`` files as static files."""
        if self.theme_dir is None:
            return []
        assets = self.theme_dir / "assets"
        if not assets.is_dir():
            return []
        files = []
        for path in sorted(assets.rglob("*")):
            if path.is_file():
                rel = path.relative_to(self.theme_dir).as_posix()
                files.append(StaticFile(path, rel, f"/{rel}"))
        return files

    def run(self, static_files: Iterable[StaticFile]) -> list[StaticFile]:
        """Copy theme assets and then project files; project files win.

        Returns:
            Every static file written to the destination.

        Raises:
            StaticFileError: If a file cannot be read or written.
        """
        written: dict[str, StaticFile] = {}
        for static in [*self.theme_files(), *static_files]:
            dest = self.output_dir / static.relative_path
            try:
                self.registry.process(static.path, dest)
            except (OSError, ValueError) as exc:
                raise StaticFileError(static.path, exc) from exc
            written[static.relative_path] = static
        return list(written.values())
