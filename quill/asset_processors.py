"""Asset processors for Quill.

Each processor handles one kind of passthrough file. The registry picks
the highest-priority processor that accepts a path.

Key classes:
- ImageProcessor: Re-saves raster images with Pillow's optimizer.
- CSSProcessor: Minifies stylesheets.
- JSProcessor: Minifies scripts.
- StaticAssetProcessor: Copies anything else unchanged.
- AssetProcessorRegistry: Registry for managing asset processors.
"""

from __future__ import annotations

import logging
import shutil
from abc import ABC, abstractmethod
from pathlib import Path

from PIL import Image, UnidentifiedImageError

from .minify import minify_css, minify_js

logger = logging.getLogger(__name__)


class BaseAssetProcessor(ABC):
    """Base class for asset processors."""

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
        """Write the processed ``source`` to ``dest``."""
        ...

    def ensure_dest_dir(self, dest: Path) -> None:
        dest.parent.mkdir(parents=True, exist_ok=True)


class ImageProcessor(BaseAssetProcessor):
    """Optimizes PNG, JPEG and WebP images, copying them when Pillow can't read them."""

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
        except (UnidentifiedImageError, OSError, ValueError) as exc:
            logger.warning("Could not optimize %s (%s); copying as is", source, exc)
            shutil.copy2(source, dest)


class CSSProcessor(BaseAssetProcessor):
    @property
    def priority(self) -> int:
        return 90

    def can_process(self, path: Path) -> bool:
        return path.suffix.lower() == ".css" and not path.name.endswith(".min.css")

    def process(self, source: Path, dest: Path) -> None:
        self.ensure_dest_dir(dest)
        css = source.read_text(encoding="utf-8")
        dest.write_text(minify_css(css), encoding="utf-8")


class JSProcessor(BaseAssetProcessor):
    @property
    def priority(self) -> int:
        return 80

    def can_process(self, path: Path) -> bool:
        return path.suffix.lower() == ".js" and not path.name.endswith(".min.js")

    def process(self, source: Path, dest: Path) -> None:
        self.ensure_dest_dir(dest)
        js = source.read_text(encoding="utf-8")
        dest.write_text(minify_js(js), encoding="utf-8")


class StaticAssetProcessor(BaseAssetProcessor):
    """Fallback processor: copies the file unchanged."""

    @property
    def priority(self) -> int:
        return 0

    def can_process(self, path: Path) -> bool:
        return True

    def process(self, source: Path, dest: Path) -> None:
        self.ensure_dest_dir(dest)
        shutil.copy2(source, dest)


class AssetProcessorRegistry:
    """Registry for managing asset processors, sorted by priority."""

    def __init__(self):
        self._processors: list[BaseAssetProcessor] = []

    def register(self, processor: BaseAssetProcessor) -> None:
        self._processors.append(processor)
        self._processors.sort(key=lambda p: p.priority, reverse=True)

    def get_processor(self, path: Path) -> BaseAssetProcessor | None:
        for processor in self._processors:
            if processor.can_process(path):
                return processor
        return None

    def process(self, source: Path, dest: Path) -> bool:
        """Process an asset using the appropriate processor.

        Returns:
            True if a processor handled the file, False if none accepted it.
        """
        processor = self.get_processor(source)
        if processor is None:
            return False
        processor.process(source, dest)
        return True


def create_default_registry(minify: bool = True) -> AssetProcessorRegistry:
    """Create a registry with the default processors.

    Args:
        minify: When False, only the copying processor is registered.
    """
    registry = AssetProcessorRegistry()
    if minify:
        registry.register(ImageProcessor())
        registry.register(CSSProcessor())
        registry.register(JSProcessor())
    registry.register(StaticAssetProcessor())
    return registry
