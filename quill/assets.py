"""Passthrough copy for Quill.

Files and directories named in the ``passthrough`` setting are copied from
the project root into the output directory at the same relative path,
minified on the way when asset minification is enabled. The Pygments
stylesheet used by highlighted code blocks is written here too.

Key components:
- AssetPipeline: Copies passthrough entries through the processor registry.
- write_highlight_css: Writes ``assets/css/highlight.css``.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from pathlib import Path

from pygments.formatters import HtmlFormatter
from pygments.util import ClassNotFound

from .asset_processors import AssetProcessorRegistry, create_default_registry

logger = logging.getLogger(__name__)

HIGHLIGHT_CSS_PATH = Path("assets") / "css" / "highlight.css"


class AssetPipeline:
    """Copies passthrough files into the output directory.

    Attributes:
        project_root: Root directory of the project.
        output_dir: Directory where copies are written.
        passthrough: Entries (files or directories) relative to the root.
        processor_registry: Registry of asset processors.
    """

    def __init__(
        self,
        project_root: Path,
        output_dir: Path,
        passthrough: Iterable[str] = ("assets",),
        minify: bool = True,
        processor_registry: AssetProcessorRegistry | None = None,
    ):
        self.project_root = project_root
        self.output_dir = output_dir
        self.passthrough = [str(entry) for entry in passthrough]
        self.processor_registry = processor_registry or create_default_registry(minify)

    def iter_sources(self) -> list[tuple[Path, Path]]:
        """List ``(source, destination)`` pairs for every passthrough file."""
        pairs: list[tuple[Path, Path]] = []
        for entry in self.passthrough:
            source = self.project_root / entry
            if not source.exists():
                logger.warning("Passthrough entry %s does not exist; skipping", entry)
                continue
            if source.is_file():
                pairs.append((source, self.output_dir / entry))
                continue
            for item in sorted(source.rglob("*")):
                if item.is_dir():
                    continue
                rel = item.relative_to(self.project_root)
                pairs.append((item, self.output_dir / rel))
        return pairs

    def run(self) -> int:
        """Copy every passthrough file; returns the number of files written."""
        count = 0
        for source, dest in self.iter_sources():
            if self.processor_registry.process(source, dest):
                count += 1
        logger.debug("Copied %d passthrough files", count)
        return count


def write_highlight_css(output_dir: Path, style: str = "default") -> Path:
    """Write the Pygments stylesheet for ``.highlight`` code blocks.

    An unknown style name falls back to Pygments' ``default`` style.
    """
    try:
        formatter = HtmlFormatter(style=style)
    except ClassNotFound:
        logger.warning("Unknown highlight style %r; using 'default'", style)
        formatter = HtmlFormatter(style="default")
    target = output_dir / HIGHLIGHT_CSS_PATH
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(formatter.get_style_defs(".highlight"), encoding="utf-8")
    return target
