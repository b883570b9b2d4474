"""Site building for Quill.

This module turns the input directory into the output directory: it loads
configuration and data, builds pages, wraps them in their layouts, applies
the HTML transform, writes one ``index.html`` per page and runs the
passthrough copy.

Key functions:
- build_site: Build the entire site.
- load_config: Load site configuration from quill.yaml.
- load_data: Load template data from ``_data/*.yaml``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml
from jinja2 import TemplateSyntaxError

from .assets import AssetPipeline, write_highlight_css
from .collections import build_collections
from .content import ContentProcessor, FileContentLoader, Page
from .extractors import FrontmatterError
from .layouts import LayoutNotFoundError, LayoutRegistry
from .minify import transform_output
from .utils import ensure_clean_dir

logger = logging.getLogger(__name__)

CONFIG_FILENAME = "quill.yaml"

DEFAULT_CONFIG: dict[str, Any] = {
    "input_dir": "src",
    "output_dir": "docs",
    "port": 4080,
    "passthrough": ["assets"],
    "minify_html": True,
    "minify_assets": True,
    "highlight_style": "default",
    "title": "",
    "subtitle": "",
    "author": "",
    "brand": "",
    "nav": [],
    "analytics_id": "",
}


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
    """Result of a site build.

    Attributes:
        pages: Every page written.
        output_dir: Directory where the site was built.
        data: Template data loaded from ``_data``.
    """

    pages: list[Page]
    output_dir: Path
    data: dict[str, Any]


def load_config(project_root: Path) -> dict[str, Any]:
    """Load configuration from quill.yaml, with defaults applied."""
    config_path = project_root / CONFIG_FILENAME
    config = DEFAULT_CONFIG.copy()
    if config_path.exists():
        with open(config_path, encoding="utf-8") as f:
            loaded = yaml.safe_load(f) or {}
        if isinstance(loaded, dict):
            config.update(loaded)
        else:
            logger.warning("%s is not a mapping; using defaults", config_path)
    return config


def load_data(input_dir: Path) -> dict[str, Any]:
    """Load template data from YAML files in ``<input>/_data``.

    ``site.yaml`` is merged at the top level; any other file is stored
    under its stem.
    """
    data_dir = input_dir / "_data"
    data: dict[str, Any] = {}
    if not data_dir.exists():
        return data
    for path in sorted(data_dir.glob("*.y*ml")):
        with open(path, encoding="utf-8") as f:
            payload = yaml.safe_load(f)
        if payload is None:
            continue
        if path.stem == "site" and isinstance(payload, dict):
            data.update(payload)
        else:
            data[path.stem] = payload
    return data


def build_site(
    project_root: Path,
    include_drafts: bool = False,
    clean_output: bool = True,
    output_dir_override: Path | None = None,
) -> BuildResult:
    """Build the entire static site.

    Args:
        project_root: Root directory of the project.
        include_drafts: Whether to include draft pages.
        clean_output: Whether to wipe the output directory before building.
        output_dir_override: Write here instead of the configured output_dir.

    Returns:
        BuildResult with every page written.

    Raises:
        BuildError: If a content file or its layout fails.
        FileNotFoundError: If the input directory is missing.
    """
    config = load_config(project_root)
    input_dir = project_root / config["input_dir"]
    if not input_dir.is_dir():
        raise FileNotFoundError(f"Expected input directory at {input_dir}")
    output_dir = output_dir_override or (project_root / config["output_dir"])
    if clean_output:
        ensure_clean_dir(output_dir)
    else:
        output_dir.mkdir(parents=True, exist_ok=True)

    data = load_data(input_dir)
    site = {**config, **data}

    loader = FileContentLoader(input_dir, exclude=[output_dir])
    processor = ContentProcessor(input_dir, content_loader=loader)
    pages: list[Page] = []
    for path in processor.iter_files(include_drafts):
        try:
            page = processor.build_page(path)
        except FrontmatterError as exc:
            raise BuildError(path, str(exc), exc) from exc
        except ValueError as exc:
            raise BuildError(path, f"Invalid front-matter value: {exc}", exc) from exc
        if page.draft and not include_drafts:
            continue
        _check_page(page)
        pages.append(page)

    collections = build_collections(pages)
    layouts = LayoutRegistry(input_dir / "_includes", data)
    written: dict[Path, Page] = {}
    for page in pages:
        target = output_path_for(output_dir, page)
        if target in written:
            raise BuildError(
                page.path,
                f"Output {target.relative_to(output_dir)} is also written by "
                f"{written[target].path.name}",
            )
        written[target] = page
        try:
            rendered = layouts.render(page, page.content, collections, site)
        except LayoutNotFoundError as exc:
            raise BuildError(page.path, str(exc), exc) from exc
        except TemplateSyntaxError as exc:
            raise BuildError(
                page.path,
                f"Template syntax error on line {exc.lineno}: {exc.message}",
                exc,
            ) from exc
        except Exception as exc:
            raise BuildError(page.path, _format_error_message(exc), exc) from exc
        rendered = transform_output(rendered, target, enabled=bool(config["minify_html"]))
        _write_page(target, rendered)
        logger.info("Wrote %s", target.relative_to(output_dir).as_posix())

    AssetPipeline(
        project_root,
        output_dir,
        passthrough=config.get("passthrough") or [],
        minify=bool(config["minify_assets"]),
    ).run()
    write_highlight_css(output_dir, str(config.get("highlight_style") or "default"))
    return BuildResult(pages=pages, output_dir=output_dir, data=data)


def _check_page(page: Page) -> None:
    """Posts must carry an explicit title; every page must have a URL."""
    title = page.frontmatter.get("title")
    if page.layout == "post" and (title is None or not str(title).strip()):
        raise BuildError(page.path, "Posts must set a non-empty 'title' in front-matter")
    if not page.url:
        raise BuildError(page.path, "Page has no URL")


def output_path_for(output_dir: Path, page: Page) -> Path:
    """Map a page URL to the file it is written to.

    ``/posts/hello/`` becomes ``posts/hello/index.html``; a permalink ending
    in ``.html`` is used as the file name directly.
    """
    url_path = page.url.strip("/")
    if url_path.endswith(".html"):
        return output_dir / url_path
    return output_dir / url_path / "index.html"


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


def _write_page(target: Path, rendered: str) -> None:
    target.parent.mkdir(parents=True, exist_ok=True)
    with open(target, "w", encoding="utf-8") as f:
        f.write(rendered)
