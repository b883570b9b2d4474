"""Content processing for Quill.

This module discovers content files under the input directory, extracts
their front-matter, renders their bodies and creates Page objects.

Key classes:
- Page: Frozen dataclass representing one output document.
- FileContentLoader: Finds content files.
- UrlDeriver: Maps source paths to URLs.
- DefaultPageBuilder: Builds a Page from one file.
- ContentProcessor: Facade tying loader and builder together.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any

from .extractors import (
    CompositeMetadataExtractor,
    default_metadata_extractor,
    find_title_heading,
)
from .renderers import RendererRegistry, default_renderer_registry, render_snippet
from .utils import is_html, is_internal_path, is_markdown, slugify

logger = logging.getLogger(__name__)

DEFAULT_LAYOUT = "page"
_LAYOUT_SUFFIXES = (".11ty.js", ".html.jinja", ".jinja", ".html")


@dataclass(frozen=True)
class Page:
    """A content file ready to be wrapped in its layout.

    Attributes:
        title: Human-readable title of the page.
        date: Publication date; defines sort order.
        tags: Tags from front-matter; each tag names a collection.
        snippet: Rendered HTML teaser shown on the index page.
        layout: Layout name to wrap the content in.
        subtitle: Optional subtitle (used by the index jumbotron).
        body: Source body without front-matter.
        content: Rendered HTML content.
        url: URL path for the page.
        slug: URL-friendly slug.
        path: Path to the source file.
        folder: Folder path relative to the input directory.
        filename: Name of the source file.
        source_type: "markdown" or "html".
        draft: Whether the page is a draft.
        frontmatter: The raw front-matter mapping.
    """

    title: str
    date: datetime
    tags: tuple[str, ...]
    snippet: str
    layout: str
    subtitle: str
    body: str
    content: str
    url: str
    slug: str
    path: Path
    folder: str
    filename: str
    source_type: str
    draft: bool = False
    frontmatter: dict[str, Any] = field(default_factory=dict, compare=False)


class FileContentLoader:
    """Finds content files in the input directory.

    Directories whose name starts with ``_`` (``_includes``, ``_data``) are
    internal and skipped. Files starting with ``_`` are drafts.
    """

    def __init__(self, input_dir: Path, exclude: list[Path] | None = None):
        self.input_dir = input_dir
        self.exclude = [p.resolve() for p in exclude or []]

    def iter_files(self, include_drafts: bool = False) -> list[Path]:
        files: list[Path] = []
        for path in sorted(self.input_dir.rglob("*")):
            if path.is_dir():
                continue
            rel = path.relative_to(self.input_dir)
            if is_internal_path(rel.parent) or any(p.startswith(".") for p in rel.parent.parts):
                continue
            if rel.name.startswith("_") and not include_drafts:
                continue
            if self._is_excluded(path):
                continue
            if is_markdown(path) or is_html(path):
                files.append(path)
        return files

    def _is_excluded(self, path: Path) -> bool:
        resolved = path.resolve()
        for excluded in self.exclude:
            if resolved == excluded or excluded in resolved.parents:
                return True
        return False


class UrlDeriver:
    """Derives URLs for pages from their location in the input directory."""

    def derive(self, rel: Path, slug: str, permalink: str | None = None) -> str:
        """Derive the URL for a page.

        Args:
            rel: Relative path from the input directory.
            slug: URL-friendly slug.
            permalink: Explicit URL from front-matter, if any.

        Returns:
            URL path for the page.
        """
        if permalink:
            url = "/" + str(permalink).strip().lstrip("/")
            if not url.endswith(("/", ".html")):
                url += "/"
            return url
        segments = [p for p in rel.parent.parts if p]
        url_parts = segments if slug == "index" else segments + [slug]
        path = "/".join(url_parts)
        return f"/{path}/" if path else "/"


def normalize_layout_name(name: str) -> str:
    """Strip template file extensions from a layout name."""
    name = str(name).strip()
    for suffix in _LAYOUT_SUFFIXES:
        if name.endswith(suffix):
            return name[: -len(suffix)]
    return name


def _drop_title_heading(body: str) -> str:
    """Remove the ``# Title`` line a title was taken from."""
    heading = find_title_heading(body)
    if heading is None:
        return body
    lines = body.splitlines(keepends=True)
    del lines[heading[0]]
    return "".join(lines)


class DefaultPageBuilder:
    """Builds Page objects from source files.

    Attributes:
        input_dir: Directory containing content.
        renderer_registry: Registry of content renderers.
        metadata_extractor: Composite metadata extractor.
        url_deriver: URL deriver instance.
    """

    def __init__(
        self,
        input_dir: Path,
        renderer_registry: RendererRegistry | None = None,
        metadata_extractor: CompositeMetadataExtractor | None = None,
    ):
        self.input_dir = input_dir
        self.renderer_registry = renderer_registry or default_renderer_registry
        self.metadata_extractor = metadata_extractor or default_metadata_extractor
        self.url_deriver = UrlDeriver()

    def build(self, path: Path, draft: bool = False) -> Page:
        """Build a Page object from a source file.

        Raises:
            FrontmatterError: If the front-matter is malformed.
            ValueError: If the front-matter date is invalid.
        """
        rel = path.relative_to(self.input_dir)
        folder = rel.parent.as_posix() if rel.parent != Path(".") else ""
        raw = path.read_text(encoding="utf-8")

        metadata = self.metadata_extractor.extract(raw, path)
        frontmatter = metadata.get("frontmatter", {})
        body = metadata.get("body", raw)
        title = metadata["title"]

        render_source = body
        if metadata.get("title_source") == "heading":
            render_source = _drop_title_heading(body)

        renderer = self.renderer_registry.get_renderer(path)
        if renderer is None:
            source_type = "unknown"
            content = body
        else:
            source_type = renderer.source_type
            content = renderer.render(render_source)

        slug = slugify(path.stem)
        url = self.url_deriver.derive(rel, slug, frontmatter.get("permalink"))
        layout = normalize_layout_name(frontmatter.get("layout") or DEFAULT_LAYOUT)

        logger.debug("Loaded %s -> %s (layout %s)", rel.as_posix(), url, layout)
        return Page(
            title=title,
            date=metadata["date"],
            tags=tuple(metadata.get("tags", [])),
            snippet=render_snippet(metadata.get("snippet", "")),
            layout=layout,
            subtitle=str(frontmatter.get("subtitle") or ""),
            body=body,
            content=content,
            url=url,
            slug=slug,
            path=path,
            folder=folder,
            filename=path.name,
            source_type=source_type,
            draft=draft or bool(frontmatter.get("draft", False)),
            frontmatter=frontmatter,
        )


class ContentProcessor:
    """Facade for processing content files and building Page objects."""

    def __init__(
        self,
        input_dir: Path,
        content_loader: FileContentLoader | None = None,
        page_builder: DefaultPageBuilder | None = None,
    ):
        self.input_dir = input_dir
        self._content_loader = content_loader or FileContentLoader(input_dir)
        self._page_builder = page_builder or DefaultPageBuilder(input_dir)

    def iter_files(self, include_drafts: bool = False) -> list[Path]:
        return self._content_loader.iter_files(include_drafts)

    def build_page(self, path: Path) -> Page:
        return self._page_builder.build(path, draft=path.name.startswith("_"))

    def load(self, include_drafts: bool = False) -> list[Page]:
        """Load all content files and create Page objects.

        Pages marked ``draft: true`` in front-matter are dropped unless
        ``include_drafts`` is set.
        """
        pages: list[Page] = []
        for path in self.iter_files(include_drafts):
            page = self.build_page(path)
            if page.draft and not include_drafts:
                continue
            pages.append(page)
        return pages
