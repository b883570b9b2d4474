"""Metadata extractors for Quill.

Each extractor pulls one kind of metadata out of a content file. The
composite runs them in order and merges their results, later extractors
seeing what earlier ones found.

Key classes:
- FrontmatterExtractor: Splits YAML front-matter from the body.
- TitleExtractor: Title from front-matter, first heading or filename.
- DateExtractor: Date from front-matter, filename prefix or mtime.
- TagExtractor: Tags from front-matter.
- SnippetExtractor: Snippet from front-matter or first paragraph.
"""

from __future__ import annotations

import re
from datetime import datetime
from pathlib import Path
from typing import Any

import yaml

from .utils import coerce_date, extract_date_from_name, first_paragraph, titleize

FRONTMATTER_RE = re.compile(
    r"\A---[ \t]*\r?\n(.*?)^---[ \t]*(?:\r?\n|\Z)", re.DOTALL | re.MULTILINE
)

FENCE_RE = re.compile(r"^(`{3,}|~{3,})")


class FrontmatterError(ValueError):
    """Raised when a front-matter block cannot be parsed into a mapping."""


def extract_frontmatter(text: str) -> tuple[dict[str, Any], str]:
    """Extract YAML front-matter from content.

    Args:
        text: Raw file content.

    Returns:
        Tuple of (front-matter dict, remaining content).

    Raises:
        FrontmatterError: If the block is not valid YAML or not a mapping.
    """
    match = FRONTMATTER_RE.match(text)
    if not match:
        return {}, text
    try:
        data = yaml.safe_load(match.group(1))
    except yaml.YAMLError as exc:
        raise FrontmatterError(f"Malformed front-matter: {exc}") from exc
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise FrontmatterError(
            f"Front-matter must be a mapping, got {type(data).__name__}"
        )
    return data, text[match.end() :]


def find_title_heading(body: str) -> tuple[int, str] | None:
    """Locate the first ``# heading`` outside fenced code blocks.

    Returns:
        The heading's line index and text, or None when there is none.
    """
    fence = None
    for index, line in enumerate(body.splitlines()):
        stripped = line.strip()
        if fence is not None:
            if stripped.startswith(fence) and not stripped.strip(fence[0]):
                fence = None
            continue
        match = FENCE_RE.match(stripped)
        if match:
            fence = match.group(1)
            continue
        if stripped.startswith("# ") and stripped[2:].strip():
            return index, stripped[2:].strip()
    return None


class FrontmatterExtractor:
    def extract(self, content: str, path: Path, found: dict[str, Any]) -> dict[str, Any]:
        frontmatter, body = extract_frontmatter(content)
        return {"frontmatter": frontmatter, "body": body}


class TitleExtractor:
    """Title from front-matter, else the first ``# heading``, else the filename."""

    def extract(self, content: str, path: Path, found: dict[str, Any]) -> dict[str, Any]:
        title = found.get("frontmatter", {}).get("title")
        if title is not None:
            return {"title": str(title), "title_source": "frontmatter"}
        heading = find_title_heading(found.get("body", content))
        if heading is not None:
            return {"title": heading[1], "title_source": "heading"}
        return {"title": titleize(path.name), "title_source": "filename"}


class DateExtractor:
    """Date from front-matter, else the filename prefix, else file mtime."""

    def extract(self, content: str, path: Path, found: dict[str, Any]) -> dict[str, Any]:
        raw = found.get("frontmatter", {}).get("date")
        if raw is not None:
            return {"date": coerce_date(raw)}
        date = extract_date_from_name(path.stem)
        if date is None:
            date = datetime.fromtimestamp(path.stat().st_mtime)
        return {"date": date}


class TagExtractor:
    def extract(self, content: str, path: Path, found: dict[str, Any]) -> dict[str, Any]:
        raw = found.get("frontmatter", {}).get("tags")
        if raw is None:
            raw = []
        elif isinstance(raw, str):
            raw = [raw]
        elif not isinstance(raw, (list, tuple)):
            raise FrontmatterError(
                f"'tags' must be a list or string, got {type(raw).__name__}"
            )
        tags: list[str] = []
        for tag in raw:
            tag = str(tag).strip()
            if tag and tag not in tags:
                tags.append(tag)
        return {"tags": tags}


class SnippetExtractor:
    """Snippet for post listings.

    An explicit ``snippet`` wins; Markdown files otherwise fall back to
    their first paragraph.
    """

    def extract(self, content: str, path: Path, found: dict[str, Any]) -> dict[str, Any]:
        snippet = found.get("frontmatter", {}).get("snippet")
        if snippet is not None:
            return {"snippet": str(snippet).strip()}
        if path.suffix.lower() in (".md", ".markdown"):
            return {"snippet": first_paragraph(found.get("body", content))}
        return {"snippet": ""}


class CompositeMetadataExtractor:
    """Combines multiple metadata extractors.

    Later extractors can override earlier ones and read their results
    through the ``found`` mapping.
    """

    def __init__(self, extractors: list | None = None):
        if extractors is None:
            self._extractors = [
                FrontmatterExtractor(),
                TitleExtractor(),
                DateExtractor(),
                TagExtractor(),
                SnippetExtractor(),
            ]
        else:
            self._extractors = list(extractors)

    def extract(self, content: str, path: Path) -> dict[str, Any]:
        """Run every extractor over ``content`` and merge their results."""
        result: dict[str, Any] = {}
        for extractor in self._extractors:
            result.update(extractor.extract(content, path, result))
        return result


default_metadata_extractor = CompositeMetadataExtractor()
