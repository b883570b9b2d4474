"""Content renderers for Quill.

Each renderer turns one kind of source file into an HTML fragment.

Key classes:
- MarkdownRenderer: Renders Markdown to HTML with syntax highlighting.
- HTMLRenderer: Passes through HTML content.
- RendererRegistry: Picks a renderer for a path.
"""

from __future__ import annotations

import re
from pathlib import Path

import mistune
from pygments import highlight
from pygments.formatters import HtmlFormatter
from pygments.lexers import get_lexer_by_name
from pygments.util import ClassNotFound

from .utils import is_html, is_markdown

MARKDOWN_PLUGINS = ["strikethrough", "footnotes", "table", "url"]


def _generate_heading_id(text: str) -> str:
    """Generate a URL-friendly ID from heading text."""
    slug = re.sub(r"<[^>]+>", "", text).lower().strip()
    slug = re.sub(r"[^\w\s-]", "", slug)
    slug = re.sub(r"[-\s]+", "-", slug)
    return slug.strip("-")


def highlight_code(code: str, info: str | None = None) -> str:
    """Highlight a code block with Pygments.

    Blocks without a language, or with one Pygments does not know, are
    escaped and wrapped in ``<pre><code>`` with a ``language-*`` class.
    """
    lang = (info or "").strip().split(None, 1)[0] if info else ""
    if lang:
        try:
            lexer = get_lexer_by_name(lang, stripall=True)
        except ClassNotFound:
            pass
        else:
            formatter = HtmlFormatter(cssclass="highlight")
            return highlight(code, lexer, formatter)
    escaped = mistune.escape(code)
    lang_class = f' class="language-{mistune.escape(lang)}"' if lang else ""
    return f"<pre><code{lang_class}>{escaped}</code></pre>\n"


class _HighlightRenderer(mistune.HTMLRenderer):
    """Markdown renderer adding heading anchors and Pygments highlighting."""

    def __init__(self):
        super().__init__(escape=False)
        self._heading_id_counts: dict[str, int] = {}

    def heading(self, text: str, level: int, **attrs) -> str:
        base_id = _generate_heading_id(text) or "section"
        if base_id in self._heading_id_counts:
            self._heading_id_counts[base_id] += 1
            heading_id = f"{base_id}-{self._heading_id_counts[base_id]}"
        else:
            self._heading_id_counts[base_id] = 0
            heading_id = base_id
        return f'<h{level} id="{heading_id}">{text}</h{level}>\n'

    def block_code(self, code: str, info: str | None = None) -> str:
        return highlight_code(code, info)


class MarkdownRenderer:
    """Renders Markdown content to HTML."""

    source_type = "markdown"

    def can_render(self, path: Path) -> bool:
        return is_markdown(path)

    def render(self, content: str) -> str:
        markdown = mistune.create_markdown(
            renderer=_HighlightRenderer(), plugins=MARKDOWN_PLUGINS
        )
        return markdown(content)


class HTMLRenderer:
    """Passes through HTML content unchanged."""

    source_type = "html"

    def can_render(self, path: Path) -> bool:
        return is_html(path)

    def render(self, content: str) -> str:
        return content


class RendererRegistry:
    """Registry for content renderers, checked in registration order."""

    def __init__(self):
        self._renderers: list = []
        self.register(MarkdownRenderer())
        self.register(HTMLRenderer())

    def register(self, renderer) -> None:
        self._renderers.append(renderer)

    def get_renderer(self, path: Path):
        """Return the first renderer that can handle ``path``, or None."""
        for renderer in self._renderers:
            if renderer.can_render(path):
                return renderer
        return None


def render_snippet(text: str) -> str:
    """Render a post snippet (Markdown or inline HTML) to HTML."""
    if not text:
        return ""
    return MarkdownRenderer().render(text).strip()


default_renderer_registry = RendererRegistry()
