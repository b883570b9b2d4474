"""Minification transforms for Quill.

- minify_css: the CSS-minify text filter (csscompressor).
- minify_js: JavaScript minification (rjsmin).
- minify_html: the HTML-minify transform (minify-html).
- transform_output: applies minify_html to ``.html`` outputs only.
"""

from __future__ import annotations

from pathlib import Path

import csscompressor
import minify_html as _minify_html
from rjsmin import jsmin


def minify_css(code: str) -> str:
    return csscompressor.compress(code).strip()


def minify_js(code: str) -> str:
    return jsmin(code)


def minify_html(html: str) -> str:
    """Collapse whitespace, drop comments and minify inline CSS.

    Closing tags, the ``<html>``/``<head>`` opening tags and the
    ``<!doctype html>`` spacing are kept so output stays easy to read back.
    """
    return _minify_html.minify(
        html,
        keep_comments=False,
        keep_closing_tags=True,
        keep_html_and_head_opening_tags=True,
        minify_css=True,
        minify_js=False,
        minify_doctype=False,
    )


def transform_output(content: str, output_path: Path | str, enabled: bool = True) -> str:
    """Apply the HTML transform to a generated file.

    Args:
        content: Generated file content.
        output_path: Where the content is about to be written.
        enabled: Whether minification is switched on.

    Returns:
        Minified content for ``.html`` outputs, otherwise ``content``.
    """
    if enabled and str(output_path).endswith(".html"):
        return minify_html(content)
    return content
