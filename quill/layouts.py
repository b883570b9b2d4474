"""Layouts for Quill.

A layout wraps a page's rendered content into a full HTML document. The
built-in layouts are plain functions composing the components; a file in
``<input>/_includes`` with the same name replaces the built-in and is
rendered with Jinja2.

Key pieces:
- index_layout: Home page with jumbotron, about section and latest posts.
- post_layout: Single post page.
- page_layout: Any other page.
- LayoutRegistry: Resolves layout names to callables.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from pathlib import Path
from typing import Any

from jinja2 import Environment, FileSystemLoader, TemplateNotFound, select_autoescape
from markupsafe import Markup

from .collections import Collections
from .components import (
    COMPONENTS,
    base_html,
    jumbotron,
    navbar,
    post_body,
    post_list,
    text_section,
)
from .content import Page
from .minify import minify_css

logger = logging.getLogger(__name__)

Layout = Callable[[Page, str, Collections, Mapping[str, Any]], str]

LAYOUT_SUFFIXES = (".html.jinja", ".jinja", ".html")


class LayoutNotFoundError(LookupError):
    """Raised when a page names a layout that does not exist."""


def index_layout(
    page: Page, content: str, collections: Collections, site: Mapping[str, Any]
) -> str:
    """Home page: jumbotron, the page content, then the latest posts."""
    posts = collections["post"].sorted()
    body = Markup(
        "{jumbo}\n"
        '<main class="container">\n'
        '<section class="content" id="about-me">\n{content}\n</section>\n'
        '<section class="content">\n<header><h3>Latest posts</h3></header>\n{posts}\n</section>\n'
        "</main>"
    ).format(
        jumbo=jumbotron(page.title, page.subtitle or site.get("subtitle", "")),
        content=Markup(content),
        posts=post_list(posts),
    )
    title = site.get("title") or page.title
    return base_html(body=body, title=title, site=site)


def post_layout(
    page: Page, content: str, collections: Collections, site: Mapping[str, Any]
) -> str:
    """Single post: navbar with the brand, then the post with its date."""
    body = Markup('{nav}\n<main class="container">\n{post}\n</main>').format(
        nav=navbar(site.get("brand") or site.get("author", ""), []),
        post=post_body(page.title, page.date, content),
    )
    return base_html(body=body, title=page.title, include_home_link=True, site=site)


def page_layout(
    page: Page, content: str, collections: Collections, site: Mapping[str, Any]
) -> str:
    """Plain page: navbar with site links, then a text section."""
    heading = Markup("<h2>{}</h2>").format(page.title)
    body = Markup('{nav}\n<main class="container">\n{section}\n</main>').format(
        nav=navbar(site.get("brand") or site.get("author", ""), site.get("nav") or []),
        section=text_section(heading, content),
    )
    return base_html(body=body, title=page.title, include_home_link=True, site=site)


BUILTIN_LAYOUTS: dict[str, Layout] = {
    "index": index_layout,
    "post": post_layout,
    "page": page_layout,
}


class LayoutRegistry:
    """Resolves layout names to callables.

    Lookup order for a name: a template file in the includes directory,
    then a registered function. Unknown names raise LayoutNotFoundError.

    Attributes:
        includes_dir: Directory holding layout templates.
        data: Template data from ``_data``.
        env: Jinja2 environment for file layouts.
    """

    def __init__(
        self,
        includes_dir: Path | None = None,
        data: dict[str, Any] | None = None,
    ):
        self.includes_dir = includes_dir
        self.data = data or {}
        self._layouts: dict[str, Layout] = dict(BUILTIN_LAYOUTS)
        search_path = [str(includes_dir)] if includes_dir is not None else []
        self.env = Environment(
            loader=FileSystemLoader(search_path),
            autoescape=select_autoescape(["html", "xml", "jinja"]),
        )
        self.env.filters["cssmin"] = minify_css
        self.env.globals.update(COMPONENTS)
        self.env.globals["data"] = self.data

    def register(self, name: str, layout: Layout) -> None:
        self._layouts[name] = layout

    def names(self) -> list[str]:
        return sorted(self._layouts)

    def resolve(self, name: str) -> Layout:
        """Return the layout callable for ``name``.

        Raises:
            LayoutNotFoundError: If neither a template file nor a registered
                layout has that name.
        """
        template_layout = self._template_layout(name)
        if template_layout is not None:
            return template_layout
        try:
            return self._layouts[name]
        except KeyError:
            raise LayoutNotFoundError(
                f"Unknown layout '{name}' (available: {', '.join(self.names())})"
            ) from None

    def render(
        self,
        page: Page,
        content: str,
        collections: Collections,
        site: Mapping[str, Any],
    ) -> str:
        layout = self.resolve(page.layout)
        return str(layout(page, content, collections, site))

    def _template_layout(self, name: str) -> Layout | None:
        if self.includes_dir is None:
            return None
        for suffix in LAYOUT_SUFFIXES:
            try:
                template = self.env.get_template(f"{name}{suffix}")
            except TemplateNotFound:
                continue
            logger.debug("Using layout template %s", template.filename)

            def render(page, content, collections, site, _template=template):
                return _template.render(
                    page=page,
                    content=Markup(content),
                    collections=collections,
                    site=site,
                )

            return render
        return None
