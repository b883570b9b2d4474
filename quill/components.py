"""Template functions for Quill.

Every component is a plain function from its props to a Markup string.
Components are rendered from small Jinja2 fragments with autoescaping on,
so plain strings are escaped and Markup props are inserted as they are.
Layouts compose them: base shell, navbar or jumbotron, content sections,
post list and footer.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from datetime import datetime
from typing import Any

from jinja2 import Environment, StrictUndefined
from markupsafe import Markup

from .minify import minify_css
from .utils import format_date

COLORS = {
    "WHITE": "#ffffff",
    "DARK_BLUE": "#002f6d",
    "LIGHT_BLUE": "#55c1e8",
    "RED": "#ce112d",
    "LIGHT_GRAY": "#97999b",
    "SEAFOAM": "#00A19c",
    "MID_BLUE": "#0083c1",
    "PURPLE": "#a97cc9",
    "ORANGE": "#f98e2c",
}

BASE_STYLE = """body {
  margin: 0;
  padding: 0;
  font-size: 1.2rem;
  font-weight: 500;
  font-family: IBM Plex Serif, serif;
  background-color: #fbfbfb;
  color: #444;
}

h1,h2,h3,h4,h5,h6 { font-family: IBM Plex Sans, -apple-system, BlinkMacSystemFont, Segoe UI, Helvetica, Arial, sans-serif; margin: 1rem 0; }
p { margin: 1rem 0; }
pre { background-color: #eee; padding: 0.5rem; width: 100%%; overflow: auto; line-height: 1rem; }
code { font-family: IBM Plex Mono, monospace; color: %(SEAFOAM)s; }

a { color: %(MID_BLUE)s; }
a:hover { color: %(SEAFOAM)s; text-decoration-thickness: 3px; }
a:active { color: %(ORANGE)s; }
a:visited { color: %(RED)s; }
""" % COLORS

FONTS_URL = (
    "https://fonts.googleapis.com/css2?family=IBM+Plex+Serif:wght@500"
    "&family=IBM+Plex+Sans:wght@700&family=IBM+Plex+Mono&display=swap"
)

_env = Environment(
    autoescape=True, undefined=StrictUndefined, trim_blocks=True, lstrip_blocks=True
)
_env.filters["cssmin"] = minify_css

_BASE = _env.from_string(
    """<!DOCTYPE html>
<html lang="{{ lang }}">
  <head>
    <meta charset="utf-8" />
    <meta name="viewport" content="width=device-width, initial-scale=1" />
    <title>{{ title }}</title>
    {{ head }}
    <link href="{{ fonts_url }}" rel="stylesheet" />
    <style>{{ style | cssmin | safe }}</style>
    <link rel="stylesheet" href="/assets/css/main.css" />
    <link rel="stylesheet" href="/assets/css/highlight.css" />
{% if analytics_id %}
    <script async src="https://www.googletagmanager.com/gtag/js?id={{ analytics_id }}"></script>
    <script>
      window.dataLayer = window.dataLayer || [];
      function gtag(){dataLayer.push(arguments);}
      gtag('js', new Date());
      gtag('config', '{{ analytics_id }}');
    </script>
{% endif %}
  </head>
  <body>
    {{ body }}
    {{ footer }}
  </body>
</html>
"""
)

_FOOTER = _env.from_string(
    """<footer class="container" style="height: 4rem;">
  <div class="content" style="display: flex; justify-content: {{ 'space-between' if include_home_link else 'flex-end' }}; align-items: baseline;">
{% if include_home_link %}
    <a href="/">Back Home</a>
{% endif %}
    <h5>&copy; {{ year }} {{ author }}</h5>
  </div>
</footer>
"""
)

_NAVBAR = _env.from_string(
    """<nav class="navbar">
  <h3><a href="/#about-me">{{ brand }}</a></h3>
  <div class="navbar-links">
{% for link in links %}
    <a href="{{ link.url }}">{{ link.text }}</a>
{% endfor %}
  </div>
</nav>
"""
)

_JUMBOTRON = _env.from_string(
    """<header class="jumbo">
  <h1>{{ title }}</h1>
  <p>{{ subtitle }}</p>
</header>
"""
)

_POST_BODY = _env.from_string(
    """<article class="{{ '' if in_container else 'content' }}">
  <header>
    <h3 style="margin-bottom: 0;">{{ title }}</h3>
    <h6 style="margin-top: 0;" class="lt-text">{{ date }}</h6>
  </header>
  <section>
    {{ content }}
  </section>
</article>
"""
)

_TEXT_SECTION = _env.from_string(
    """<section class="text-content">
  {{ heading }}
  <hr />
  {{ body }}
</section>
"""
)


def _current_year() -> int:
    return datetime.now().year


def cssmin(code: str) -> Markup:
    """The CSS-minify text filter."""
    return Markup(minify_css(code))


def footer(author: str = "", include_home_link: bool = False, year: int | None = None) -> Markup:
    return Markup(
        _FOOTER.render(
            author=author,
            include_home_link=include_home_link,
            year=year or _current_year(),
        )
    )


def navbar(brand: str, links: Iterable[Mapping[str, str]] = ()) -> Markup:
    """Navigation bar: brand on the left, ``{text, url}`` links on the right."""
    return Markup(_NAVBAR.render(brand=brand, links=list(links)))


def jumbotron(title: str, subtitle: str = "") -> Markup:
    return Markup(_JUMBOTRON.render(title=title, subtitle=subtitle))


def post_body(title: str, date: datetime, content: str = "", in_container: bool = False) -> Markup:
    """Render one post: a heading with its date above the content.

    Args:
        title: Post title; pass Markup to embed a link.
        date: Publication date, shown like ``Tue Sep 29 2020``.
        content: Rendered HTML of the post (or its snippet).
        in_container: True when the caller already wraps it in a content
            container, as the index page does.
    """
    return Markup(
        _POST_BODY.render(
            title=title,
            date=format_date(date),
            content=Markup(content),
            in_container=in_container,
        )
    )


def text_section(heading: str, body: str) -> Markup:
    return Markup(_TEXT_SECTION.render(heading=Markup(heading), body=Markup(body)))


def post_list(posts: Iterable[Any]) -> Markup:
    """Render posts as linked entries showing their snippets.

    Posts are rendered in the order given; each is preceded by ``<hr />``.
    """
    parts = []
    for post in posts:
        link = Markup('<a href="{}">{}</a>').format(post.url, post.title)
        parts.append(Markup("<hr />\n"))
        parts.append(post_body(link, post.date, post.snippet, in_container=True))
    return Markup("").join(parts)


def base_html(
    body: str = "",
    title: str = "",
    head: str = "",
    include_home_link: bool = False,
    site: Mapping[str, Any] | None = None,
    year: int | None = None,
) -> Markup:
    """Full HTML document around ``body``.

    Args:
        body: Page body markup.
        title: Document title.
        head: Extra markup for ``<head>``.
        include_home_link: Show a "Back Home" link in the footer.
        site: Site configuration; ``author``, ``lang`` and ``analytics_id``
            are read from it.
        year: Copyright year, defaults to the current year.
    """
    site = site or {}
    return Markup(
        _BASE.render(
            lang=site.get("lang") or "en",
            title=title,
            head=Markup(head),
            fonts_url=FONTS_URL,
            style=BASE_STYLE,
            analytics_id=site.get("analytics_id") or "",
            body=Markup(body),
            footer=footer(
                author=site.get("author") or "",
                include_home_link=include_home_link,
                year=year,
            ),
        )
    )


COMPONENTS = {
    "base_html": base_html,
    "footer": footer,
    "navbar": navbar,
    "jumbotron": jumbotron,
    "post_body": post_body,
    "text_section": text_section,
    "post_list": post_list,
    "cssmin": cssmin,
    "format_date": format_date,
}
