"""Quill static blog generator.

Markdown posts with YAML front-matter are wrapped in small template
functions (base shell, navbar, jumbotron, post body, footer) and written
out as minified static HTML, alongside passthrough-copied assets.

The main entry point is the CLI module, which provides commands for
scaffolding a blog, building it, previewing it with live reload and
creating new posts.
"""

__all__ = ["__version__"]
__version__ = "0.1.0"
