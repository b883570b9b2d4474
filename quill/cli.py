"""Command-line interface for Quill.

Commands:
- new: Scaffold a new blog.
- build: Build the site into the output directory.
- serve: Run the development preview server with live reload.
- post: Create a new post interactively.
"""

from __future__ import annotations

import logging
import os
import shutil
import subprocess
from datetime import datetime
from pathlib import Path

import click
import questionary
import yaml

from . import __version__
from .utils import slugify

logger = logging.getLogger(__name__)

SCAFFOLD_CONFIG = {
    "input_dir": "src",
    "output_dir": "docs",
    "port": 4080,
    "passthrough": ["assets"],
    "title": "My Blog",
    "subtitle": "Notes on software",
    "author": "",
    "brand": "",
}

SCAFFOLD_FILES = {
    "src/index.md": (
        "---\n"
        "layout: index\n"
        "title: Hello\n"
        "subtitle: Notes on software\n"
        "---\n"
        "\n"
        "Write a few words about yourself here.\n"
    ),
    "src/posts/{date}-hello-world.md": (
        "---\n"
        "layout: post\n"
        "title: Hello World\n"
        "date: {date}\n"
        "tags: [post]\n"
        "snippet: The first post.\n"
        "---\n"
        "\n"
        "Welcome to the blog.\n"
        "\n"
        "```python\n"
        "print(\"hello\")\n"
        "```\n"
    ),
    "assets/css/main.css": (
        ".container { max-width: 48rem; margin: 0 auto; padding: 0 1rem; }\n"
        ".jumbo { padding: 3rem 1rem; text-align: center; }\n"
        ".navbar { display: flex; justify-content: space-between; padding: 0 1rem; }\n"
    ),
}


class _ClickHandler(logging.Handler):
    """Logging handler that writes records to stderr through click."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            click.echo(self.format(record), err=True)
        except Exception:
            self.handleError(record)


def _configure_logging(verbose: bool) -> None:
    package_logger = logging.getLogger("quill")
    package_logger.setLevel(logging.DEBUG if verbose else logging.INFO)
    if not any(isinstance(h, _ClickHandler) for h in package_logger.handlers):
        handler = _ClickHandler()
        handler.setFormatter(logging.Formatter("%(levelname)s %(message)s"))
        package_logger.addHandler(handler)


@click.group()
@click.version_option(version=__version__, prog_name="quill")
@click.option("-v", "--verbose", is_flag=True, help="Show debug output")
def cli(verbose: bool):
    """Quill static blog generator."""
    _configure_logging(verbose)


@cli.command()
@click.argument("name")
def new(name: str):
    """Scaffold a new blog."""
    target = Path(name).resolve()
    if target.exists() and any(target.iterdir()):
        raise click.ClickException(
            f"Refusing to initialize into non-empty directory: {target}"
        )
    author = target.name.replace("-", " ").title()
    _scaffold(target, author=author)
    click.echo(f"New Quill blog created at {target}")


@cli.command()
@click.option("--drafts", is_flag=True, help="Include draft content")
def build(drafts: bool):
    """Build the site into the output directory."""
    project_root = Path.cwd()
    from .build import BuildError, build_site

    try:
        result = build_site(project_root, include_drafts=drafts)
    except BuildError as exc:
        try:
            rel_path = exc.source_path.relative_to(project_root)
        except ValueError:
            rel_path = exc.source_path
        click.echo(click.style("Build failed:", fg="red", bold=True), err=True)
        click.echo(click.style(f"  File: {rel_path}", fg="yellow"), err=True)
        click.echo(click.style(f"  Error: {exc.message}", fg="white"), err=True)
        raise SystemExit(1) from None
    except FileNotFoundError as exc:
        raise click.ClickException(str(exc)) from None
    click.echo(f"Built {len(result.pages)} pages into {result.output_dir}")


@cli.command()
@click.option("--drafts", is_flag=True, help="Include draft content")
@click.option(
    "--port",
    type=int,
    required=False,
    help="Port to run the dev server (overrides quill.yaml)",
)
@click.option(
    "--ws-port",
    type=int,
    required=False,
    help="Port for the live reload websocket server (overrides quill.yaml ws_port)",
)
def serve(drafts: bool, port: int | None, ws_port: int | None):
    """Run dev server with live reload."""
    project_root = Path.cwd()
    from .server import DevServer

    server = DevServer(project_root, http_port=port, ws_port=ws_port)
    server.start(include_drafts=drafts)


@cli.command()
def post():
    """Create a new post interactively."""
    project_root = Path.cwd()
    from .build import load_config

    config = load_config(project_root)
    posts_dir = project_root / config["input_dir"] / "posts"
    if not posts_dir.parent.exists():
        raise click.ClickException(
            f"No {config['input_dir']}/ directory found. Run this command from a Quill project root."
        )

    title = questionary.text(
        "Title:",
        validate=lambda x: len(x.strip()) > 0 or "Title cannot be empty",
        style=_questionary_style(),
    ).ask()
    if title is None:
        raise click.Abort()
    title = title.strip()

    snippet = questionary.text(
        "Snippet (shown on the home page):",
        style=_questionary_style(),
    ).ask()
    if snippet is None:
        raise click.Abort()

    today = datetime.now()
    slug = slugify(title)
    filename = f"{today:%Y-%m-%d}-{slug}.md"
    target_path = posts_dir / filename
    if target_path.exists():
        raise click.ClickException(
            f"File already exists: {target_path.relative_to(project_root)}"
        )

    conflicting = _find_slug_conflict(posts_dir, slug)
    if conflicting is not None:
        raise click.ClickException(
            f"A post with slug '{slug}' already exists: {conflicting.name}"
        )

    posts_dir.mkdir(parents=True, exist_ok=True)
    target_path.write_text(
        _post_template(title, today, snippet.strip()), encoding="utf-8"
    )
    click.echo(f"Created {target_path.relative_to(project_root)}")


def _find_slug_conflict(folder: Path, slug: str) -> Path | None:
    if not folder.exists():
        return None
    for path in sorted(folder.iterdir()):
        if path.is_file() and path.suffix == ".md" and slugify(path.stem) == slug:
            return path
    return None


def _post_template(title: str, date: datetime, snippet: str = "") -> str:
    frontmatter = {
        "layout": "post",
        "title": title,
        "date": date.date(),
        "tags": ["post"],
    }
    if snippet:
        frontmatter["snippet"] = snippet
    header = yaml.safe_dump(frontmatter, sort_keys=False, allow_unicode=True)
    return f"---\n{header}---\n\n"


def _questionary_style():
    return questionary.Style(
        [
            ("qmark", "fg:cyan bold"),
            ("question", "bold"),
            ("answer", "fg:cyan"),
            ("pointer", "fg:cyan bold"),
            ("highlighted", "fg:cyan bold"),
            ("selected", "fg:cyan"),
        ]
    )


def main():
    """Entry point for the CLI application."""
    cli()


def _scaffold(root: Path, author: str = "") -> None:
    """Create the directory structure and files for a new blog."""
    today = datetime.now().strftime("%Y-%m-%d")
    for rel, content in SCAFFOLD_FILES.items():
        dest = root / rel.replace("{date}", today)
        dest.parent.mkdir(parents=True, exist_ok=True)
        dest.write_text(content.replace("{date}", today), encoding="utf-8")

    config = dict(SCAFFOLD_CONFIG, author=author, brand=author)
    (root / "quill.yaml").write_text(
        yaml.safe_dump(config, sort_keys=False), encoding="utf-8"
    )
    (root / ".gitignore").write_text("docs.staging/\n", encoding="utf-8")
    _try_git_init(root)


def _try_git_init(root: Path) -> None:
    """Initialize a git repository if git is available."""
    if os.environ.get("QUILL_SKIP_GIT_INIT") == "1":
        return
    git_bin = shutil.which("git")
    if not git_bin:
        return
    try:
        subprocess.run(
            [git_bin, "init"],
            cwd=root,
            check=True,
            capture_output=True,
        )
    except (OSError, subprocess.CalledProcessError) as exc:
        # Non-fatal: user can run git init manually
        logger.debug("git init failed: %s", exc)
