import subprocess
from datetime import datetime

from click.testing import CliRunner

from quill.build import BuildError, BuildResult
from quill.cli import _find_slug_conflict, _post_template, cli

ENV = {"QUILL_SKIP_GIT_INIT": "1"}


def test_cli_new_scaffolds_project(tmp_path):
    runner = CliRunner()
    target = tmp_path / "my-blog"
    result = runner.invoke(cli, ["new", str(target)], env=ENV)
    assert result.exit_code == 0
    assert (target / "quill.yaml").exists()
    assert (target / "src" / "index.md").exists()
    assert (target / "assets" / "css" / "main.css").exists()
    posts = list((target / "src" / "posts").glob("*.md"))
    assert len(posts) == 1
    assert "layout: post" in posts[0].read_text(encoding="utf-8")
    assert "author: My Blog" in (target / "quill.yaml").read_text(encoding="utf-8")

    # fails on non-empty directory
    result = runner.invoke(cli, ["new", str(target)], env=ENV)
    assert result.exit_code != 0
    assert "non-empty" in result.output


def test_cli_scaffold_builds(tmp_path, monkeypatch):
    runner = CliRunner()
    target = tmp_path / "blog"
    runner.invoke(cli, ["new", str(target)], env=ENV)
    monkeypatch.chdir(target)
    result = runner.invoke(cli, ["build"], catch_exceptions=False)
    assert result.exit_code == 0
    assert "Built 2 pages" in result.output
    assert (target / "docs" / "posts" / "hello-world" / "index.html").exists()


def test_cli_build_and_serve(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)

    def fake_build_site(root, include_drafts=False, clean_output=True, output_dir_override=None):
        out = root / "docs"
        out.mkdir()
        return BuildResult(pages=[], output_dir=out, data={})

    called = {}

    class DummyServer:
        def __init__(self, root, http_port=None, ws_port=None):
            called["port"] = http_port
            called["ws_port"] = ws_port

        def start(self, include_drafts=False):
            called["drafts"] = include_drafts

    monkeypatch.setattr("quill.build.build_site", fake_build_site)
    monkeypatch.setattr("quill.server.DevServer", DummyServer)

    runner = CliRunner()
    result = runner.invoke(cli, ["build"], catch_exceptions=False)
    assert result.exit_code == 0
    assert "Built 0 pages" in result.output

    result = runner.invoke(
        cli, ["serve", "--drafts", "--port", "5050", "--ws-port", "5051"], catch_exceptions=False
    )
    assert result.exit_code == 0
    assert called == {"port": 5050, "ws_port": 5051, "drafts": True}


def test_cli_build_failure(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    source = tmp_path / "src" / "posts" / "bad.md"

    def failing_build(root, include_drafts=False, clean_output=True, output_dir_override=None):
        raise BuildError(source, "Malformed front-matter: boom")

    monkeypatch.setattr("quill.build.build_site", failing_build)
    result = CliRunner().invoke(cli, ["build"])
    assert result.exit_code == 1
    assert "Build failed" in result.output
    assert "src/posts/bad.md" in result.output
    assert "Malformed front-matter: boom" in result.output


def test_cli_build_missing_input(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    result = CliRunner().invoke(cli, ["build"])
    assert result.exit_code == 1
    assert "Expected input directory" in result.output


class FakeQuestion:
    def __init__(self, answer):
        self.answer = answer

    def ask(self):
        return self.answer


def test_cli_post_creates_dated_file(monkeypatch, tmp_path):
    (tmp_path / "src").mkdir()
    monkeypatch.chdir(tmp_path)
    answers = iter(["Composing Middleware", "How wrappers stack."])
    monkeypatch.setattr(
        "quill.cli.questionary.text", lambda *args, **kwargs: FakeQuestion(next(answers))
    )
    result = CliRunner().invoke(cli, ["post"], catch_exceptions=False)
    assert result.exit_code == 0
    today = datetime.now().strftime("%Y-%m-%d")
    created = tmp_path / "src" / "posts" / f"{today}-composing-middleware.md"
    text = created.read_text(encoding="utf-8")
    assert text.startswith("---\nlayout: post\ntitle: Composing Middleware\n")
    assert "snippet: How wrappers stack." in text

    # same slug again is refused
    answers = iter(["Composing Middleware", ""])
    result = CliRunner().invoke(cli, ["post"])
    assert result.exit_code != 0
    assert "already exists" in result.output


def test_cli_post_abort_and_missing_input(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    result = CliRunner().invoke(cli, ["post"])
    assert result.exit_code != 0
    assert "No src/ directory found" in result.output

    (tmp_path / "src").mkdir()
    monkeypatch.setattr("quill.cli.questionary.text", lambda *args, **kwargs: FakeQuestion(None))
    result = CliRunner().invoke(cli, ["post"])
    assert result.exit_code == 1
    assert "Aborted" in result.output


def test_post_helpers(tmp_path):
    text = _post_template("Hello", datetime(2020, 9, 29))
    assert "date: 2020-09-29" in text
    assert "tags:\n- post" in text
    assert "snippet" not in text

    (tmp_path / "2020-01-01-hello.md").write_text("x", encoding="utf-8")
    assert _find_slug_conflict(tmp_path, "hello").name == "2020-01-01-hello.md"
    assert _find_slug_conflict(tmp_path, "other") is None
    assert _find_slug_conflict(tmp_path / "missing", "hello") is None


def test_new_runs_git_init_unless_skipped(monkeypatch, tmp_path):
    calls = []
    monkeypatch.setattr("quill.cli.shutil.which", lambda name: "/usr/bin/git")
    monkeypatch.setattr(
        "quill.cli.subprocess.run", lambda args, **kwargs: calls.append((args, kwargs["cwd"]))
    )
    runner = CliRunner()
    result = runner.invoke(cli, ["new", str(tmp_path / "a")], env={"QUILL_SKIP_GIT_INIT": "0"})
    assert result.exit_code == 0
    assert calls == [(["/usr/bin/git", "init"], (tmp_path / "a").resolve())]
    assert (tmp_path / "a" / ".gitignore").read_text(encoding="utf-8") == "docs.staging/\n"

    result = runner.invoke(cli, ["new", str(tmp_path / "b")], env=ENV)
    assert result.exit_code == 0
    assert len(calls) == 1


def test_new_ignores_git_failure(monkeypatch, tmp_path):
    def failing_run(args, **kwargs):
        raise subprocess.CalledProcessError(128, args)

    monkeypatch.setattr("quill.cli.shutil.which", lambda name: "/usr/bin/git")
    monkeypatch.setattr("quill.cli.subprocess.run", failing_run)
    result = CliRunner().invoke(cli, ["new", str(tmp_path / "blog")], env={"QUILL_SKIP_GIT_INIT": "0"})
    assert result.exit_code == 0
    assert (tmp_path / "blog" / "quill.yaml").exists()
