import asyncio
import io

from quill.server import DevServer, _ChangeHandler, _ReloadHandler, inject_reload_script


class DummyEvent:
    def __init__(self, path, is_directory=False):
        self.src_path = path
        self.is_directory = is_directory


def make_handler(tmp_path, path):
    handler = _ReloadHandler.__new__(_ReloadHandler)
    handler.path = path
    handler.directory = str(tmp_path)
    handler.command = "GET"
    handler.request_version = "HTTP/1.1"
    handler.server_version = ""
    handler.sys_version = ""
    handler._headers_buffer = []
    handler.headers = {}
    handler.rfile = io.BytesIO(b"")
    handler.wfile = io.BytesIO()
    handler.send_header = lambda *args, **kwargs: None
    handler.end_headers = lambda: None
    return handler


def test_default_ports_come_from_config(tmp_path):
    server = DevServer(tmp_path)
    assert server.http_port == 4080
    assert server.ws_port == 4081
    assert server.output_dir == tmp_path / "docs"
    assert server._staging_dir == tmp_path / "docs.staging"

    (tmp_path / "quill.yaml").write_text("port: 9000\nws_port: 9100\n", encoding="utf-8")
    configured = DevServer(tmp_path)
    assert configured.http_port == 9000
    assert configured.ws_port == 9100


def test_dev_server_port_override(tmp_path):
    server = DevServer(tmp_path, http_port=5055, ws_port=None)
    assert server.http_port == 5055
    assert server.ws_port == 5056

    explicit = DevServer(tmp_path, http_port=5055, ws_port=6000)
    assert explicit.ws_port == 6000
    assert f":{explicit.ws_port}" in explicit._reload_script


def test_inject_reload_script():
    assert inject_reload_script("<body>hi</body>", "<s/>") == "<body>hi<s/></body>"
    assert inject_reload_script("<p>bare</p>", "<s/>") == "<p>bare</p><s/>"


def test_watch_paths_include_existing_passthrough(tmp_path):
    (tmp_path / "src").mkdir()
    (tmp_path / "assets").mkdir()
    server = DevServer(tmp_path)
    assert server.watch_paths() == [tmp_path / "src", tmp_path / "assets"]

    (tmp_path / "quill.yaml").write_text("passthrough: [assets, CNAME]\n", encoding="utf-8")
    (tmp_path / "CNAME").write_text("example.com", encoding="utf-8")
    server = DevServer(tmp_path)
    assert tmp_path / "CNAME" in server.watch_paths()


def test_change_handler_skips_output_and_staging(tmp_path):
    server = DevServer(tmp_path)
    called = []
    server.rebuild = lambda include_drafts: called.append(include_drafts)
    handler = _ChangeHandler(server, include_drafts=True)

    handler.on_any_event(DummyEvent(str(server.output_dir / "index.html")))
    handler.on_any_event(DummyEvent(str(server._staging_dir / "index.html")))
    handler.on_any_event(DummyEvent(str(tmp_path / "node_modules" / "x.js")))
    handler.on_any_event(DummyEvent(str(tmp_path / ".git" / "HEAD")))
    handler.on_any_event(DummyEvent(str(tmp_path / "src"), is_directory=True))
    assert called == []

    handler.on_any_event(DummyEvent(str(tmp_path / "src" / "index.md")))
    assert called == [True]


def test_async_broadcast_drops_stale_clients(tmp_path):
    server = DevServer(tmp_path)

    class GoodWS:
        def __init__(self):
            self.messages = []

        async def send(self, msg):
            self.messages.append(msg)

    class BadWS:
        async def send(self, msg):
            raise ConnectionError("gone")

    good = GoodWS()
    bad = BadWS()
    server._ws_clients = {good, bad}
    asyncio.run(server._async_broadcast('{"type": "reload"}'))
    assert good.messages == ['{"type": "reload"}']
    assert server._ws_clients == {good}


def test_ws_handler_tracks_client(tmp_path):
    server = DevServer(tmp_path)

    class DummyWS:
        def __init__(self):
            self.closed = False

        async def wait_closed(self):
            assert self in server._ws_clients
            self.closed = True

    ws = DummyWS()
    asyncio.run(server._ws_handler(ws))
    assert ws.closed
    assert ws not in server._ws_clients


def test_rebuild_waits_before_reload(monkeypatch, tmp_path):
    server = DevServer(tmp_path)
    server._post_build_delay = 0.01
    calls = []

    def fake_build(root, include_drafts=False, clean_output=True, output_dir_override=None):
        calls.append(("build", output_dir_override))

    monkeypatch.setattr("quill.server.build_site", fake_build)
    server._broadcast_reload = lambda: calls.append("reload")
    slept = []
    monkeypatch.setattr("quill.server.time.sleep", lambda secs: slept.append(secs))

    server.rebuild(include_drafts=False)
    assert calls == [("build", server._staging_dir), "reload"]
    assert slept == [0.01]


def test_rebuild_swaps_staging_into_place(monkeypatch, tmp_path):
    server = DevServer(tmp_path)
    server._post_build_delay = 0
    server._broadcast_reload = lambda: None
    server.output_dir.mkdir()
    (server.output_dir / "stale.html").write_text("old", encoding="utf-8")

    def fake_build(root, include_drafts=False, clean_output=True, output_dir_override=None):
        (output_dir_override / "index.html").write_text("new", encoding="utf-8")

    monkeypatch.setattr("quill.server.build_site", fake_build)
    server.rebuild(include_drafts=False)
    assert (server.output_dir / "index.html").read_text(encoding="utf-8") == "new"
    assert not (server.output_dir / "stale.html").exists()
    assert not server._staging_dir.exists()


def test_rebuild_guard_and_signature(monkeypatch, tmp_path):
    server = DevServer(tmp_path)
    server._post_build_delay = 0
    server._debounce_seconds = 0.0
    calls = []
    monkeypatch.setattr("quill.server.build_site", lambda *args, **kwargs: calls.append("built"))
    server._broadcast_reload = lambda: calls.append("reloaded")

    sigs = [("a",), ("a",), ("b",)]
    server._compute_signature = lambda: sigs.pop(0) if sigs else ("b",)

    server.rebuild(include_drafts=False)
    server._rebuilding = True
    server.rebuild(include_drafts=False)  # already rebuilding
    server._rebuilding = False
    server.rebuild(include_drafts=False)  # unchanged signature
    server.rebuild(include_drafts=False)
    assert calls == ["built", "reloaded", "built", "reloaded"]


def test_rebuild_reloads_config(monkeypatch, tmp_path):
    server = DevServer(tmp_path)
    server._post_build_delay = 0
    server._broadcast_reload = lambda: None
    monkeypatch.setattr("quill.server.build_site", lambda *args, **kwargs: None)
    (tmp_path / "quill.yaml").write_text("title: Changed\n", encoding="utf-8")
    server.rebuild(include_drafts=False)
    assert server.config["title"] == "Changed"


def test_compute_signature(tmp_path):
    server = DevServer(tmp_path)
    assert server._compute_signature() is None

    (tmp_path / "src" / "posts").mkdir(parents=True)
    (tmp_path / "src" / "posts" / "a.md").write_text("hi", encoding="utf-8")
    (tmp_path / "quill.yaml").write_text("title: t\n", encoding="utf-8")
    sig = server._compute_signature()
    names = [entry[0] for entry in sig]
    assert "quill.yaml" in names
    assert "src/posts/a.md" in names


def test_start_watcher_schedules_paths(monkeypatch, tmp_path):
    (tmp_path / "src").mkdir()
    (tmp_path / "assets").mkdir()
    server = DevServer(tmp_path)
    scheduled = []

    class DummyObserver:
        def schedule(self, handler, path, recursive):
            scheduled.append((path, recursive))

        def start(self):
            scheduled.append("started")

        def stop(self):
            scheduled.append("stopped")

        def join(self):
            scheduled.append("joined")

    monkeypatch.setattr("quill.server.Observer", DummyObserver)
    server._start_watcher(include_drafts=False)
    assert (str(tmp_path / "src"), True) in scheduled
    assert (str(tmp_path / "assets"), True) in scheduled
    assert (str(tmp_path), False) in scheduled
    assert scheduled[-1] == "started"

    server.stop()
    assert scheduled[-2:] == ["stopped", "joined"]


def test_ws_start_failure_is_logged(monkeypatch, tmp_path, caplog):
    server = DevServer(tmp_path, http_port=5055, ws_port=5057)

    async def fake_run():
        raise OSError("bind error")

    monkeypatch.setattr(server, "_run_ws_server", fake_run)
    with caplog.at_level("ERROR"):
        server._start_ws()
    assert "failed to start" in caplog.text


def test_send_head_injects_reload_script(tmp_path):
    (tmp_path / "index.html").write_text("<html><body>Hello</body></html>", encoding="utf-8")
    handler = make_handler(tmp_path, "/index.html")
    codes = []
    handler.send_response = lambda code, message=None: codes.append(code)

    assert _ReloadHandler.send_head(handler) is None
    body = handler.wfile.getvalue().decode()
    assert codes == [200]
    assert "Hello" in body
    assert body.index("WebSocket") < body.index("</body>")


def test_send_head_serves_directory_index(tmp_path):
    posts = tmp_path / "posts" / "hello"
    posts.mkdir(parents=True)
    (posts / "index.html").write_text("<html><body>post</body></html>", encoding="utf-8")
    handler = make_handler(tmp_path, "/posts/hello/")
    codes = []
    handler.send_response = lambda code, message=None: codes.append(code)

    assert _ReloadHandler.send_head(handler) is None
    assert codes == [200]
    assert b"post" in handler.wfile.getvalue()


def test_send_head_passes_other_files_through(tmp_path):
    (tmp_path / "style.css").write_text("body{}", encoding="utf-8")
    handler = make_handler(tmp_path, "/style.css")
    handler.send_response = lambda code, message=None: None
    result = _ReloadHandler.send_head(handler)
    assert result is not None
    result.close()


def test_missing_paths_return_404(tmp_path):
    (tmp_path / "posts").mkdir()
    for path in ("/missing.html", "/posts/"):
        handler = make_handler(tmp_path, path)
        errors = []
        handler.send_error = lambda code, message=None: errors.append(code)
        assert _ReloadHandler.send_head(handler) is None
        assert errors == [404]


def test_serve_404_uses_custom_page(tmp_path):
    (tmp_path / "404.html").write_text("<html><body>oops</body></html>", encoding="utf-8")
    handler = make_handler(tmp_path, "/missing")
    codes = []
    handler.send_response = lambda code, message=None: codes.append(code)
    handler.send_error = lambda *args, **kwargs: codes.append("error")

    assert _ReloadHandler._serve_404(handler) is None
    assert codes == [404]
    body = handler.wfile.getvalue().decode()
    assert "oops" in body
    assert "WebSocket" in body
