import socket

from mindful_ping import paths, server_runner


def test_run_dashboard_hands_app_to_uvicorn(monkeypatch, db_path):
    calls = []
    monkeypatch.setattr(
        server_runner.uvicorn, "run", lambda app, **kwargs: calls.append((app, kwargs))
    )

    server_runner.run_dashboard(port=9999, db_path=db_path, log_level="debug")

    app, kwargs = calls[0]
    try:
        assert kwargs == {
            "host": "127.0.0.1",
            "port": 9999,
            "log_level": "debug",
            "log_config": None,
        }
        assert app.state.tracker.db_path == db_path
    finally:
        app.state.tracker.close()


def test_docs_open_once_port_listens(monkeypatch):
    opened = []
    monkeypatch.setattr(server_runner.webbrowser, "open", opened.append)
    with socket.socket() as server:
        server.bind(("127.0.0.1", 0))
        server.listen()
        port = server.getsockname()[1]

        assert server_runner.open_docs_when_listening("127.0.0.1", port, timeout=2.0)

    assert opened == [f"http://127.0.0.1:{port}/docs"]


def test_docs_not_opened_when_nothing_listens(monkeypatch):
    opened = []
    monkeypatch.setattr(server_runner.webbrowser, "open", opened.append)
    with socket.socket() as unused:
        unused.bind(("127.0.0.1", 0))
        port = unused.getsockname()[1]

    assert not server_runner.open_docs_when_listening("127.0.0.1", port, timeout=0.3)
    assert opened == []


class _FakeDirs:
    def __init__(self, root):
        self.user_data_path = root / "data"
        self.user_log_path = root / "logs"


def test_paths_are_created_under_platform_dirs(monkeypatch, tmp_path):
    monkeypatch.setattr(paths, "PlatformDirs", lambda **kwargs: _FakeDirs(tmp_path))

    assert paths.get_db_path() == tmp_path / "data" / "usage.sqlite3"
    assert paths.get_log_path() == tmp_path / "logs" / "mindful-ping.log"
    assert (tmp_path / "data").is_dir()
    assert (tmp_path / "logs").is_dir()
