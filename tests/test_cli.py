import logging
import shutil
import socket
import tempfile
import threading
from pathlib import Path

import pytest

from shpool.cli import Args, build_parser, main, parse_args, run, runtime_paths
from shpool.client import CommandError
from shpool.protocol import (
    KillReply,
    KillRequest,
    ListReply,
    Session,
    SessionStatus,
    decode_connect_header,
    encode_reply,
)


class FakeDaemon:
    def __init__(self, path, reply):
        self.reply = reply
        self.header = None
        self.sock = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
        self.sock.bind(str(path))
        self.sock.listen(1)
        self.thread = threading.Thread(target=self._serve, daemon=True)
        self.thread.start()

    def _serve(self):
        conn, _ = self.sock.accept()
        with conn:
            data = b""
            while True:
                part = conn.recv(4096)
                if not part:
                    return
                data += part
                try:
                    self.header = decode_connect_header(data)
                    break
                except EOFError:
                    continue
            conn.sendall(encode_reply(self.reply))

    def close(self):
        self.thread.join(timeout=5)
        self.sock.close()


@pytest.fixture
def sock_path(monkeypatch):
    d = tempfile.mkdtemp(prefix="sp")
    monkeypatch.setenv("XDG_RUNTIME_DIR", d)
    try:
        yield Path(d) / "s.sock"
    finally:
        shutil.rmtree(d, ignore_errors=True)


@pytest.fixture
def restore_logging():
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield
    for h in list(root.handlers):
        if h not in handlers:
            root.removeHandler(h)
            h.close()
    root.setLevel(level)


def test_parse_verbose_count():
    args = parse_args(["-v", "-v", "list"])
    assert args.verbose == 2
    assert args.command == "list"
    assert args.version() is False


def test_parse_detach_sessions():
    args = parse_args(["-s", "/tmp/x.sock", "detach", "a", "b"])
    assert args.socket == "/tmp/x.sock"
    assert args.sessions == ["a", "b"]


def test_parse_kill_with_options():
    args = parse_args(["-l", "log.txt", "-c", "cfg.toml", "kill", "x"])
    assert args == Args(
        command="kill", log_file="log.txt", config_file="cfg.toml", sessions=["x"]
    )


def test_parse_version():
    assert parse_args(["version"]).version() is True


def test_parse_rejects_unknown_command():
    with pytest.raises(SystemExit):
        build_parser().parse_args(["bogus"])


def test_runtime_paths_xdg():
    assert runtime_paths(None, {"XDG_RUNTIME_DIR": "/run/u"}) == (
        Path("/run/u/shpool"),
        Path("/run/u/shpool/shpool.socket"),
    )


def test_runtime_paths_home_fallback():
    runtime_dir, sock = runtime_paths(None, {"HOME": "/home/u"})
    assert runtime_dir == Path("/home/u/.shpool/shpool")
    assert sock == runtime_dir / "shpool.socket"


def test_runtime_paths_explicit_socket_namespaces():
    env = {"XDG_RUNTIME_DIR": "/run/u"}
    dir_a, sock_a = runtime_paths("/tmp/a.sock", env)
    dir_b, _ = runtime_paths("/tmp/b.sock", env)
    assert sock_a == Path("/tmp/a.sock")
    assert dir_a.parent == Path("/run/u/shpool")
    assert dir_a != dir_b
    assert runtime_paths("/tmp/a.sock", env)[0] == dir_a
    int(dir_a.name, 16)


def test_runtime_paths_no_env():
    with pytest.raises(CommandError, match="no XDG_RUNTIME_DIR or HOME"):
        runtime_paths(None, {})


def test_run_version_must_be_handled(sock_path):
    with pytest.raises(CommandError, match="wrapper binary must handle version"):
        run(Args(command="version"))


def test_run_list(sock_path, capsys):
    fake = FakeDaemon(sock_path, ListReply([Session("main", 0, SessionStatus.ATTACHED)]))
    status = run(Args(command="list", socket=str(sock_path)))
    fake.close()
    assert status == 0
    assert capsys.readouterr().out.splitlines()[1].startswith("main\t")


def test_run_kill_not_found(sock_path):
    fake = FakeDaemon(sock_path, KillReply(["dev"]))
    status = run(Args(command="kill", socket=str(sock_path), sessions=["dev"]))
    fake.close()
    assert status == 1
    assert fake.header == KillRequest(["dev"])


def test_run_missing_daemon_logs(sock_path, restore_logging):
    log_file = sock_path.parent / "out.log"
    status = run(Args(command="list", socket=str(sock_path), log_file=str(log_file)))
    assert status == 1
    for h in logging.getLogger().handlers:
        h.flush()
    assert "connecting to daemon" in log_file.read_text()


def test_main_version(capsys):
    assert main(["version"]) == 0
    assert capsys.readouterr().out.startswith("shpool ")


def test_main_missing_daemon(sock_path, capsys):
    assert main(["-s", str(sock_path), "list"]) == 1
    assert "could not connect to daemon" in capsys.readouterr().err