"""
End-to-end credential handling over smart HTTP.

A throwaway HTTP server fronts ``git http-backend`` and demands Basic auth
with the test token, so clones and fetches only succeed when the token is
actually sent. After every run the mirror's ``.git/config`` must hold the
plain URL and nothing else.
"""

from __future__ import annotations

import base64
import os
import shutil
import subprocess
import threading
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from pathlib import Path

import pytest

from syncreeper.mirror.reconciler import MirrorReconciler, mirror_path

TOKEN = "ghp_http_s3cret"


def _http_backend_available() -> bool:
    if shutil.which("git") is None:
        return False
    result = subprocess.run(["git", "--exec-path"], capture_output=True, text=True)
    if result.returncode != 0:
        return False
    return (Path(result.stdout.strip()) / "git-http-backend").exists()


pytestmark = pytest.mark.skipif(
    not _http_backend_available(), reason="git http-backend not available"
)


class GitHttpHandler(BaseHTTPRequestHandler):
    """Minimal CGI bridge to ``git http-backend`` with Basic auth."""

    project_root: Path
    token: str
    seen_passwords: list

    def log_message(self, format, *args):
        pass

    def do_GET(self):
        self._serve()

    def do_POST(self):
        self._serve()

    def _password(self) -> str:
        header = self.headers.get("Authorization", "")
        if not header.startswith("Basic "):
            return ""
        decoded = base64.b64decode(header[len("Basic "):]).decode()
        return decoded.partition(":")[2]

    def _read_body(self) -> bytes:
        if self.headers.get("Transfer-Encoding", "").lower() == "chunked":
            chunks = []
            while True:
                size = int(self.rfile.readline().strip(), 16)
                if size == 0:
                    self.rfile.readline()
                    break
                chunks.append(self.rfile.read(size))
                self.rfile.readline()
            return b"".join(chunks)
        return self.rfile.read(int(self.headers.get("Content-Length") or 0))

    def _serve(self):
        body = self._read_body() if self.command == "POST" else b""

        password = self._password()
        if password:
            self.seen_passwords.append(password)
        if password != self.token:
            self.send_response(401)
            self.send_header("WWW-Authenticate", 'Basic realm="mirror"')
            self.send_header("Content-Length", "0")
            self.end_headers()
            return

        path, _, query = self.path.partition("?")
        env = dict(
            os.environ,
            GIT_PROJECT_ROOT=str(self.project_root),
            GIT_HTTP_EXPORT_ALL="1",
            PATH_INFO=path,
            QUERY_STRING=query,
            REQUEST_METHOD=self.command,
            CONTENT_TYPE=self.headers.get("Content-Type", ""),
            CONTENT_LENGTH=str(len(body)),
            REMOTE_ADDR="127.0.0.1",
            REMOTE_USER="x-access-token",
        )
        if self.headers.get("Content-Encoding"):
            env["HTTP_CONTENT_ENCODING"] = self.headers["Content-Encoding"]
        if self.headers.get("Git-Protocol"):
            env["GIT_PROTOCOL"] = self.headers["Git-Protocol"]

        output = subprocess.run(
            ["git", "http-backend"], input=body, env=env, capture_output=True, timeout=60
        ).stdout

        separator = b"\r\n\r\n" if b"\r\n\r\n" in output else b"\n\n"
        head, _, payload = output.partition(separator)

        status = 200
        headers = []
        for line in head.decode("latin-1").splitlines():
            name, _, value = line.partition(":")
            if name.lower() == "status":
                status = int(value.strip().split()[0])
            elif name and name.lower() != "content-length":
                headers.append((name, value.strip()))

        self.send_response(status)
        for name, value in headers:
            self.send_header(name, value)
        self.send_header("Content-Length", str(len(payload)))
        self.end_headers()
        self.wfile.write(payload)


class GitHttpServer:
    def __init__(self, root: Path, token: str):
        self.seen_passwords: list = []
        handler = type(
            "Handler",
            (GitHttpHandler,),
            {"project_root": root, "token": token, "seen_passwords": self.seen_passwords},
        )
        self._server = ThreadingHTTPServer(("127.0.0.1", 0), handler)
        self._thread = threading.Thread(target=self._server.serve_forever, daemon=True)
        self.base_url = f"http://127.0.0.1:{self._server.server_port}"

    def start(self):
        self._thread.start()

    def stop(self):
        self._server.shutdown()
        self._server.server_close()

    def url_for(self, name: str) -> str:
        return f"{self.base_url}/{name}"


@pytest.fixture
def http_server(tmp_path, monkeypatch):
    # Keep the user's git config (credential helpers, url rewrites) out of it
    monkeypatch.setenv("GIT_CONFIG_GLOBAL", os.devnull)
    monkeypatch.setenv("GIT_CONFIG_NOSYSTEM", "1")
    for var in ("http_proxy", "HTTP_PROXY", "https_proxy", "HTTPS_PROXY", "all_proxy", "ALL_PROXY"):
        monkeypatch.delenv(var, raising=False)

    root = tmp_path / "upstreams"
    root.mkdir(exist_ok=True)
    server = GitHttpServer(root, TOKEN)
    server.start()
    yield server
    server.stop()


def _config_text(local: Path) -> str:
    return (local / ".git" / "config").read_text()


class TestAuthenticatedHttp:

    def test_clone_and_update_leave_no_credential(
        self, http_server, upstream_factory, make_repo, repos_path, git
    ):
        upstream = upstream_factory("private-tool")
        url = http_server.url_for("private-tool")
        repo = make_repo("octocat/private-tool", clone_url=url)
        reconciler = MirrorReconciler(repos_path, TOKEN, git_timeout=60)
        local = mirror_path(repos_path, "octocat/private-tool")

        first = reconciler.reconcile(repo)
        assert first.action == "cloned", first.message
        assert TOKEN in http_server.seen_passwords
        assert git(local, "remote", "get-url", "origin") == url
        assert TOKEN not in _config_text(local)

        head = upstream.commit("over http")
        second = reconciler.reconcile(repo)
        assert second.action == "updated", second.message
        assert git(local, "rev-parse", "HEAD") == head
        assert git(local, "remote", "get-url", "origin") == url
        assert TOKEN not in _config_text(local)

        third = reconciler.reconcile(repo)
        assert third.action == "unchanged", third.message
        assert TOKEN not in _config_text(local)

    def test_rejected_token_is_clone_error(
        self, http_server, upstream_factory, make_repo, repos_path
    ):
        upstream_factory("locked")
        repo = make_repo("octocat/locked", clone_url=http_server.url_for("locked"))
        reconciler = MirrorReconciler(repos_path, "ghp_wrong", git_timeout=60)

        result = reconciler.reconcile(repo)

        assert result.action == "error"
        assert result.message.startswith("Clone failed:")
        assert "ghp_wrong" not in result.message

    def test_failed_fetch_still_restores_plain_url(
        self, http_server, upstream_factory, make_repo, repos_path, git
    ):
        upstream = upstream_factory("flaky")
        url = http_server.url_for("flaky")
        repo = make_repo("octocat/flaky", clone_url=url)
        local = mirror_path(repos_path, "octocat/flaky")

        assert MirrorReconciler(repos_path, TOKEN, git_timeout=60).reconcile(repo).action == "cloned"

        shutil.rmtree(upstream.path)
        result = MirrorReconciler(repos_path, TOKEN, git_timeout=60).reconcile(repo)

        assert result.action == "error"
        assert result.message.startswith("Update failed:")
        assert git(local, "remote", "get-url", "origin") == url
        assert TOKEN not in _config_text(local)
