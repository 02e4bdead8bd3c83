"""
Shared fixtures for sync engine tests.

Provides a Repository factory and helpers that build small local
"upstream" git repositories so the reconciler can run real git commands
against ``file://`` URLs without touching the network.
"""

from __future__ import annotations

import subprocess
from pathlib import Path

import pytest

from syncreeper.mirror.models import Repository

GIT_IDENTITY = [
    "-c", "user.name=SyncReeper Test",
    "-c", "user.email=test@example.com",
    "-c", "commit.gpgsign=false",
]


def run_git(cwd: Path, *args: str) -> str:
    """Run git in ``cwd`` and return stripped stdout; fail the test on error."""
    result = subprocess.run(
        ["git", *GIT_IDENTITY, *args],
        cwd=str(cwd),
        capture_output=True,
        text=True,
        timeout=60,
    )
    assert result.returncode == 0, f"git {' '.join(args)} failed: {result.stderr}"
    return result.stdout.strip()


class Upstream:
    """A local repository standing in for a GitHub origin."""

    def __init__(self, path: Path, branch: str = "main"):
        self.path = path
        self.branch = branch
        self._counter = 0

        path.mkdir(parents=True)
        run_git(path, "init", "-q")
        run_git(path, "symbolic-ref", "HEAD", f"refs/heads/{branch}")
        self.commit("initial commit")

    @property
    def url(self) -> str:
        return self.path.as_uri()

    def commit(self, message: str = "") -> str:
        self._counter += 1
        (self.path / f"file{self._counter}.txt").write_text(f"change {self._counter}\n")
        run_git(self.path, "add", "-A")
        run_git(self.path, "commit", "-q", "-m", message or f"change {self._counter}")
        return run_git(self.path, "rev-parse", "HEAD")

    def repository(self, full_name: str) -> Repository:
        return Repository(
            name=full_name.split("/", 1)[1],
            full_name=full_name,
            clone_url=self.url,
            ssh_url="",
            default_branch=self.branch,
        )


@pytest.fixture
def make_repo():
    """Factory for Repository objects with GitHub-like defaults."""

    def _make(full_name: str = "octocat/hello-world", **overrides) -> Repository:
        owner, name = full_name.split("/", 1)
        fields = {
            "name": name,
            "full_name": full_name,
            "clone_url": f"https://github.com/{full_name}.git",
            "ssh_url": f"git@github.com:{full_name}.git",
            "is_private": False,
            "is_archived": False,
            "default_branch": "main",
        }
        fields.update(overrides)
        return Repository(**fields)

    return _make


@pytest.fixture
def upstream_factory(tmp_path: Path):
    """Create named upstream repositories under tmp_path/upstreams."""

    def _make(name: str, branch: str = "main") -> Upstream:
        return Upstream(tmp_path / "upstreams" / name, branch=branch)

    return _make


@pytest.fixture
def repos_path(tmp_path: Path) -> Path:
    path = tmp_path / "repos"
    path.mkdir()
    return path


@pytest.fixture
def git():
    """The run_git helper, for inspecting mirrors from tests."""
    return run_git
