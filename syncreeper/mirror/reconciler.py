"""
Mirror Reconciler — Clone or fast-forward one local mirror.

For each repository:
    - no ``.git`` at the target path → shallow, single-branch clone
    - ``.git`` present → fetch the default branch at depth 1 and
      hard-reset to it when the local HEAD is behind

The token only lives in ``origin`` for the duration of a network call.
At rest the mirror's remote is always the plain clone URL.

reconcile() never raises: every failure becomes SyncResult.error().
"""

from __future__ import annotations

import logging
import os
import re
import subprocess
import threading
from pathlib import Path
from typing import Optional
from urllib.parse import quote, urlsplit, urlunsplit

from .models import Repository, SyncResult

logger = logging.getLogger(__name__)

DEFAULT_GIT_TIMEOUT = 300
LOCAL_GIT_TIMEOUT = 30

TOKEN_USER = "x-access-token"

_USERINFO_RE = re.compile(r"(https?://)[^/@\s]+@")


class GitCommandError(Exception):
    """A git subprocess exited non-zero or timed out."""


def authenticated_url(clone_url: str, token: str) -> str:
    """
    Embed the token in the URL's user-info component.

    Only http(s) URLs carry credentials; ssh and file URLs are returned
    unchanged.
    """
    parts = urlsplit(clone_url)
    if parts.scheme not in ("http", "https") or not token:
        return clone_url

    host = parts.hostname or ""
    if parts.port:
        host = f"{host}:{parts.port}"
    netloc = f"{TOKEN_USER}:{quote(token, safe='')}@{host}"
    return urlunsplit((parts.scheme, netloc, parts.path, parts.query, parts.fragment))


def redact(text: str, token: Optional[str] = None) -> str:
    """Remove the token and any URL user-info from git output."""
    if token:
        text = text.replace(quote(token, safe=""), "***").replace(token, "***")
    return _USERINFO_RE.sub(r"\1***@", text)


def mirror_path(repos_path: Path, full_name: str) -> Path:
    """Local path of a mirror: ``<repos_path>/<owner>/<repo>``."""
    return Path(repos_path) / full_name


def _git_env() -> dict:
    env = dict(os.environ)
    # Never block on a credential prompt for unreachable/private URLs
    env["GIT_TERMINAL_PROMPT"] = "0"
    return env


class MirrorReconciler:
    """
    Reconciles local mirrors against their GitHub origin.

    A threading.Lock keeps at most one git subprocess in flight per
    instance.
    """

    def __init__(
        self,
        repos_path: Path,
        token: str,
        git_timeout: int = DEFAULT_GIT_TIMEOUT,
    ):
        self.repos_path = Path(repos_path)
        self.token = token
        self.git_timeout = git_timeout
        self._lock = threading.Lock()

    # ─── Public ─────────────────────────────────────────────

    def reconcile(self, repo: Repository) -> SyncResult:
        """Clone the repository if absent, otherwise update it."""
        local_path = mirror_path(self.repos_path, repo.full_name)

        try:
            if (local_path / ".git").exists():
                return self._update(repo, local_path)
            return self._clone(repo, local_path)
        except Exception as e:
            # No traceback: exception text may carry the authenticated URL
            detail = self._clean(str(e))
            logger.error(
                f"[mirror] Unexpected failure for {repo.full_name}: "
                f"{type(e).__name__}: {detail}"
            )
            return SyncResult.error(repo.full_name, f"Sync failed: {detail}")

    # ─── Git helpers ────────────────────────────────────────

    def _git(
        self,
        *args: str,
        cwd: Path,
        timeout: Optional[int] = None,
    ) -> str:
        """Run a git command and return stripped stdout; raise on failure."""
        cmd = ["git"] + list(args)
        with self._lock:
            try:
                result = subprocess.run(
                    cmd,
                    cwd=str(cwd),
                    capture_output=True,
                    text=True,
                    timeout=timeout or self.git_timeout,
                    env=_git_env(),
                )
            except subprocess.TimeoutExpired as e:
                raise GitCommandError(
                    f"git {args[0]} timed out after {timeout or self.git_timeout}s"
                ) from e
            except OSError as e:
                raise GitCommandError(f"git {args[0]} could not be started: {e}") from e

        if result.returncode != 0:
            detail = result.stderr.strip() or result.stdout.strip() or f"exit {result.returncode}"
            raise GitCommandError(self._clean(detail))
        return result.stdout.strip()

    def _set_origin(self, local_path: Path, url: str) -> None:
        self._git("remote", "set-url", "origin", url, cwd=local_path, timeout=LOCAL_GIT_TIMEOUT)

    def _clean(self, text: str) -> str:
        return redact(text, self.token)

    # ─── Clone ──────────────────────────────────────────────

    def _clone(self, repo: Repository, local_path: Path) -> SyncResult:
        parent_dir = local_path.parent
        parent_dir.mkdir(parents=True, exist_ok=True)

        auth_url = authenticated_url(repo.clone_url, self.token)
        logger.debug(f"[mirror] Cloning {repo.full_name} into {local_path}")

        try:
            self._git(
                "clone", "--depth=1", "--single-branch", auth_url, str(local_path),
                cwd=parent_dir,
            )
        except GitCommandError as e:
            return SyncResult.error(repo.full_name, f"Clone failed: {e}")

        # The clone succeeded, so the token is now in .git/config
        try:
            self._set_origin(local_path, repo.clone_url)
        except GitCommandError as e:
            logger.error(
                f"[mirror] {repo.full_name}: cloned but could not restore "
                f"the unauthenticated remote URL: {e}"
            )
            return SyncResult.error(
                repo.full_name,
                f"Cloned, but failed to restore unauthenticated remote URL: {e}",
            )

        return SyncResult.cloned(repo.full_name)

    # ─── Update ─────────────────────────────────────────────

    def _update(self, repo: Repository, local_path: Path) -> SyncResult:
        branch = repo.default_branch
        remote_ref = f"origin/{branch}"

        try:
            self._set_origin(local_path, authenticated_url(repo.clone_url, self.token))
            self._git(
                "fetch", "--depth=1", "origin",
                f"+refs/heads/{branch}:refs/remotes/{remote_ref}",
                cwd=local_path,
            )
            behind = int(
                self._git(
                    "rev-list", "--count", f"HEAD..{remote_ref}",
                    cwd=local_path, timeout=LOCAL_GIT_TIMEOUT,
                )
                or 0
            )
            if behind > 0:
                self._git("reset", "--hard", remote_ref, cwd=local_path, timeout=LOCAL_GIT_TIMEOUT)
        except (GitCommandError, ValueError) as e:
            return self._update_failed(repo, local_path, e)

        try:
            self._set_origin(local_path, repo.clone_url)
        except GitCommandError as e:
            logger.error(
                f"[mirror] {repo.full_name}: could not restore the "
                f"unauthenticated remote URL: {e}"
            )
            return SyncResult.error(
                repo.full_name,
                f"Failed to restore unauthenticated remote URL: {e}",
            )

        if behind > 0:
            return SyncResult.updated(repo.full_name, behind)
        return SyncResult.unchanged(repo.full_name)

    def _update_failed(
        self,
        repo: Repository,
        local_path: Path,
        cause: Exception,
    ) -> SyncResult:
        """Best-effort URL restore that never masks the original cause."""
        message = f"Update failed: {cause}"
        try:
            self._set_origin(local_path, repo.clone_url)
        except GitCommandError as restore_error:
            logger.error(
                f"[mirror] {repo.full_name}: could not restore the "
                f"unauthenticated remote URL after failure: {restore_error}"
            )
            message += " (remote URL could not be restored; credential may remain in .git/config)"
        return SyncResult.error(repo.full_name, message)


def reconcile(repo: Repository, repos_path: Path, token: str) -> SyncResult:
    """Reconcile a single repository with a throwaway reconciler."""
    return MirrorReconciler(repos_path, token).reconcile(repo)
