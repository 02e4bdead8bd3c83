"""
Sync Settings — Parse SyncReeper environment variables.

Minimal required config:
    GITHUB_TOKEN=ghp_xxxxx
    GITHUB_USERNAME=octocat

Optional:
    REPOS_PATH=/srv/repos              (default depends on the platform)
    SYNCREEPER_LOCK_DIR=/srv/repos     (default: REPOS_PATH)
    SYNCREEPER_STALE_TIMEOUT=600       (seconds)
    SYNCREEPER_GIT_TIMEOUT=300         (seconds, per git command)
    GITHUB_API_URL=https://api.github.com
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import List, Mapping, Optional

from ..mirror.errors import ConfigError
from ..mirror.github_client import DEFAULT_API_URL
from ..mirror.lock import DEFAULT_STALE_TIMEOUT
from ..mirror.reconciler import DEFAULT_GIT_TIMEOUT
from .platform import get_profile

logger = logging.getLogger(__name__)

FALLBACK_REPOS_PATH = Path("/srv/repos")


def _default_repos_path() -> Path:
    try:
        return get_profile().default_repos_path
    except ValueError:
        return FALLBACK_REPOS_PATH


def _int_env(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning(f"{name}={raw!r} is not an integer, using {default}")
        return default


@dataclass
class SyncSettings:
    """Everything one sync run needs."""

    github_token: str = ""
    github_username: str = ""
    repos_path: Path = FALLBACK_REPOS_PATH
    lock_dir: Optional[Path] = None
    stale_timeout: int = DEFAULT_STALE_TIMEOUT
    git_timeout: int = DEFAULT_GIT_TIMEOUT
    github_api_url: str = DEFAULT_API_URL

    def __post_init__(self) -> None:
        self.repos_path = Path(self.repos_path)
        self.lock_dir = Path(self.lock_dir) if self.lock_dir else self.repos_path

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "SyncSettings":
        """Parse settings from environment variables."""
        env = os.environ if env is None else env

        repos_path = env.get("REPOS_PATH", "").strip()
        lock_dir = env.get("SYNCREEPER_LOCK_DIR", "").strip()

        return cls(
            github_token=env.get("GITHUB_TOKEN", "").strip(),
            github_username=env.get("GITHUB_USERNAME", "").strip(),
            repos_path=Path(repos_path) if repos_path else _default_repos_path(),
            lock_dir=Path(lock_dir) if lock_dir else None,
            stale_timeout=_int_env(env, "SYNCREEPER_STALE_TIMEOUT", DEFAULT_STALE_TIMEOUT),
            git_timeout=_int_env(env, "SYNCREEPER_GIT_TIMEOUT", DEFAULT_GIT_TIMEOUT),
            github_api_url=env.get("GITHUB_API_URL", "").strip() or DEFAULT_API_URL,
        )

    def validate(self) -> List[str]:
        """Return a list of problems; empty when the settings are usable."""
        problems = []
        if not self.github_token:
            problems.append("GITHUB_TOKEN environment variable is required")
        if not self.github_username:
            problems.append("GITHUB_USERNAME environment variable is required")
        if self.stale_timeout <= 0:
            problems.append("SYNCREEPER_STALE_TIMEOUT must be a positive number of seconds")
        if self.git_timeout <= 0:
            problems.append("SYNCREEPER_GIT_TIMEOUT must be a positive number of seconds")
        return problems

    def require_valid(self) -> "SyncSettings":
        problems = self.validate()
        if problems:
            raise ConfigError("; ".join(problems))
        return self

    def to_display_dict(self) -> dict:
        """Settings with the token masked, for status output."""
        return {
            "github_username": self.github_username,
            "github_token": "set" if self.github_token else "missing",
            "repos_path": str(self.repos_path),
            "lock_dir": str(self.lock_dir),
            "stale_timeout": self.stale_timeout,
            "git_timeout": self.git_timeout,
            "github_api_url": self.github_api_url,
        }
