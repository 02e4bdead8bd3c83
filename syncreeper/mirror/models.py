"""
Mirror Models — Repositories, per-repository results, and run reports.

Every repository handed to the sync driver produces exactly one
SyncResult, regardless of success or failure.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

SyncAction = Literal["cloned", "updated", "unchanged", "error"]

SYNC_ACTIONS = ("cloned", "updated", "unchanged", "error")

DEFAULT_BRANCH_FALLBACK = "main"


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class Repository(BaseModel):
    """A non-archived repository visible to the configured token."""

    model_config = ConfigDict(frozen=True)

    name: str
    full_name: str
    clone_url: str
    ssh_url: str = ""
    is_private: bool = False
    is_archived: bool = False
    default_branch: str = DEFAULT_BRANCH_FALLBACK

    @property
    def owner(self) -> str:
        return self.full_name.split("/", 1)[0]

    @classmethod
    def from_api(cls, payload: Dict[str, Any]) -> "Repository":
        """Build a Repository from a GitHub REST ``/user/repos`` entry."""
        return cls(
            name=payload["name"],
            full_name=payload["full_name"],
            clone_url=payload["clone_url"],
            ssh_url=payload.get("ssh_url") or "",
            is_private=bool(payload.get("private", False)),
            is_archived=bool(payload.get("archived", False)),
            default_branch=payload.get("default_branch") or DEFAULT_BRANCH_FALLBACK,
        )


class SyncResult(BaseModel):
    """
    Outcome of reconciling one repository.

    ``action`` values are mutually exclusive. For ``error`` the message
    carries the failure cause (with credentials redacted).
    """

    repository: str
    action: SyncAction
    message: str
    commits_behind: Optional[int] = None
    ts_iso: str = Field(default_factory=_now_iso)

    @property
    def ok(self) -> bool:
        return self.action != "error"

    @classmethod
    def cloned(cls, repository: str, message: str = "Cloned successfully") -> "SyncResult":
        return cls(repository=repository, action="cloned", message=message)

    @classmethod
    def updated(cls, repository: str, commits_behind: int) -> "SyncResult":
        return cls(
            repository=repository,
            action="updated",
            message=f"Updated to latest (was {commits_behind} commits behind)",
            commits_behind=commits_behind,
        )

    @classmethod
    def unchanged(cls, repository: str) -> "SyncResult":
        return cls(
            repository=repository,
            action="unchanged",
            message="Already up to date",
            commits_behind=0,
        )

    @classmethod
    def error(cls, repository: str, message: str) -> "SyncResult":
        return cls(repository=repository, action="error", message=message)


class RunReport(BaseModel):
    """Aggregated results of one synchronization run."""

    results: List[SyncResult] = Field(default_factory=list)
    started_at_iso: str = Field(default_factory=_now_iso)
    finished_at_iso: Optional[str] = None

    def finish(self) -> None:
        self.finished_at_iso = _now_iso()

    def counts(self) -> Dict[str, int]:
        """Number of results per action, always including every action."""
        counts = {action: 0 for action in SYNC_ACTIONS}
        for result in self.results:
            counts[result.action] += 1
        return counts

    def errors(self) -> List[SyncResult]:
        return [r for r in self.results if r.action == "error"]

    @property
    def has_errors(self) -> bool:
        return any(r.action == "error" for r in self.results)

    @property
    def exit_code(self) -> int:
        return 1 if self.has_errors else 0
