"""
Sync Status — Persist a summary of the last sync run.

Stored next to the lock file as ``.syncreeper-status.json`` so that
``syncreeper status`` can report on the last run without re-running it.
"""

from __future__ import annotations

import json
import logging
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

from .models import RunReport

logger = logging.getLogger(__name__)

STATUS_FILE_NAME = ".syncreeper-status.json"


@dataclass
class SyncStatus:
    """Summary of the most recent run."""

    last_run_started_iso: Optional[str] = None
    last_run_finished_iso: Optional[str] = None
    total: int = 0
    counts: Dict[str, int] = field(default_factory=dict)
    errors: List[Dict[str, str]] = field(default_factory=list)

    @property
    def has_run(self) -> bool:
        return self.last_run_started_iso is not None

    @classmethod
    def from_report(cls, report: RunReport) -> "SyncStatus":
        return cls(
            last_run_started_iso=report.started_at_iso,
            last_run_finished_iso=report.finished_at_iso,
            total=len(report.results),
            counts=report.counts(),
            errors=[
                {"repository": r.repository, "message": r.message}
                for r in report.errors()
            ],
        )

    @classmethod
    def load(cls, lock_dir: Path) -> "SyncStatus":
        """Load the status file; a missing or corrupt file yields an empty status."""
        path = cls.path_for(lock_dir)
        if not path.exists():
            return cls()

        try:
            with open(path, encoding="utf-8") as f:
                data = json.load(f)
            return cls(
                last_run_started_iso=data.get("last_run_started_iso"),
                last_run_finished_iso=data.get("last_run_finished_iso"),
                total=int(data.get("total", 0)),
                counts=dict(data.get("counts", {})),
                errors=list(data.get("errors", [])),
            )
        except Exception as e:
            logger.error(f"Failed to load sync status: {e}")
            return cls()

    def save(self, lock_dir: Path) -> None:
        """Write atomically (temp file, then rename)."""
        path = self.path_for(lock_dir)
        path.parent.mkdir(parents=True, exist_ok=True)

        temp_path = path.with_suffix(".tmp")
        with open(temp_path, "w", encoding="utf-8") as f:
            json.dump(asdict(self), f, indent=4)
            f.write("\n")
        temp_path.replace(path)

    @staticmethod
    def path_for(lock_dir: Path) -> Path:
        return Path(lock_dir) / STATUS_FILE_NAME
