"""
Sync Manager — Run one full synchronization pass.

This is the main entry point for sync operations:

    from syncreeper.config.settings import SyncSettings
    from syncreeper.mirror.manager import run_sync

    report = run_sync(SyncSettings.from_env())
    raise SystemExit(report.exit_code)

Repositories are processed one at a time, in the order GitHub returns
them. A failing repository never aborts the run.
"""

from __future__ import annotations

import logging
from typing import Callable, Dict, Iterable, List, Optional

from ..config.settings import SyncSettings
from .errors import LockContention, SyncReeperError
from .github_client import GitHubClient
from .lock import acquire_lock
from .models import Repository, RunReport, SyncResult
from .reconciler import MirrorReconciler, redact
from .state import SyncStatus

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[Dict], None]


def sync_all(
    repositories: Iterable[Repository],
    reconciler: MirrorReconciler,
    progress: Optional[ProgressCallback] = None,
) -> List[SyncResult]:
    """
    Reconcile every repository sequentially.

    Returns exactly one SyncResult per repository, in input order.
    """
    repositories = list(repositories)
    total = len(repositories)
    results: List[SyncResult] = []

    def emit(data: Dict) -> None:
        if progress is None:
            return
        try:
            progress(data)
        except Exception as e:
            logger.warning(f"[sync] Progress callback failed: {e}")

    for index, repo in enumerate(repositories, start=1):
        logger.info(f"[sync] Syncing: {repo.full_name}...")
        emit({
            "step": "repo",
            "status": "running",
            "repository": repo.full_name,
            "progress": f"{index}/{total}",
        })

        try:
            result = reconciler.reconcile(repo)
        except Exception as e:
            detail = redact(str(e), getattr(reconciler, "token", None))
            logger.error(
                f"[sync] Reconciler raised for {repo.full_name}: "
                f"{type(e).__name__}: {detail}"
            )
            result = SyncResult.error(repo.full_name, f"Sync failed: {detail}")

        results.append(result)

        log = logger.error if result.action == "error" else logger.info
        log(
            f"[sync]   {result.action}: {result.message}",
            extra={"repository": result.repository, "action": result.action},
        )
        emit({
            "step": "repo",
            "status": result.action,
            "repository": result.repository,
            "detail": result.message,
            "progress": f"{index}/{total}",
            "ok": result.ok,
        })

    return results


def run_sync(
    settings: SyncSettings,
    progress: Optional[ProgressCallback] = None,
    client: Optional[GitHubClient] = None,
    reconciler: Optional[MirrorReconciler] = None,
) -> RunReport:
    """
    Acquire the lock, list repositories, and sync them all.

    Raises:
        LockContention: another run holds the lock.
        SyncReeperError: the lock could not be taken for another reason
            (e.g. the lock directory is not writable).
        ProviderError: listing repositories failed.
    """
    lock = acquire_lock(settings.lock_dir, stale_timeout=settings.stale_timeout)
    if not lock.acquired:
        if lock.contended:
            raise LockContention(lock.error)
        raise SyncReeperError(lock.error or "Failed to acquire lock")

    with lock:
        report = RunReport()
        logger.info(f"[sync] Repos path: {settings.repos_path}")

        client = client or GitHubClient(
            settings.github_token,
            settings.github_username,
            api_url=settings.github_api_url,
        )
        repositories = client.fetch_repositories()

        if not repositories:
            logger.info("[sync] No repositories to sync")
        else:
            logger.info(f"[sync] Syncing {len(repositories)} repositories...")
            reconciler = reconciler or MirrorReconciler(
                settings.repos_path,
                settings.github_token,
                git_timeout=settings.git_timeout,
            )
            report.results = sync_all(repositories, reconciler, progress)

        report.finish()

        try:
            SyncStatus.from_report(report).save(settings.lock_dir)
        except OSError as e:
            logger.warning(f"[sync] Could not save sync status: {e}")

        counts = report.counts()
        logger.info(
            f"[sync] Done: {counts['cloned']} cloned, {counts['updated']} updated, "
            f"{counts['unchanged']} unchanged, {counts['error']} errors"
        )
        return report
