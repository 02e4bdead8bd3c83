"""
Sync Lock — Prevent concurrent sync runs on one host.

Layout inside the lock directory:

    .syncreeper.lock        empty placeholder, created on first use
    .syncreeper.lock.lock   held marker, created with an exclusive create

The marker's mtime is its age. While a run holds the lock a heartbeat
thread keeps touching it; a marker older than the stale timeout belongs
to a crashed run and is reclaimed by the next acquirer.

Acquisition never waits: if another live run holds the lock the caller
gets ``acquired=False`` immediately.
"""

from __future__ import annotations

import logging
import os
import threading
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Optional

from filelock import SoftFileLock, Timeout

logger = logging.getLogger(__name__)

LOCK_FILE_NAME = ".syncreeper.lock"
DEFAULT_STALE_TIMEOUT = 10 * 60  # seconds
CONTENTION_MESSAGE = "Another sync operation is in progress"


def lock_file_path(lock_dir: Path) -> Path:
    return Path(lock_dir) / LOCK_FILE_NAME


def marker_path(lock_dir: Path) -> Path:
    return Path(lock_dir) / f"{LOCK_FILE_NAME}.lock"


def _marker_age(marker: Path) -> Optional[float]:
    """Seconds since the marker was last touched, or None if absent."""
    try:
        return time.time() - marker.stat().st_mtime
    except FileNotFoundError:
        return None


def _noop() -> None:
    return None


@dataclass
class LockResult:
    """Outcome of acquire_lock(). ``release()`` is always safe to call."""

    acquired: bool
    error: Optional[str] = None
    contended: bool = False
    _release: Callable[[], None] = field(default=_noop, repr=False)
    _released: bool = field(default=False, repr=False)

    def release(self) -> None:
        """Release the lock. Idempotent; never raises."""
        if self._released:
            return
        self._released = True
        try:
            self._release()
        except Exception as e:
            logger.warning(f"[lock] Failed to release lock: {e}")

    def __enter__(self) -> "LockResult":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.release()


class _Heartbeat:
    """Background thread that refreshes the marker's mtime."""

    def __init__(self, marker: Path, interval: float):
        self.marker = marker
        self.interval = interval
        self._stop = threading.Event()
        self._thread = threading.Thread(
            target=self._run, name="syncreeper-lock-heartbeat", daemon=True
        )

    def start(self) -> None:
        self._thread.start()

    def stop(self) -> None:
        self._stop.set()
        self._thread.join(timeout=5)

    def _run(self) -> None:
        while not self._stop.wait(timeout=self.interval):
            try:
                os.utime(self.marker, None)
            except OSError as e:
                logger.warning(f"[lock] Heartbeat could not touch {self.marker}: {e}")


def _reclaim_if_stale(marker: Path, stale_timeout: float) -> None:
    age = _marker_age(marker)
    if age is None or age <= stale_timeout:
        return

    logger.warning(
        f"[lock] Reclaiming stale lock {marker} "
        f"(age {age:.0f}s > {stale_timeout:.0f}s)"
    )
    # Re-check right before removing; a concurrent acquirer may have
    # already replaced it with a fresh marker.
    age = _marker_age(marker)
    if age is not None and age > stale_timeout:
        try:
            marker.unlink()
        except FileNotFoundError:
            pass


def acquire_lock(
    lock_dir: Path,
    stale_timeout: float = DEFAULT_STALE_TIMEOUT,
) -> LockResult:
    """
    Try once to take the sync lock in ``lock_dir``.

    Returns:
        LockResult(acquired=True, release=...) on success, otherwise
        LockResult(acquired=False, error=...). Never raises.
    """
    lock_dir = Path(lock_dir)
    marker = marker_path(lock_dir)

    try:
        lock_dir.mkdir(parents=True, exist_ok=True)
        placeholder = lock_file_path(lock_dir)
        if not placeholder.exists():
            placeholder.touch()

        _reclaim_if_stale(marker, stale_timeout)

        lock = SoftFileLock(str(marker), thread_local=False)
        lock.acquire(blocking=False)
    except Timeout:
        logger.info(f"[lock] {CONTENTION_MESSAGE} ({marker})")
        return LockResult(acquired=False, error=CONTENTION_MESSAGE, contended=True)
    except Exception as e:
        logger.error(f"[lock] Failed to acquire lock {marker}: {e}")
        return LockResult(acquired=False, error=f"Failed to acquire lock: {e}")

    heartbeat = _Heartbeat(marker, interval=max(stale_timeout / 2, 0.05))
    heartbeat.start()
    logger.debug(f"[lock] Acquired {marker} (pid {os.getpid()})")

    def _release() -> None:
        heartbeat.stop()
        lock.release(force=True)
        logger.debug(f"[lock] Released {marker}")

    return LockResult(acquired=True, _release=_release)


def is_locked(
    lock_dir: Path,
    stale_timeout: float = DEFAULT_STALE_TIMEOUT,
) -> bool:
    """Report whether a live run holds the lock. Does not modify anything."""
    age = _marker_age(marker_path(lock_dir))
    if age is None:
        return False
    return age <= stale_timeout
