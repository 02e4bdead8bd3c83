"""
Mirror Errors — Exceptions that may cross the sync engine boundary.

Per-repository failures are never raised; they are returned as
``SyncResult.error(...)``. Only run-level problems are exceptions.
"""

from __future__ import annotations

from typing import Optional


class SyncReeperError(Exception):
    """Base class for all SyncReeper errors."""


class ProviderError(SyncReeperError):
    """Listing repositories from the hosting provider failed."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class LockContention(SyncReeperError):
    """Another sync run holds the lock."""


class ConfigError(SyncReeperError):
    """Required configuration is missing or invalid."""
