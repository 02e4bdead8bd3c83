"""
Platform Profiles — Per-OS paths and service commands.

The rest of the code never branches on the platform: it looks up a
PlatformProfile once and uses its fields.

## Usage

    from syncreeper.config.platform import get_profile

    profile = get_profile()
    print(profile.default_repos_path)
"""

from __future__ import annotations

import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Tuple

SERVICE_USER_LINUX = "syncreeper"


@dataclass(frozen=True)
class PlatformProfile:
    """Paths and commands for one supported platform."""

    name: str
    display_name: str
    default_repos_path: Path
    log_location: str
    service_name: str
    start_command: Tuple[str, ...]
    log_command: Tuple[str, ...]
    privilege_prefix: Tuple[str, ...] = ()

    def as_service_user(self, command: Tuple[str, ...]) -> List[str]:
        """Prefix ``command`` with the privilege-escalation prefix."""
        return list(self.privilege_prefix) + list(command)

    def to_dict(self) -> Dict[str, str]:
        return {
            "name": self.name,
            "display_name": self.display_name,
            "default_repos_path": str(self.default_repos_path),
            "log_location": self.log_location,
            "service_name": self.service_name,
            "start_command": " ".join(self.as_service_user(self.start_command)),
            "log_command": " ".join(self.as_service_user(self.log_command)),
        }


def _linux(service_user: str) -> PlatformProfile:
    return PlatformProfile(
        name="linux",
        display_name="Linux",
        default_repos_path=Path("/srv/repos"),
        log_location="journalctl --user -u syncreeper-sync",
        service_name="syncreeper-sync.service",
        start_command=("systemctl", "--user", "start", "syncreeper-sync.service"),
        log_command=("journalctl", "--user", "-u", "syncreeper-sync", "-n", "50", "--no-pager"),
        privilege_prefix=("sudo", "-u", service_user),
    )


def _darwin(home: Path) -> PlatformProfile:
    log_file = home / "Library" / "Logs" / "SyncReeper" / "sync.log"
    return PlatformProfile(
        name="darwin",
        display_name="macOS",
        default_repos_path=home / "SyncReeper" / "repos",
        log_location=str(log_file),
        service_name="com.syncreeper.sync",
        start_command=("launchctl", "start", "com.syncreeper.sync"),
        log_command=("tail", "-50", str(log_file)),
    )


SUPPORTED_PLATFORMS = ("linux", "darwin")


def detect_platform() -> str:
    if sys.platform.startswith("linux"):
        return "linux"
    return sys.platform


def get_profile(
    platform: Optional[str] = None,
    service_user: str = SERVICE_USER_LINUX,
    home: Optional[Path] = None,
) -> PlatformProfile:
    """
    Look up the profile for ``platform`` (default: the running platform).

    Raises:
        ValueError: the platform is not supported.
    """
    platform = platform or detect_platform()
    if platform == "linux":
        return _linux(service_user)
    if platform == "darwin":
        return _darwin(home or Path.home())
    raise ValueError(
        f"Unsupported platform: {platform} "
        f"(supported: {', '.join(SUPPORTED_PLATFORMS)})"
    )
