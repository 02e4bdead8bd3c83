"""
CLI sync commands — run a sync pass, report status, list repositories.

Usage:
    syncreeper sync [--json-lines]
    syncreeper status [--json]
    syncreeper repos [--json]
    syncreeper platform
"""

from __future__ import annotations

import json as json_lib
from datetime import datetime, timezone

import click

from ..config.settings import SyncSettings
from ..mirror.errors import ConfigError, LockContention, ProviderError, SyncReeperError


def _load_settings() -> SyncSettings:
    try:
        return SyncSettings.from_env().require_valid()
    except ConfigError as e:
        for problem in str(e).split("; "):
            click.secho(f"Error: {problem}", fg="red", err=True)
        raise SystemExit(1)


def print_summary(report) -> None:
    """Print the per-action totals and every failed repository."""
    counts = report.counts()
    errors = report.errors()

    click.echo("\n=== Sync Summary ===")
    click.echo(f"Total repositories: {len(report.results)}")
    click.echo(f"  Cloned: {counts['cloned']}")
    click.echo(f"  Updated: {counts['updated']}")
    click.echo(f"  Unchanged: {counts['unchanged']}")
    click.echo(f"  Errors: {counts['error']}")

    if errors:
        click.secho("\nErrors:", fg="red")
        for result in errors:
            click.echo(f"  {result.repository}: {result.message}")


@click.command("sync")
@click.option("--json-lines", "jsonl", is_flag=True, help="Output JSON lines for streaming")
def sync(jsonl: bool) -> None:
    """Clone or update every non-archived repository."""
    from ..mirror.manager import run_sync

    def emit(data: dict):
        """Output a JSON line and flush immediately for streaming."""
        if jsonl:
            print(json_lib.dumps(data), flush=True)
            return
        status = data.get("status", "")
        if status == "running":
            click.echo(f"Syncing: {data['repository']}...")
        elif status == "error":
            click.secho(f"  {status}: {data.get('detail', '')}", fg="red")
        else:
            click.echo(f"  {status}: {data.get('detail', '')}")

    settings = _load_settings()

    if not jsonl:
        click.echo("SyncReeper - GitHub Repository Sync")
        click.echo(f"Started at: {datetime.now(timezone.utc).isoformat()}\n")
        click.echo(f"Repos path: {settings.repos_path}")
        click.echo(f"GitHub user: {settings.github_username}\n")

    try:
        report = run_sync(settings, progress=emit)
    except LockContention as e:
        if jsonl:
            emit({"step": "lock", "status": "failed", "error": str(e)})
        else:
            click.secho(f"Cannot acquire lock: {e}", fg="yellow", err=True)
        raise SystemExit(1)
    except ProviderError as e:
        if jsonl:
            emit({"step": "provider", "status": "failed", "error": str(e)})
        else:
            click.secho(f"Fatal error: {e}", fg="red", err=True)
        raise SystemExit(1)
    except SyncReeperError as e:
        if jsonl:
            emit({"step": "lock", "status": "failed", "error": str(e)})
        else:
            click.secho(f"Fatal error: {e}", fg="red", err=True)
        raise SystemExit(1)

    if jsonl:
        emit({
            "step": "done",
            "status": "done",
            "success": not report.has_errors,
            "counts": report.counts(),
        })
    else:
        if not report.results:
            click.echo("No repositories to sync")
        else:
            print_summary(report)
        click.echo(f"\nCompleted at: {report.finished_at_iso}")

    if report.has_errors:
        raise SystemExit(report.exit_code)


@click.command("status")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def status(as_json: bool) -> None:
    """Show lock state and the result of the last sync run."""
    from ..mirror.lock import is_locked
    from ..mirror.state import SyncStatus

    settings = SyncSettings.from_env()
    locked = is_locked(settings.lock_dir, stale_timeout=settings.stale_timeout)
    last = SyncStatus.load(settings.lock_dir)

    result = {
        "locked": locked,
        "settings": settings.to_display_dict(),
        "last_run": {
            "started_iso": last.last_run_started_iso,
            "finished_iso": last.last_run_finished_iso,
            "total": last.total,
            "counts": last.counts,
            "errors": last.errors,
        },
    }

    if as_json:
        click.echo(json_lib.dumps(result, indent=2, default=str))
        return

    click.echo("\n🔄 SyncReeper Status\n")
    click.echo(f"  Repos path: {settings.repos_path}")
    click.echo(f"  Sync lock:  {'held (sync in progress)' if locked else 'free'}")

    if not last.has_run:
        click.echo("  Last run:   never")
        click.echo()
        return

    click.echo(f"  Last run:   {last.last_run_started_iso}")
    if last.last_run_finished_iso:
        click.echo(f"  Finished:   {last.last_run_finished_iso}")
    click.echo(f"  Repos:      {last.total}")
    for action in ("cloned", "updated", "unchanged", "error"):
        count = last.counts.get(action, 0)
        icon = {"cloned": "📥", "updated": "⬆️", "unchanged": "✅", "error": "❌"}[action]
        click.echo(f"    {icon} {action}: {count}")
    for err in last.errors:
        click.secho(f"    ❌ {err['repository']}: {err['message'][:80]}", fg="red")
    click.echo()


@click.command("repos")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def repos(as_json: bool) -> None:
    """List the repositories that a sync would mirror."""
    from ..mirror.github_client import GitHubClient

    settings = _load_settings()
    client = GitHubClient(
        settings.github_token,
        settings.github_username,
        api_url=settings.github_api_url,
    )
    try:
        repositories = client.fetch_repositories()
    except ProviderError as e:
        click.secho(f"Fatal error: {e}", fg="red", err=True)
        raise SystemExit(1)

    if as_json:
        click.echo(json_lib.dumps([r.model_dump() for r in repositories], indent=2))
        return

    for repo in repositories:
        visibility = "private" if repo.is_private else "public"
        click.echo(f"  {repo.full_name}  ({visibility}, {repo.default_branch})")
    click.echo(f"\n{len(repositories)} repositories")


@click.command("platform")
def platform_cmd() -> None:
    """Show the platform profile (paths and service commands)."""
    from ..config.platform import get_profile

    try:
        profile = get_profile()
    except ValueError as e:
        click.secho(str(e), fg="red", err=True)
        raise SystemExit(1)

    for key, value in profile.to_dict().items():
        click.echo(f"  {key:20} {value}")
