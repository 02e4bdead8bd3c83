"""
SyncReeper — CLI Entry Point

Usage:
    syncreeper sync
    syncreeper status
    syncreeper repos
    python -m syncreeper.main sync
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import click
from dotenv import load_dotenv

from .cli.sync import platform_cmd, repos, status, sync
from .logging_config import setup_logging


@click.group()
@click.option(
    "--env-file",
    default=".env",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Environment file to load before running (default: ./.env)",
)
@click.option("--log-level", default=None, help="DEBUG, INFO, WARNING, ERROR")
@click.option("--log-format", default=None, type=click.Choice(["text", "json"]))
def cli(
    env_file: Path,
    log_level: Optional[str],
    log_format: Optional[str],
) -> None:
    """SyncReeper — mirror your GitHub repositories to this machine."""
    # Existing environment variables win over the file
    if env_file.exists():
        load_dotenv(env_file, override=False)

    setup_logging(level=log_level, format_type=log_format)


cli.add_command(sync)
cli.add_command(status)
cli.add_command(repos)
cli.add_command(platform_cmd)


if __name__ == "__main__":
    cli()
