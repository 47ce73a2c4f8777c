"""CLI entry point: commitwatch.

Subcommands:
    commitwatch run [--config config.json] [--once]   # Poll forever (or one cycle)
    commitwatch init-state [--state-file data.json]   # Seed the watermark with "now"
"""

from __future__ import annotations

import asyncio
import sys
from datetime import datetime, timezone

import click
import structlog

from commitwatch.core.config import load_settings
from commitwatch.core.github import format_github_timestamp, truncate_to_second
from commitwatch.core.logging import setup_logging
from commitwatch.engines.commit_poller.models import CycleResult
from commitwatch.exceptions import CommitWatchError
from commitwatch.scheduler import PollLoop, create_clients, create_runner
from commitwatch.store.local import JsonWatermarkStore

log = structlog.get_logger("commitwatch.cli")


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Verbose logging")
def main(verbose: bool) -> None:
    """commitwatch: post new GitHub organization commits to Discord."""
    setup_logging("DEBUG" if verbose else None)


async def _poll(config_path: str | None, once: bool) -> CycleResult | None:
    settings = load_settings(config_path)
    client, notifier = create_clients(settings)
    async with client, notifier:
        runner = create_runner(settings, client, notifier)
        if once:
            return await runner.run_cycle()

        loop = PollLoop(runner.run_cycle, settings.poll_interval)
        log.info("commitwatch.started", org=settings.org, interval=settings.poll_interval)
        try:
            await loop.run_forever()
        finally:
            await loop.stop()
    return None


@main.command("run")
@click.option(
    "-c",
    "--config",
    "config_path",
    default=None,
    help="Path to config.json (default: $COMMITWATCH_CONFIG or ./config.json)",
)
@click.option("--once", is_flag=True, help="Run a single cycle and exit")
def run(config_path: str | None, once: bool) -> None:
    """Poll the organization for new commits."""
    try:
        result = asyncio.run(_poll(config_path, once))
    except CommitWatchError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    except KeyboardInterrupt:
        return

    if result is not None:
        click.echo(f"Repositories listed: {result.repos_listed}")
        click.echo(f"New commits: {result.commit_count}")
        click.echo(f"Notifications sent: {result.notifications_sent}")
        if result.empty_repos:
            click.echo(f"Empty repositories: {', '.join(result.empty_repos)}")
        for err in result.errors:
            click.echo(f"  failed: {err}", err=True)


@main.command("init-state")
@click.option(
    "--state-file",
    default="data.json",
    envvar="COMMITWATCH_STATE_FILE",
    help="Watermark file to create (default: $COMMITWATCH_STATE_FILE or ./data.json)",
)
@click.option("--force", is_flag=True, help="Overwrite an existing watermark")
def init_state(state_file: str, force: bool) -> None:
    """Write a watermark set to the current time."""
    store = JsonWatermarkStore(state_file)
    try:
        existing = store.read()
    except CommitWatchError as e:
        if not force:
            click.echo(f"Error: {e}", err=True)
            sys.exit(1)
        # Unreadable file: start it over.
        store.path.unlink()
        existing = None

    if existing is not None and not force:
        click.echo(
            f"Error: {state_file} already holds {format_github_timestamp(existing)}; "
            "use --force to overwrite",
            err=True,
        )
        sys.exit(1)

    now = truncate_to_second(datetime.now(timezone.utc))
    store.write(now)
    click.echo(f"Watermark set to {format_github_timestamp(now)} in {state_file}")
