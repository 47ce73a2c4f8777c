"""Scheduler: runs poll cycles on a fixed timer with an overlap guard."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable

import structlog

from commitwatch.core.config import Settings
from commitwatch.engines.commit_poller.github_client import GitHubClient
from commitwatch.engines.commit_poller.models import CycleResult
from commitwatch.engines.commit_poller.runner import PollCycleRunner
from commitwatch.engines.notification.base import Notifier
from commitwatch.engines.notification.webhook import DiscordNotifier
from commitwatch.store.local import JsonCycleOutputStore, JsonWatermarkStore

logger = structlog.get_logger(__name__)


class PollLoop:
    """Idle/Running state machine driven by a fixed-interval timer.

    The first cycle is awaited directly; the timer starts once it settles.
    Each tick starts a cycle in its own task, so the timer keeps its own
    schedule no matter how long a cycle takes. A tick that lands while a
    cycle is Running is skipped.
    """

    def __init__(
        self,
        run_fn: Callable[[], Awaitable[CycleResult]],
        interval: float,
    ) -> None:
        self.run_fn = run_fn
        self.interval = interval
        self._running = False
        self._cycle_tasks: set[asyncio.Task[None]] = set()
        self._timer: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._running

    async def run_forever(self) -> None:
        """Run the first cycle, then tick every ``interval`` seconds until stopped."""
        logger.info("poll.initial_cycle")
        if not self._running:
            self._running = True
            await self._run_cycle()

        self._timer = asyncio.current_task()
        while True:
            await asyncio.sleep(self.interval)
            self.tick()

    def tick(self) -> asyncio.Task[None] | None:
        """Start a cycle unless one is Running. Returns the cycle task, if any."""
        if self._running:
            logger.info("poll.skipped", reason="previous cycle still running")
            return None

        self._running = True
        task = asyncio.create_task(self._run_cycle(), name="poll-cycle")
        self._cycle_tasks.add(task)
        task.add_done_callback(self._cycle_tasks.discard)
        return task

    async def _run_cycle(self) -> None:
        try:
            logger.info("poll.fetching")
            await self.run_fn()
            logger.info("poll.completed")
        except Exception:
            logger.exception("poll.cycle_failed")
        finally:
            self._running = False

    async def stop(self) -> None:
        """Stop the timer and wait for an in-flight cycle to settle (it is not cancelled)."""
        if self._timer is not None and self._timer is not asyncio.current_task():
            self._timer.cancel()
            await asyncio.gather(self._timer, return_exceptions=True)
        self._timer = None
        if self._cycle_tasks:
            await asyncio.gather(*self._cycle_tasks, return_exceptions=True)
        logger.info("poll.stopped")


def create_runner(
    settings: Settings,
    client: GitHubClient,
    notifier: Notifier,
) -> PollCycleRunner:
    """Wire a PollCycleRunner with the local JSON stores named in *settings*."""
    return PollCycleRunner(
        client,
        notifier,
        settings.org,
        JsonWatermarkStore(settings.state_file),
        JsonCycleOutputStore(settings.output_file),
        page_size=settings.page_size,
        max_concurrency=settings.max_concurrency,
        commit_max_pages=settings.commit_max_pages,
    )


def create_clients(settings: Settings) -> tuple[GitHubClient, DiscordNotifier]:
    """Build the GitHub client and the Discord notifier. Callers close both."""
    client = GitHubClient(settings.github_token)
    notifier = DiscordNotifier(
        settings.discord_webhook,
        zone=settings.display_zone,
        zone_label=settings.display_tz_label,
    )
    return client, notifier
