"""PollCycleRunner: one list → fetch → notify → persist cycle."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from datetime import datetime, timezone

import structlog

from commitwatch.core.github import format_github_timestamp, truncate_to_second
from commitwatch.engines.commit_poller.fetcher import BranchCommitFetcher
from commitwatch.engines.commit_poller.github_client import GitHubClient
from commitwatch.engines.commit_poller.lister import DEFAULT_PAGE_SIZE, list_org_repos
from commitwatch.engines.commit_poller.models import CycleResult, RepoCommits
from commitwatch.engines.notification.base import Notifier
from commitwatch.store.base import CycleOutputStore, WatermarkStore

log = structlog.get_logger("commitwatch.engine")

_DEFAULT_MAX_CONCURRENCY = 8


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PollCycleRunner:
    """Orchestration layer: lister + fetcher → notifier, then the stores.

    The watermark is read once at the start of a cycle and written once at
    the end. Its new value is the wall-clock instant captured before the
    listing began, so commits pushed while the cycle runs are picked up by
    the next one.
    """

    def __init__(
        self,
        client: GitHubClient,
        notifier: Notifier,
        org: str,
        watermark_store: WatermarkStore,
        output_store: CycleOutputStore,
        *,
        page_size: int = DEFAULT_PAGE_SIZE,
        max_concurrency: int = _DEFAULT_MAX_CONCURRENCY,
        commit_max_pages: int = 10,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._client = client
        self._notifier = notifier
        self._org = org
        self._watermarks = watermark_store
        self._outputs = output_store
        self._page_size = page_size
        self._max_concurrency = max_concurrency
        self._commit_max_pages = commit_max_pages
        self._clock = clock

    async def run_cycle(self) -> CycleResult:
        """Run one full cycle. Listing and store errors propagate to the caller."""
        started_at = truncate_to_second(self._clock())
        stored = self._watermarks.read()
        # No stored watermark: start from now rather than replaying history.
        since = stored if stored is not None else started_at

        log.info(
            "poll.cycle_started",
            org=self._org,
            since=format_github_timestamp(since),
        )

        repos = await list_org_repos(self._client, self._org, since, page_size=self._page_size)
        log.info("poll.repos_listed", org=self._org, repos=[r.name for r in repos])

        fetcher = BranchCommitFetcher(
            self._client,
            self._notifier,
            since,
            semaphore=asyncio.Semaphore(self._max_concurrency),
            commit_max_pages=self._commit_max_pages,
        )
        fetched = await asyncio.gather(*(fetcher.fetch_repo(repo) for repo in repos))

        entries: list[RepoCommits] = []
        empty_repos: list[str] = []
        for repo, repo_commits in zip(repos, fetched, strict=True):
            if repo_commits is None:
                empty_repos.append(repo.name)
            else:
                entries.append(repo_commits)

        if empty_repos:
            log.info("poll.empty_repos", repos=empty_repos)

        result = CycleResult(
            started_at=started_at,
            since=since,
            repos_listed=len(repos),
            entries=entries,
            empty_repos=empty_repos,
            notifications_sent=fetcher.notifications_sent,
            errors=list(fetcher.errors),
        )

        if repos:
            self._outputs.write(result.to_json())

        self._advance_watermark(stored, started_at)

        log.info(
            "poll.cycle_done",
            org=self._org,
            repos=result.repos_listed,
            commits=result.commit_count,
            notifications=result.notifications_sent,
            errors=len(result.errors),
        )
        return result

    def _advance_watermark(self, stored: datetime | None, started_at: datetime) -> None:
        if stored is not None and started_at < stored:
            log.warning(
                "poll.clock_behind_watermark",
                stored=format_github_timestamp(stored),
                started_at=format_github_timestamp(started_at),
            )
            return
        self._watermarks.write(started_at)
