"""Branch and commit fetching for one poll cycle: no persistence."""

from __future__ import annotations

import asyncio
from datetime import datetime

import structlog

from commitwatch.core.github import format_github_timestamp
from commitwatch.engines.commit_poller.github_client import GitHubClient
from commitwatch.engines.commit_poller.models import (
    Branch,
    BranchCommits,
    CommitRecord,
    Repository,
    RepoCommits,
)
from commitwatch.engines.notification.base import Notifier

log = structlog.get_logger("commitwatch.engine")

_DEFAULT_COMMIT_MAX_PAGES = 10


async def list_branches(client: GitHubClient, repo: Repository) -> list[Branch]:
    """GET /repos/{owner}/{repo}/branches: every branch, all pages."""
    return [
        Branch.from_api(item)
        async for item in client.get_paginated(
            f"/repos/{repo.owner}/{repo.name}/branches", max_pages=100
        )
    ]


async def list_commits(
    client: GitHubClient,
    repo: Repository,
    branch: str,
    since: datetime,
    *,
    max_pages: int = _DEFAULT_COMMIT_MAX_PAGES,
) -> list[CommitRecord]:
    """GET /repos/{owner}/{repo}/commits?sha={branch}&since={since}.

    GitHub applies the ``since`` filter (inclusive) server side; the result
    is returned as-is, in GitHub's order.
    """
    params = {"sha": branch, "since": format_github_timestamp(since)}
    return [
        CommitRecord.from_api(item)
        async for item in client.get_paginated(
            f"/repos/{repo.owner}/{repo.name}/commits", params, max_pages=max_pages
        )
    ]


class BranchCommitFetcher:
    """Fetch branches and new commits per repository, notifying as batches arrive.

    One instance serves one cycle. ``semaphore`` bounds the number of GitHub
    requests in flight across every repository and branch of the cycle;
    it is never held while a notification is being delivered.
    """

    def __init__(
        self,
        client: GitHubClient,
        notifier: Notifier,
        since: datetime,
        *,
        semaphore: asyncio.Semaphore,
        commit_max_pages: int = _DEFAULT_COMMIT_MAX_PAGES,
    ) -> None:
        self._client = client
        self._notifier = notifier
        self._since = since
        self._sem = semaphore
        self._commit_max_pages = commit_max_pages
        self.errors: list[str] = []
        self.notifications_sent = 0

    async def fetch_repo(self, repo: Repository) -> RepoCommits | None:
        """Return the repo's branch commits, or None when it has no branches."""
        try:
            async with self._sem:
                branches = await list_branches(self._client, repo)
        except Exception as exc:
            log.error("fetch.branches_failed", repo=repo.full_name, error=str(exc))
            self.errors.append(f"branches {repo.full_name}: {type(exc).__name__}: {exc}")
            branches = []

        log.debug("fetch.branches", repo=repo.full_name, branches=[b.name for b in branches])
        if not branches:
            log.info("fetch.repo_empty", repo=repo.full_name)
            return None

        branch_commits = await asyncio.gather(
            *(self._fetch_branch(repo, branch) for branch in branches)
        )
        return RepoCommits(repo=repo.name, branch_commits=list(branch_commits))

    async def _fetch_branch(self, repo: Repository, branch: Branch) -> BranchCommits:
        try:
            async with self._sem:
                commits = await list_commits(
                    self._client,
                    repo,
                    branch.name,
                    self._since,
                    max_pages=self._commit_max_pages,
                )
        except Exception as exc:
            log.error(
                "fetch.commits_failed",
                repo=repo.full_name,
                branch=branch.name,
                error=str(exc),
            )
            self.errors.append(
                f"commits {repo.full_name}@{branch.name}: {type(exc).__name__}: {exc}"
            )
            return BranchCommits(branch=branch.name)

        if not commits:
            log.debug("fetch.no_commits", repo=repo.full_name, branch=branch.name)
            return BranchCommits(branch=branch.name)

        log.info(
            "fetch.commits",
            repo=repo.full_name,
            branch=branch.name,
            count=len(commits),
        )
        if await self._notifier.send(repo.name, branch.name, commits):
            self.notifications_sent += 1
        return BranchCommits(branch=branch.name, commits=commits)
