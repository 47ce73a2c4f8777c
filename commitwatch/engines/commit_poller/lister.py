"""Organization repository listing with a push-time cutoff."""

from __future__ import annotations

from datetime import datetime

import structlog

from commitwatch.engines.commit_poller.github_client import GitHubClient
from commitwatch.engines.commit_poller.models import Repository

log = structlog.get_logger("commitwatch.engine")

DEFAULT_PAGE_SIZE = 10


def _is_older(repo: Repository, since: datetime) -> bool:
    # Never-pushed repos have no pushed_at; treat them as older than any watermark.
    return repo.pushed_at is None or repo.pushed_at < since


def trim_page(page: list[Repository], since: datetime) -> tuple[list[Repository], bool]:
    """Drop trailing entries pushed before *since*.

    The page is sorted by push time, newest first, so only a suffix can be
    stale. Returns ``(kept, reached_cutoff)``; *reached_cutoff* is True when
    at least one entry was dropped, meaning no later page can hold a newer
    push.
    """
    end = len(page)
    while end > 0 and _is_older(page[end - 1], since):
        end -= 1
    return page[:end], end < len(page)


async def list_org_repos(
    client: GitHubClient,
    org: str,
    since: datetime,
    *,
    page_size: int = DEFAULT_PAGE_SIZE,
) -> list[Repository]:
    """Return public repos of *org* with ``pushed_at >= since``, newest push first.

    Request errors propagate; a partial listing is never returned.
    """
    repos: list[Repository] = []
    page_number = 1

    while True:
        log.debug("lister.page", org=org, page=page_number)
        items = await client.get_page(
            f"/orgs/{org}/repos",
            {
                "type": "public",
                "sort": "pushed",
                "direction": "desc",
                "per_page": page_size,
                "page": page_number,
            },
        )
        if not items:
            break

        kept, reached_cutoff = trim_page([Repository.from_api(item) for item in items], since)
        repos.extend(kept)
        if reached_cutoff:
            break
        page_number += 1

    log.info("lister.done", org=org, repos=len(repos), pages=page_number)
    return repos
