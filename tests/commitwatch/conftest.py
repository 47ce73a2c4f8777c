"""Shared fixtures for commitwatch tests: fake GitHub API and notifier, no network."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any

import pytest

from commitwatch.core.github import format_github_timestamp
from commitwatch.engines.commit_poller.models import CommitRecord
from commitwatch.engines.notification.base import Notifier

BASE_TIME = datetime(2026, 10, 19, 12, 0, 0, tzinfo=timezone.utc)


class FakeGitHub:
    """Stands in for GitHubClient.

    *repo_pages* are served by ``get_page`` by page number (pages past the
    end come back empty). *branches* maps repo name → branch items;
    *commits* maps ``(repo name, branch)`` → commit items. Any value may be
    an exception instance, which is raised instead.
    """

    def __init__(
        self,
        repo_pages: list[list[dict]] | Exception | None = None,
        branches: dict[str, Any] | None = None,
        commits: dict[tuple[str, str], Any] | None = None,
    ) -> None:
        self.repo_pages = repo_pages if repo_pages is not None else []
        self.branches = branches or {}
        self.commits = commits or {}
        self.calls: list[tuple[str, str, dict]] = []
        self.closed = False

    async def __aenter__(self) -> FakeGitHub:
        return self

    async def __aexit__(self, *exc: object) -> None:
        self.closed = True

    @property
    def page_calls(self) -> list[dict]:
        return [params for kind, _, params in self.calls if kind == "page"]

    async def get_page(self, path: str, params: dict | None = None) -> list[dict]:
        params = dict(params or {})
        self.calls.append(("page", path, params))
        if isinstance(self.repo_pages, Exception):
            raise self.repo_pages
        number = params["page"]
        if number > len(self.repo_pages):
            return []
        return list(self.repo_pages[number - 1])

    async def get_paginated(self, path: str, params: dict | None = None, *, max_pages: int = 10):
        params = dict(params or {})
        self.calls.append(("paginated", path, params))
        _, _owner, name, kind = path.strip("/").split("/")
        if kind == "branches":
            data = self.branches.get(name, [])
        else:
            data = self.commits.get((name, params["sha"]), [])
        if isinstance(data, Exception):
            raise data
        for item in data:
            yield item


class RecordingNotifier(Notifier):
    def __init__(self, accept: bool = True) -> None:
        self.accept = accept
        self.sent: list[tuple[str, str, list[CommitRecord]]] = []
        self.closed = False

    async def __aenter__(self) -> RecordingNotifier:
        return self

    async def __aexit__(self, *exc: object) -> None:
        self.closed = True

    async def send(self, repo: str, branch: str, commits: list[CommitRecord]) -> bool:
        self.sent.append((repo, branch, commits))
        return self.accept


@pytest.fixture
def base_time() -> datetime:
    return BASE_TIME


@pytest.fixture
def repo_item():
    """Factory for org repo listing items."""

    def _make(name: str, pushed_at: datetime | None, owner: str = "acme") -> dict:
        return {
            "name": name,
            "full_name": f"{owner}/{name}",
            "owner": {"login": owner},
            "private": False,
            "pushed_at": format_github_timestamp(pushed_at) if pushed_at else None,
            "html_url": f"https://github.com/{owner}/{name}",
        }

    return _make


@pytest.fixture
def repo_items(repo_item):
    """*count* repo items, newest push first, one minute apart starting at *newest*."""

    def _make(count: int, newest: datetime = BASE_TIME) -> list[dict]:
        return [repo_item(f"repo-{i}", newest - timedelta(minutes=i)) for i in range(count)]

    return _make


@pytest.fixture
def branch_item():
    def _make(name: str, sha: str = "head") -> dict:
        return {"name": name, "commit": {"sha": sha}, "protected": False}

    return _make


@pytest.fixture
def commit_item():
    def _make(
        sha: str,
        message: str = "fix: handle null input",
        *,
        name: str = "Dev One",
        login: str | None = "dev1",
        date: str = "2026-10-19T10:00:00Z",
        repo: str = "A",
    ) -> dict:
        return {
            "sha": sha,
            "html_url": f"https://github.com/acme/{repo}/commit/{sha}",
            "commit": {
                "message": message,
                "author": {"name": name, "email": "dev@example.com", "date": date},
            },
            "author": {"login": login} if login else None,
            "parents": [{"sha": "parent"}],
        }

    return _make


@pytest.fixture
def fake_github():
    return FakeGitHub


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def rejecting_notifier() -> RecordingNotifier:
    """Records calls but reports every delivery as failed."""
    return RecordingNotifier(accept=False)
