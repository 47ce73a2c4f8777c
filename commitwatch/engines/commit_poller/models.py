"""Data models for the commit poller engine."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from commitwatch.core.github import parse_github_timestamp


@dataclass
class Repository:
    """An organization repository as returned by the repo listing."""

    owner: str
    name: str
    private: bool = False
    pushed_at: datetime | None = None
    html_url: str | None = None

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.name}"

    @classmethod
    def from_api(cls, item: dict[str, Any]) -> Repository:
        return cls(
            owner=(item.get("owner") or {}).get("login", ""),
            name=item["name"],
            private=bool(item.get("private", False)),
            pushed_at=parse_github_timestamp(item.get("pushed_at")),
            html_url=item.get("html_url"),
        )


@dataclass
class Branch:
    name: str
    head_sha: str | None = None

    @classmethod
    def from_api(cls, item: dict[str, Any]) -> Branch:
        return cls(name=item["name"], head_sha=(item.get("commit") or {}).get("sha"))


@dataclass
class CommitRecord:
    """A single commit on a branch.

    ``raw`` keeps the platform commit object untouched; it is what the
    cycle output file stores.
    """

    sha: str
    message: str
    author_name: str
    author_login: str | None
    authored_at: datetime | None
    html_url: str | None
    raw: dict[str, Any] = field(default_factory=dict, repr=False)

    @classmethod
    def from_api(cls, item: dict[str, Any]) -> CommitRecord:
        commit = item.get("commit") or {}
        git_author = commit.get("author") or {}
        # "author" is null when the commit email is not linked to an account
        account = item.get("author") or {}
        return cls(
            sha=item["sha"],
            message=commit.get("message", ""),
            author_name=git_author.get("name") or "unknown",
            author_login=account.get("login"),
            authored_at=parse_github_timestamp(git_author.get("date")),
            html_url=item.get("html_url"),
            raw=item,
        )


@dataclass
class BranchCommits:
    branch: str
    commits: list[CommitRecord] = field(default_factory=list)

    def to_json(self) -> dict[str, Any]:
        return {"branch": self.branch, "commits": [c.raw for c in self.commits]}


@dataclass
class RepoCommits:
    repo: str
    branch_commits: list[BranchCommits] = field(default_factory=list)

    def to_json(self) -> dict[str, Any]:
        return {
            "repo": self.repo,
            "branchCommits": [bc.to_json() for bc in self.branch_commits],
        }


@dataclass
class CycleResult:
    """Summary of a single poll cycle."""

    started_at: datetime
    since: datetime
    repos_listed: int = 0
    entries: list[RepoCommits] = field(default_factory=list)
    empty_repos: list[str] = field(default_factory=list)
    notifications_sent: int = 0
    errors: list[str] = field(default_factory=list)

    @property
    def commit_count(self) -> int:
        return sum(len(bc.commits) for rc in self.entries for bc in rc.branch_commits)

    def to_json(self) -> list[dict[str, Any]]:
        """The cycle output file payload."""
        return [rc.to_json() for rc in self.entries]
