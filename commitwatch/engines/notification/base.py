"""Notifier abstract interface."""

from __future__ import annotations

from abc import ABC, abstractmethod

from commitwatch.engines.commit_poller.models import CommitRecord


class Notifier(ABC):
    """Delivers one message per non-empty branch commit batch.

    Delivery is best effort: implementations must not raise, and a
    ``False`` return is the only signal that a message was lost.
    """

    @abstractmethod
    async def send(self, repo: str, branch: str, commits: list[CommitRecord]) -> bool:
        """Deliver a summary of *commits*; return True if it was accepted."""
        ...
