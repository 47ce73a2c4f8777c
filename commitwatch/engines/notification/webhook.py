"""DiscordNotifier: post commit summaries to a Discord webhook."""

from __future__ import annotations

from datetime import tzinfo
from zoneinfo import ZoneInfo

import httpx
import structlog

from commitwatch.engines.commit_poller.models import CommitRecord
from commitwatch.engines.notification.base import Notifier
from commitwatch.engines.notification.template import (
    DEFAULT_DISPLAY_TZ,
    DEFAULT_DISPLAY_TZ_LABEL,
    render_message,
)

log = structlog.get_logger("commitwatch.engine.notification")


class DiscordNotifier(Notifier):
    """Single-attempt webhook delivery.

    Every call makes at most one POST. Transport errors and non-2xx
    responses are logged and reported as ``False``; nothing is retried
    or queued, so callers must not assume a message arrived.
    """

    def __init__(
        self,
        webhook_url: str,
        *,
        zone: tzinfo | None = None,
        zone_label: str = DEFAULT_DISPLAY_TZ_LABEL,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.webhook_url = webhook_url
        self.zone = zone or ZoneInfo(DEFAULT_DISPLAY_TZ)
        self.zone_label = zone_label
        self._client = httpx.AsyncClient(timeout=timeout, transport=transport)

    async def close(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> DiscordNotifier:
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.close()

    async def send(self, repo: str, branch: str, commits: list[CommitRecord]) -> bool:
        content = render_message(
            repo, branch, commits, zone=self.zone, zone_label=self.zone_label
        )
        try:
            response = await self._client.post(self.webhook_url, json={"content": content})
            response.raise_for_status()
        except Exception as exc:
            log.error("notify.failed", repo=repo, branch=branch, error=str(exc))
            return False

        log.info("notify.sent", repo=repo, branch=branch, commits=len(commits))
        return True
