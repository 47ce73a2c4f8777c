"""Async GitHub REST client for the commit poller.

Two read paths: ``get_page`` for the org repo listing, where the caller
drives page numbers and stops on its own cutoff, and ``get_paginated``
for branches and commits, which follows ``Link`` headers. Both go
through one retrying GET that backs off on 5xx and timeouts and waits
out rate limits.
"""

from __future__ import annotations

import asyncio
import re
import time
from collections.abc import AsyncGenerator, Mapping
from typing import Any

import httpx
import structlog

log = structlog.get_logger("commitwatch.github")

_NEXT_LINK_RE = re.compile(r'<([^>]+)>;\s*rel="next"')

_API_BASE_URL = "https://api.github.com"
_API_VERSION = "2022-11-28"

_MAX_ATTEMPTS = 3
_BACKOFF_SECONDS = 1.0
_FALLBACK_RATE_LIMIT_WAIT = 60


class RateLimitError(Exception):
    """GitHub kept answering 403 rate-limited for every attempt."""

    def __init__(self, retry_after: int) -> None:
        self.retry_after = retry_after
        super().__init__(f"rate limit exceeded, retry after {retry_after}s")


def _header_int(headers: Mapping[str, str], name: str) -> int | None:
    try:
        return int(headers[name])
    except (KeyError, TypeError, ValueError):
        return None


def _json_list(response: httpx.Response, url: str) -> list[dict[str, Any]]:
    data = response.json()
    if not isinstance(data, list):
        raise ValueError(f"expected a JSON array from {url}, got {type(data).__name__}")
    return data


class GitHubClient:
    """Token-authenticated reader for the org, branch and commit endpoints."""

    def __init__(
        self,
        token: str,
        *,
        base_url: str = _API_BASE_URL,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._client = httpx.AsyncClient(
            base_url=base_url,
            headers={
                "Accept": "application/vnd.github+json",
                "X-GitHub-Api-Version": _API_VERSION,
                "Authorization": f"Bearer {token}",
            },
            timeout=timeout,
            transport=transport,
        )

    async def close(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> GitHubClient:
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.close()

    async def get_page(
        self,
        path: str,
        params: dict[str, Any] | None = None,
    ) -> list[dict[str, Any]]:
        """One page of a list endpoint, exactly as GitHub returned it."""
        response = await self._request_with_retry(path, params)
        await self._check_rate_limit(response)
        return _json_list(response, path)

    async def get_paginated(
        self,
        path: str,
        params: dict[str, Any] | None = None,
        *,
        max_pages: int = 10,
    ) -> AsyncGenerator[dict[str, Any], None]:
        """Yield every item of a list endpoint, 100 per page, up to *max_pages* pages."""
        query: dict[str, Any] | None = {"per_page": 100, **(params or {})}
        url: str | None = path
        for _ in range(max_pages):
            if url is None:
                return
            response = await self._request_with_retry(url, query)
            await self._check_rate_limit(response)
            for item in _json_list(response, url):
                yield item
            # The next link already carries the query string.
            url = self._parse_next_link(response.headers.get("Link", ""))
            query = None

    async def _request_with_retry(
        self,
        url: str,
        params: dict[str, Any] | None = None,
    ) -> httpx.Response:
        """GET *url*, retrying 5xx responses, timeouts and rate-limited 403s.

        Other 4xx responses raise ``httpx.HTTPStatusError`` immediately.
        After the last attempt the most recent failure is raised.
        """
        failure: Exception = RuntimeError(f"no attempt made for {url}")
        for attempt in range(1, _MAX_ATTEMPTS + 1):
            try:
                resp = await self._client.get(url, params=params)
            except httpx.TimeoutException as exc:
                log.warning("github.timeout", url=url, attempt=attempt)
                failure = exc
            else:
                if resp.status_code == 403 and self._is_rate_limited(resp):
                    wait = self._rate_limit_wait(resp)
                    log.warning(
                        "github.rate_limited", url=url, wait_seconds=wait, attempt=attempt
                    )
                    await asyncio.sleep(wait)
                    failure = RateLimitError(wait)
                    continue
                if resp.status_code < 500:
                    resp.raise_for_status()
                    return resp
                log.warning(
                    "github.server_error", url=url, status=resp.status_code, attempt=attempt
                )
                failure = httpx.HTTPStatusError(
                    f"{resp.status_code} from {url}", request=resp.request, response=resp
                )

            if attempt < _MAX_ATTEMPTS:
                await asyncio.sleep(_BACKOFF_SECONDS * 2 ** (attempt - 1))

        raise failure

    async def _check_rate_limit(self, response: httpx.Response) -> None:
        """Wait for the quota reset once a response reports zero requests left."""
        if _header_int(response.headers, "X-RateLimit-Remaining") == 0:
            wait = self._rate_limit_wait(response)
            log.warning("github.rate_limit_wait", wait_seconds=wait)
            await asyncio.sleep(wait)

    @staticmethod
    def _is_rate_limited(response: httpx.Response) -> bool:
        remaining = _header_int(response.headers, "X-RateLimit-Remaining")
        if remaining is not None:
            return remaining == 0
        # secondary limits only send Retry-After
        return "Retry-After" in response.headers

    @staticmethod
    def _rate_limit_wait(response: httpx.Response) -> int:
        retry_after = _header_int(response.headers, "Retry-After")
        if retry_after is not None:
            return max(retry_after, 1)
        reset_at = _header_int(response.headers, "X-RateLimit-Reset")
        if reset_at is not None:
            return max(reset_at - int(time.time()), 1)
        return _FALLBACK_RATE_LIMIT_WAIT

    @staticmethod
    def _parse_next_link(link_header: str) -> str | None:
        match = _NEXT_LINK_RE.search(link_header)
        return match.group(1) if match else None
