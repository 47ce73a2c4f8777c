"""GitHub API utilities: timestamp wire format."""

from __future__ import annotations

from datetime import datetime, timezone


def format_github_timestamp(value: datetime) -> str:
    """Render *value* as ``YYYY-MM-DDTHH:MM:SSZ`` in UTC.

    Sub-second precision is dropped. Naive datetimes are taken as UTC.
    """
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def parse_github_timestamp(value: str | None) -> datetime | None:
    """Parse an ISO-8601 timestamp from the GitHub API, returning None on failure."""
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except (ValueError, AttributeError):
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def truncate_to_second(value: datetime) -> datetime:
    """Drop microseconds so the value survives a round-trip through the wire format."""
    return value.replace(microsecond=0)
