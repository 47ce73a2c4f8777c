"""Discord message rendering for branch commit batches."""

from __future__ import annotations

from datetime import datetime, tzinfo
from zoneinfo import ZoneInfo

from commitwatch.engines.commit_poller.models import CommitRecord

DIVIDER = "--------------"

# Discord rejects webhook content longer than this.
DISCORD_CONTENT_LIMIT = 2000
_TRUNCATION_MARKER = "\n…(truncated)"

DEFAULT_DISPLAY_TZ = "Asia/Kolkata"
DEFAULT_DISPLAY_TZ_LABEL = "IST"

_DEFAULT_ZONE = ZoneInfo(DEFAULT_DISPLAY_TZ)


def format_display_time(value: datetime | None, zone: tzinfo = _DEFAULT_ZONE) -> str:
    """Render *value* as ``D/M/YYYY, h:mm:ss am`` in *zone*."""
    if value is None:
        return "unknown"
    local = value.astimezone(zone)
    hour = local.hour % 12 or 12
    meridiem = "am" if local.hour < 12 else "pm"
    return (
        f"{local.day}/{local.month}/{local.year}, "
        f"{hour}:{local.minute:02d}:{local.second:02d} {meridiem}"
    )


def _format_author(commit: CommitRecord) -> str:
    if commit.author_login:
        return f"{commit.author_name} (<@{commit.author_login}>)"
    return commit.author_name


def render_commit_block(
    commit: CommitRecord,
    zone: tzinfo = _DEFAULT_ZONE,
    zone_label: str = DEFAULT_DISPLAY_TZ_LABEL,
) -> str:
    return (
        f"**Commit Message**: {commit.message}\n"
        f"**Author**: {_format_author(commit)}\n"
        f"**Date**: {format_display_time(commit.authored_at, zone)} {zone_label}\n"
        f"**Link**: {commit.html_url or 'n/a'}\n"
        f"{DIVIDER}"
    )


def render_message(
    repo: str,
    branch: str,
    commits: list[CommitRecord],
    *,
    zone: tzinfo = _DEFAULT_ZONE,
    zone_label: str = DEFAULT_DISPLAY_TZ_LABEL,
) -> str:
    """Return the message body for one branch's commits, within Discord's limit."""
    header = f"**Repository**: {repo}\n**Branch**: {branch}\n\n"
    body = "\n".join(render_commit_block(c, zone, zone_label) for c in commits)
    message = header + body
    if len(message) > DISCORD_CONTENT_LIMIT:
        cut = DISCORD_CONTENT_LIMIT - len(_TRUNCATION_MARKER)
        message = message[:cut] + _TRUNCATION_MARKER
    return message
