"""Runtime settings: config.json + environment variables."""

from __future__ import annotations

import json
import os
from pathlib import Path
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import structlog
from dotenv import find_dotenv, load_dotenv
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from commitwatch.engines.notification.template import DEFAULT_DISPLAY_TZ, DEFAULT_DISPLAY_TZ_LABEL
from commitwatch.exceptions import ConfigError

log = structlog.get_logger("commitwatch.config")

_DEFAULT_CONFIG_PATH = "config.json"


class FileConfig(BaseModel):
    """The recognized keys of ``config.json``. Unknown keys are ignored."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    org: str
    discord_webhook: str = Field(alias="discordWebhook")

    @field_validator("org", "discord_webhook")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("must not be empty")
        return value


class Settings(BaseModel):
    """Everything the poller needs, resolved once at startup."""

    org: str
    discord_webhook: str
    github_token: str
    state_file: Path = Path("data.json")
    output_file: Path = Path("commits.json")
    poll_interval: float = 60.0
    max_concurrency: int = 8
    page_size: int = 10
    commit_max_pages: int = 10
    display_tz: str = DEFAULT_DISPLAY_TZ
    display_tz_label: str = DEFAULT_DISPLAY_TZ_LABEL

    @property
    def display_zone(self) -> ZoneInfo:
        return ZoneInfo(self.display_tz)


def _env_float(key: str, default: float) -> float:
    return float(os.environ.get(key, default))


def _env_int(key: str, default: int) -> int:
    return int(os.environ.get(key, default))


def read_config_file(path: str | Path) -> FileConfig:
    """Parse and validate the JSON config file at *path*."""
    path = Path(path)
    try:
        raw = json.loads(path.read_text())
    except FileNotFoundError:
        raise ConfigError(f"config file not found: {path}") from None
    except json.JSONDecodeError as exc:
        raise ConfigError(f"invalid JSON in {path}: {exc}") from exc

    if not isinstance(raw, dict):
        raise ConfigError(f"{path} must contain a JSON object")

    try:
        return FileConfig.model_validate(raw)
    except ValidationError as exc:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in exc.errors()
        )
        raise ConfigError(f"invalid config in {path}: {problems}") from exc


def load_settings(config_path: str | Path | None = None) -> Settings:
    """Build :class:`Settings` from ``.env``, the environment and the config file.

    Raises :class:`ConfigError` on a missing/invalid config file, a missing
    GitHub token, a non-numeric tuning variable or an unknown display timezone.
    """
    load_dotenv(find_dotenv(usecwd=True))

    path = config_path or os.environ.get("COMMITWATCH_CONFIG", _DEFAULT_CONFIG_PATH)
    file_config = read_config_file(path)

    token = os.environ.get("GITHUB_ACCESS_TOKEN") or os.environ.get("GITHUB_TOKEN")
    if not token:
        raise ConfigError(
            "GITHUB_ACCESS_TOKEN is not set; add it to the environment or a .env file"
        )

    try:
        settings = Settings(
            org=file_config.org,
            discord_webhook=file_config.discord_webhook,
            github_token=token,
            state_file=Path(os.environ.get("COMMITWATCH_STATE_FILE", "data.json")),
            output_file=Path(os.environ.get("COMMITWATCH_OUTPUT_FILE", "commits.json")),
            poll_interval=_env_float("COMMITWATCH_POLL_INTERVAL", 60.0),
            max_concurrency=_env_int("COMMITWATCH_MAX_CONCURRENCY", 8),
            page_size=_env_int("COMMITWATCH_PAGE_SIZE", 10),
            commit_max_pages=_env_int("COMMITWATCH_COMMIT_MAX_PAGES", 10),
            display_tz=os.environ.get("COMMITWATCH_DISPLAY_TZ", DEFAULT_DISPLAY_TZ),
            display_tz_label=os.environ.get(
                "COMMITWATCH_DISPLAY_TZ_LABEL", DEFAULT_DISPLAY_TZ_LABEL
            ),
        )
    except ValueError as exc:
        raise ConfigError(f"invalid environment setting: {exc}") from exc

    if settings.poll_interval <= 0:
        raise ConfigError("COMMITWATCH_POLL_INTERVAL must be positive")
    if settings.max_concurrency < 1:
        raise ConfigError("COMMITWATCH_MAX_CONCURRENCY must be at least 1")
    if settings.page_size < 1:
        raise ConfigError("COMMITWATCH_PAGE_SIZE must be at least 1")

    try:
        ZoneInfo(settings.display_tz)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise ConfigError(f"unknown display timezone: {settings.display_tz!r}") from exc

    log.debug("config.loaded", org=settings.org, config_path=str(path))
    return settings
