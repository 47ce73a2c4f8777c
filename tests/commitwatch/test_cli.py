"""Tests for CLI commands: no network needed (mocked)."""

from __future__ import annotations

import json
from datetime import datetime, timezone
from unittest.mock import AsyncMock, patch

import pytest
from click.testing import CliRunner

from commitwatch.cli import main
from commitwatch.core.config import load_settings
from commitwatch.engines.commit_poller.models import BranchCommits, CycleResult, RepoCommits
from commitwatch.exceptions import ConfigError

NOW = datetime(2026, 10, 19, 10, 0, tzinfo=timezone.utc)
FUTURE = datetime(2100, 1, 1, tzinfo=timezone.utc)

_ENV_KEYS = [
    "GITHUB_TOKEN",
    "COMMITWATCH_CONFIG",
    "COMMITWATCH_POLL_INTERVAL",
    "COMMITWATCH_MAX_CONCURRENCY",
    "COMMITWATCH_PAGE_SIZE",
    "COMMITWATCH_COMMIT_MAX_PAGES",
    "COMMITWATCH_DISPLAY_TZ",
    "COMMITWATCH_DISPLAY_TZ_LABEL",
]


@pytest.fixture
def env_workdir(tmp_path, monkeypatch):
    """Working directory with config.json, a token and state/output paths set in the env."""
    monkeypatch.chdir(tmp_path)
    for key in _ENV_KEYS:
        monkeypatch.delenv(key, raising=False)
    (tmp_path / "config.json").write_text(
        json.dumps({"org": "acme", "discordWebhook": "https://discord.test/hook"})
    )
    monkeypatch.setenv("GITHUB_ACCESS_TOKEN", "ghp_test")
    monkeypatch.setenv("COMMITWATCH_STATE_FILE", str(tmp_path / "state" / "w.json"))
    monkeypatch.setenv("COMMITWATCH_OUTPUT_FILE", str(tmp_path / "out" / "c.json"))
    return tmp_path


class TestInitState:
    def test_creates_watermark(self, tmp_path):
        path = tmp_path / "data.json"
        result = CliRunner().invoke(main, ["init-state", "--state-file", str(path)])
        assert result.exit_code == 0, result.output
        data = json.loads(path.read_text())
        assert data["last_checked"].endswith("Z")
        assert "Watermark set to" in result.output

    def test_refuses_to_overwrite(self, tmp_path):
        path = tmp_path / "data.json"
        path.write_text(json.dumps({"last_checked": "2026-01-01T00:00:00Z"}))
        result = CliRunner().invoke(main, ["init-state", "--state-file", str(path)])
        assert result.exit_code == 1
        assert "--force" in result.output
        assert json.loads(path.read_text())["last_checked"] == "2026-01-01T00:00:00Z"

    def test_force_overwrites(self, tmp_path):
        path = tmp_path / "data.json"
        path.write_text(json.dumps({"last_checked": "2026-01-01T00:00:00Z"}))
        result = CliRunner().invoke(main, ["init-state", "--state-file", str(path), "--force"])
        assert result.exit_code == 0
        assert json.loads(path.read_text())["last_checked"] != "2026-01-01T00:00:00Z"

    def test_force_replaces_corrupt_file(self, tmp_path):
        path = tmp_path / "data.json"
        path.write_text("not json")
        result = CliRunner().invoke(main, ["init-state", "--state-file", str(path), "--force"])
        assert result.exit_code == 0, result.output
        assert "last_checked" in json.loads(path.read_text())

    def test_corrupt_file_without_force(self, tmp_path):
        path = tmp_path / "data.json"
        path.write_text("not json")
        result = CliRunner().invoke(main, ["init-state", "--state-file", str(path)])
        assert result.exit_code == 1
        assert "Invalid watermark file" in result.output

    def test_state_file_from_env(self, env_workdir):
        result = CliRunner().invoke(main, ["init-state"])
        assert result.exit_code == 0, result.output

        state = env_workdir / "state" / "w.json"
        assert json.loads(state.read_text())["last_checked"].endswith("Z")
        assert not (env_workdir / "data.json").exists()
        assert load_settings().state_file == state


class TestRun:
    def test_config_error_exits_1(self):
        with patch("commitwatch.cli._poll", new=AsyncMock(side_effect=ConfigError("boom"))):
            result = CliRunner().invoke(main, ["run", "--once"])
        assert result.exit_code == 1
        assert "Error: boom" in result.output

    def test_once_prints_summary(self):
        cycle = CycleResult(
            started_at=NOW,
            since=NOW,
            repos_listed=2,
            entries=[RepoCommits("A", [BranchCommits("main")])],
            empty_repos=["B"],
            notifications_sent=0,
        )
        poll = AsyncMock(return_value=cycle)
        with patch("commitwatch.cli._poll", new=poll):
            result = CliRunner().invoke(main, ["run", "--once", "-c", "cfg.json"])

        assert result.exit_code == 0, result.output
        poll.assert_awaited_once_with("cfg.json", True)
        assert "Repositories listed: 2" in result.output
        assert "New commits: 0" in result.output
        assert "Empty repositories: B" in result.output


class TestRunWiring:
    """``run --once`` end to end with the GitHub and Discord clients faked."""

    @pytest.fixture
    def github(self, fake_github, repo_item, branch_item, commit_item):
        return fake_github(
            repo_pages=[[repo_item("A", FUTURE)]],
            branches={"A": [branch_item("main")]},
            commits={("A", "main"): [commit_item("c1")]},
        )

    def _invoke(self, github, notifier, seen: list):
        def _clients(settings):
            seen.append(settings)
            return github, notifier

        with patch("commitwatch.cli.create_clients", side_effect=_clients):
            return CliRunner().invoke(main, ["run", "--once"])

    def test_once_writes_output_and_watermark(self, env_workdir, github, notifier):
        seen: list = []
        result = self._invoke(github, notifier, seen)
        assert result.exit_code == 0, result.output

        state = env_workdir / "state" / "w.json"
        output = env_workdir / "out" / "c.json"
        assert seen[0].state_file == state
        assert seen[0].output_file == output

        entries = json.loads(output.read_text())
        assert [e["repo"] for e in entries] == ["A"]
        assert entries[0]["branchCommits"][0]["branch"] == "main"
        assert entries[0]["branchCommits"][0]["commits"][0]["sha"] == "c1"
        assert json.loads(state.read_text())["last_checked"].endswith("Z")
        assert not (env_workdir / "data.json").exists()
        assert not (env_workdir / "commits.json").exists()

        assert [(repo, branch) for repo, branch, _ in notifier.sent] == [("A", "main")]
        assert "Repositories listed: 1" in result.output
        assert "New commits: 1" in result.output
        assert "Notifications sent: 1" in result.output

    def test_clients_closed(self, env_workdir, github, notifier):
        result = self._invoke(github, notifier, [])
        assert result.exit_code == 0, result.output
        assert github.closed
        assert notifier.closed

    def test_uses_watermark_seeded_by_init_state(self, env_workdir, github, notifier):
        seeded = CliRunner().invoke(main, ["init-state"])
        assert seeded.exit_code == 0, seeded.output
        state = env_workdir / "state" / "w.json"
        since = json.loads(state.read_text())["last_checked"]

        result = self._invoke(github, notifier, [])
        assert result.exit_code == 0, result.output

        commit_params = [p for _, path, p in github.calls if path.endswith("/commits")]
        assert commit_params == [{"sha": "main", "since": since}]
