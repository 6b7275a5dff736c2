"""Tests for the ``hubcache config`` command group and the root app."""

from __future__ import annotations

import json
import sys
from pathlib import Path

import pytest

from hubcache import __version__
from hubcache.app import app, main
from hubcache.config import load_global_config
from hubcache.exit_codes import EXIT_GENERIC_FAILURE, EXIT_INVALID_USAGE


class TestConfigShow:
    def test_show_defaults(self, cli_runner, isolated_config: Path) -> None:
        result = cli_runner.invoke(app, ["--json", "--quiet", "config", "show"])
        assert result.exit_code == 0, result.output
        data = json.loads(result.stdout)
        assert data["cache"]["issues_ttl_seconds"] == 300
        assert data["github"]["api_url"] == "https://api.github.com"

    def test_show_effective(self, cli_runner, isolated_config: Path, monkeypatch) -> None:
        monkeypatch.setenv("GITHUB_CACHE_ISSUE_TTL", "12")
        result = cli_runner.invoke(app, ["--json", "--quiet", "config", "show", "--effective"])
        assert json.loads(result.stdout)["cache"]["issues_ttl_seconds"] == 12


class TestConfigSet:
    def test_set_int(self, cli_runner, isolated_config: Path) -> None:
        result = cli_runner.invoke(app, ["config", "set", "cache.repositories_ttl_seconds", "1800"])
        assert result.exit_code == 0, result.output
        assert load_global_config().cache.repositories_ttl_seconds == 1800

    def test_set_bool(self, cli_runner, isolated_config: Path) -> None:
        cli_runner.invoke(app, ["config", "set", "cache.enabled", "false"])
        assert load_global_config().cache.enabled is False

    def test_set_float(self, cli_runner, isolated_config: Path) -> None:
        cli_runner.invoke(app, ["config", "set", "cache.assumed_upstream_latency_ms", "125.5"])
        assert load_global_config().cache.assumed_upstream_latency_ms == 125.5

    def test_set_nullable_string(self, cli_runner, isolated_config: Path) -> None:
        target = str(isolated_config / "gh")
        cli_runner.invoke(app, ["config", "set", "cache.directory", target])
        assert load_global_config().cache.directory == target

    def test_unknown_key(self, cli_runner, isolated_config: Path) -> None:
        result = cli_runner.invoke(app, ["config", "set", "cache.nope", "1"])
        assert result.exit_code == 2

    def test_section_is_not_a_value(self, cli_runner, isolated_config: Path) -> None:
        result = cli_runner.invoke(app, ["config", "set", "cache", "1"])
        assert result.exit_code == 2

    def test_non_numeric(self, cli_runner, isolated_config: Path) -> None:
        result = cli_runner.invoke(app, ["config", "set", "cache.issues_ttl_seconds", "soon"])
        assert result.exit_code == 2

    def test_validation_failure(self, cli_runner, isolated_config: Path) -> None:
        result = cli_runner.invoke(app, ["config", "set", "cache.issues_ttl_seconds", "0"])
        assert result.exit_code == 2
        assert load_global_config().cache.issues_ttl_seconds == 300


class TestConfigReset:
    def test_reset_with_force(self, cli_runner, isolated_config: Path) -> None:
        cli_runner.invoke(app, ["config", "set", "cache.issues_ttl_seconds", "5"])
        result = cli_runner.invoke(app, ["--force", "config", "reset"])
        assert result.exit_code == 0, result.output
        assert load_global_config().cache.issues_ttl_seconds == 300

    def test_reset_declined(self, cli_runner, isolated_config: Path) -> None:
        cli_runner.invoke(app, ["config", "set", "cache.issues_ttl_seconds", "5"])
        cli_runner.invoke(app, ["config", "reset"], input="n\n")
        assert load_global_config().cache.issues_ttl_seconds == 5


class TestRootApp:
    def test_version(self, cli_runner) -> None:
        result = cli_runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.stdout

    def test_help_lists_groups(self, cli_runner) -> None:
        result = cli_runner.invoke(app, ["--help"])
        assert result.exit_code == 0
        for group in ("cache", "github", "config"):
            assert group in result.stdout

    def test_main_maps_errors_to_exit_codes(self, isolated_config: Path, monkeypatch, capsys) -> None:
        monkeypatch.setattr("hubcache.app._setup_signal_handlers", lambda: None)
        monkeypatch.setattr(
            sys, "argv", ["hubcache", "cache", "invalidate", "type", "Bad-Type", "--token", "x"]
        )
        with pytest.raises(SystemExit) as exc_info:
            main()
        assert exc_info.value.code == EXIT_INVALID_USAGE
        assert "Invalid resource type" in capsys.readouterr().err

    def test_main_writes_crash_log(self, isolated_config: Path, monkeypatch, capsys) -> None:
        def explode(*args, **kwargs):
            raise RuntimeError("boom")

        monkeypatch.setattr("hubcache.app._setup_signal_handlers", lambda: None)
        monkeypatch.setattr("hubcache.app.app", explode)
        with pytest.raises(SystemExit) as exc_info:
            main()
        assert exc_info.value.code == EXIT_GENERIC_FAILURE
        logs = list((isolated_config / "data" / "hubcache" / "logs").glob("crash-*.log"))
        assert len(logs) == 1
        assert "RuntimeError: boom" in logs[0].read_text()
