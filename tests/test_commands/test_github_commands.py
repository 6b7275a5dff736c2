"""Tests for the ``hubcache github`` command group."""

from __future__ import annotations

import json
from pathlib import Path

import httpx
import pytest

from hubcache.app import app
from hubcache.client import GitHubClient
from hubcache.exceptions import AuthError, InvalidUsageError


REPOS = [
    {
        "id": 1,
        "name": "widgets",
        "full_name": "octo/widgets",
        "private": False,
        "owner": {"login": "octo", "avatar_url": ""},
        "updated_at": "2026-01-01T00:00:00Z",
        "stargazers_count": 5,
        "open_issues_count": 2,
    }
]

ISSUES = [
    {
        "id": 11,
        "number": 7,
        "title": "Crash on start",
        "state": "open",
        "labels": [{"id": 3, "name": "bug", "color": "d73a4a"}],
        "user": {"login": "alice", "avatar_url": ""},
    }
]


@pytest.fixture
def upstream(monkeypatch: pytest.MonkeyPatch) -> list[httpx.Request]:
    """Route the commands' GitHubClient through a mock transport.

    Returns the list of requests that reached the fake upstream.
    """
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        if request.headers["authorization"] == "Bearer revoked":
            return httpx.Response(401, json={"message": "Bad credentials"})
        if request.url.path == "/user/repos":
            return httpx.Response(200, json=REPOS, headers={"etag": '"r1"'})
        return httpx.Response(200, json=ISSUES)

    def factory(token, config, cache=None):
        return GitHubClient(token, config, cache=cache, transport=httpx.MockTransport(handler))

    monkeypatch.setattr("hubcache.commands.github.GitHubClient", factory)
    return seen


class TestRepos:
    def test_lists_repositories(self, cli_runner, isolated_config: Path, upstream) -> None:
        result = cli_runner.invoke(app, ["--json", "--quiet", "github", "repos", "--token", "tok"])
        assert result.exit_code == 0, result.output
        rows = json.loads(result.stdout)
        assert rows == [
            {
                "Repository": "octo/widgets",
                "Visibility": "public",
                "Stars": "5",
                "Open issues": "2",
                "Updated": "2026-01-01T00:00:00Z",
            }
        ]

    def test_second_run_is_served_from_disk(self, cli_runner, isolated_config: Path, upstream) -> None:
        first = cli_runner.invoke(app, ["--plain", "github", "repos", "--token", "tok"])
        second = cli_runner.invoke(app, ["--plain", "github", "repos", "--token", "tok"])
        assert "Cache MISS" in first.output
        assert "Cache HIT" in second.output
        assert len(upstream) == 1

    def test_stats_accumulate_across_runs(self, cli_runner, isolated_config: Path, upstream) -> None:
        cli_runner.invoke(app, ["--plain", "github", "repos", "--token", "tok"])
        cli_runner.invoke(app, ["--plain", "github", "repos", "--token", "tok"])
        result = cli_runner.invoke(app, ["--json", "--quiet", "cache", "stats"])
        data = json.loads(result.stdout)
        assert data["hits"] == 1
        assert data["misses"] == 1
        assert data["performance"]["estimated_api_calls_saved"] == 1

    def test_disabled_cache_always_fetches(
        self, cli_runner, isolated_config: Path, upstream, monkeypatch
    ) -> None:
        monkeypatch.setenv("DISABLE_GITHUB_CACHE", "true")
        cli_runner.invoke(app, ["--plain", "github", "repos", "--token", "tok"])
        result = cli_runner.invoke(app, ["--plain", "github", "repos", "--token", "tok"])
        assert "Cache DISABLED" in result.output
        assert len(upstream) == 2

    def test_auth_failure(self, cli_runner, isolated_config: Path, upstream) -> None:
        result = cli_runner.invoke(app, ["github", "repos", "--token", "revoked"])
        assert isinstance(result.exception, AuthError)


class TestIssues:
    def test_lists_issues(self, cli_runner, isolated_config: Path, upstream) -> None:
        result = cli_runner.invoke(
            app, ["--plain", "--quiet", "github", "issues", "octo", "widgets", "--token", "tok"]
        )
        assert result.exit_code == 0, result.output
        assert "#7\topen\tCrash on start\tbug\talice" in result.stdout
        assert upstream[0].url.params["state"] == "open"

    def test_state_option(self, cli_runner, isolated_config: Path, upstream) -> None:
        result = cli_runner.invoke(
            app, ["github", "issues", "octo", "widgets", "--state", "all", "--token", "tok"]
        )
        assert result.exit_code == 0, result.output
        assert upstream[0].url.params["state"] == "all"

    def test_invalid_state(self, cli_runner, isolated_config: Path, upstream) -> None:
        result = cli_runner.invoke(
            app, ["github", "issues", "octo", "widgets", "--state", "merged", "--token", "tok"]
        )
        assert isinstance(result.exception, InvalidUsageError)
        assert upstream == []

    def test_invalidation_forces_refetch(self, cli_runner, isolated_config: Path, upstream) -> None:
        args = ["--plain", "github", "issues", "octo", "widgets", "--token", "tok"]
        cli_runner.invoke(app, args)
        cli_runner.invoke(
            app,
            [
                "cache", "invalidate", "type", "issues",
                "--owner", "octo", "--repo", "widgets", "--state", "open", "--token", "tok",
            ],
        )
        result = cli_runner.invoke(app, args)
        assert "Cache MISS" in result.output
        assert len(upstream) == 2
