"""Shared test fixtures for hubcache.

Provides isolated config environments, a controllable clock for TTL tests,
ready-made caches, output state management, and a CLI runner. These
fixtures are automatically discovered by pytest.
"""

from __future__ import annotations

import logging
from pathlib import Path

import pytest

from hubcache.cache import ResponseCache
from hubcache.models import CacheConfig
from hubcache.output import OutputFormat, OutputManager, reset_output, set_output


_GITHUB_ENV_VARS = [
    "DISABLE_GITHUB_CACHE",
    "GITHUB_CACHE_ENABLED",
    "GITHUB_CACHE_REPO_TTL",
    "GITHUB_CACHE_ISSUE_TTL",
    "GITHUB_CACHE_DIR",
    "GITHUB_API_URL",
    "GITHUB_TOKEN",
]


# ---------------------------------------------------------------------------
# Auto-reset global output state between tests
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_output_between_tests() -> None:
    """Reset the global OutputManager after every test.

    The OutputManager caches references to sys.stdout/sys.stderr at
    creation time. When Typer's CliRunner redirects those streams during
    a test and the test finishes, the cached references become stale
    ("I/O operation on closed file"). Resetting forces a fresh manager
    to be created on next use. The ``hubcache`` logger is restored for
    the same reason, and so that ``caplog`` sees its records again.
    """
    yield
    reset_output()
    logger = logging.getLogger("hubcache")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    logger.setLevel(logging.NOTSET)
    logger.propagate = True


# ---------------------------------------------------------------------------
# Clock
# ---------------------------------------------------------------------------


class FakeClock:
    """Manually advanced epoch-seconds clock."""

    def __init__(self, start: float = 1_760_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    """A clock that only moves when the test advances it."""
    return FakeClock()


# ---------------------------------------------------------------------------
# Cache fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def cache_dir(tmp_path: Path) -> Path:
    """Directory for the durable tier."""
    return tmp_path / "github-cache"


@pytest.fixture
def cache(cache_dir: Path, clock: FakeClock) -> ResponseCache:
    """An enabled cache with default TTLs driven by the fake clock."""
    c = ResponseCache(cache_dir, CacheConfig(), clock=clock)
    yield c
    c.close()


@pytest.fixture
def disabled_cache(cache_dir: Path, clock: FakeClock) -> ResponseCache:
    """A cache constructed with caching turned off."""
    c = ResponseCache(cache_dir, CacheConfig(enabled=False), clock=clock)
    yield c
    c.close()


# ---------------------------------------------------------------------------
# Config isolation fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Isolate configuration to a temporary directory.

    Sets XDG_CONFIG_HOME, XDG_CACHE_HOME, and XDG_DATA_HOME to
    subdirectories of tmp_path so that tests never touch real user
    config, and clears every GitHub/cache environment variable.

    Returns:
        The tmp_path root directory for additional file creation.
    """
    monkeypatch.setattr("hubcache.config._is_xdg_platform", lambda: True)
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    monkeypatch.setenv("XDG_CACHE_HOME", str(tmp_path / "cache"))
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "data"))

    for var in _GITHUB_ENV_VARS:
        monkeypatch.delenv(var, raising=False)

    monkeypatch.chdir(tmp_path)
    return tmp_path


# ---------------------------------------------------------------------------
# Output fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def quiet_output() -> OutputManager:
    """Install a PLAIN-format, quiet OutputManager as the global output."""
    output = OutputManager(format=OutputFormat.PLAIN, quiet=True)
    set_output(output)
    yield output
    reset_output()


# ---------------------------------------------------------------------------
# CLI runner fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def cli_runner():
    """Typer CLI test runner.

    Returns a CliRunner instance that captures stdout/stderr and
    provides a consistent interface for invoking Typer apps in tests.
    """
    from typer.testing import CliRunner

    return CliRunner()
