"""Configuration management with XDG paths, atomic writes, and environment overrides.

This module handles all persistent configuration for hubcache:

* **Directory layout** -- XDG Base Directory compliant on Linux/BSD,
  ``~/.hubcache/`` on macOS and Windows. See :func:`get_config_dir`,
  :func:`get_cache_dir`, :func:`get_data_dir`.
* **Global config** -- A single :class:`~hubcache.models.GlobalConfig`
  JSON file storing cache TTLs, the GitHub API URL, and output defaults.
* **Environment overrides** -- :func:`resolve_config` layers
  ``DISABLE_GITHUB_CACHE``, ``GITHUB_CACHE_REPO_TTL`` and friends over the
  file so deployments can tune the cache without touching disk.

All file writes use an atomic temp-file-then-rename strategy
(:func:`atomic_write`) to prevent data loss on crash or power failure. The
durable cache tier writes its entries through the same helper.
"""

from __future__ import annotations

import json
import os
import platform
import tempfile
from pathlib import Path
from typing import Optional

from hubcache.exceptions import ConfigError
from hubcache.models import CacheConfig, GlobalConfig

_APP_NAME = "hubcache"
_CONFIG_FILENAME = "config.json"
_CACHE_SUBDIR = "github"

_TRUTHY = ("1", "true", "yes", "on")


# --- XDG path resolution ---


def _is_xdg_platform() -> bool:
    """Return True on platforms that follow XDG Base Directory conventions (Linux/FreeBSD)."""
    return platform.system() == "Linux" or platform.system().endswith("BSD")


def _fallback_base_dir() -> Path:
    """Fallback base directory for non-XDG platforms (macOS, Windows)."""
    return Path.home() / f".{_APP_NAME}"


def _xdg_base(env_var: str, default_segments: tuple[str, ...]) -> Path:
    """Resolve an XDG base directory from an env var with fallback segments under $HOME."""
    env_value = os.environ.get(env_var, "")
    if env_value:
        return Path(env_value)
    base = Path.home()
    for seg in default_segments:
        base = base / seg
    return base


def get_config_dir() -> Path:
    """Return the configuration directory, creating it if necessary.

    On Linux/BSD: ``$XDG_CONFIG_HOME/hubcache/`` (default ``~/.config/hubcache/``).
    On macOS/Windows: ``~/.hubcache/``.

    Returns:
        Absolute path to the configuration directory (guaranteed to exist).
    """
    if _is_xdg_platform():
        base = _xdg_base("XDG_CONFIG_HOME", (".config",))
        path = base / _APP_NAME
    else:
        path = _fallback_base_dir()
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_cache_dir() -> Path:
    """Return the cache directory, creating it if necessary.

    Holds the durable tier of the response cache. Cached data can be safely
    deleted at any time.

    On Linux/BSD: ``$XDG_CACHE_HOME/hubcache/`` (default ``~/.cache/hubcache/``).
    On macOS/Windows: ``~/.hubcache/cache/``.

    Returns:
        Absolute path to the cache directory (guaranteed to exist).
    """
    if _is_xdg_platform():
        base = _xdg_base("XDG_CACHE_HOME", (".cache",))
        path = base / _APP_NAME
    else:
        path = _fallback_base_dir() / "cache"
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_data_dir() -> Path:
    """Return the data directory (crash logs), creating it if necessary.

    On Linux/BSD: ``$XDG_DATA_HOME/hubcache/`` (default ``~/.local/share/hubcache/``).
    On macOS/Windows: ``~/.hubcache/logs/``.

    Returns:
        Absolute path to the data directory (guaranteed to exist).
    """
    if _is_xdg_platform():
        base = _xdg_base("XDG_DATA_HOME", (".local", "share"))
        path = base / _APP_NAME
    else:
        path = _fallback_base_dir() / "logs"
    path.mkdir(parents=True, exist_ok=True)
    return path


# --- Atomic file writes ---


def atomic_write(path: Path, data: str, mode: Optional[int] = None) -> None:
    """Write data to file atomically using temp file + rename.

    The temporary file is created in the same directory as *path* so that
    ``os.replace`` is guaranteed to be an atomic rename on POSIX systems.
    Readers therefore see either the previous file or the complete new one,
    never a partial write. On any failure the temp file is cleaned up and
    the error is re-raised.

    Args:
        path: Destination file.
        data: Text content to write (UTF-8).
        mode: Optional permission bits applied to the temp file before any
            content is written (e.g. ``0o600``).
    """
    path.parent.mkdir(parents=True, exist_ok=True)

    fd = None
    tmp_path: Optional[str] = None
    try:
        fd = tempfile.NamedTemporaryFile(
            mode="w",
            dir=path.parent,
            prefix=f".{path.name}.",
            suffix=".tmp",
            delete=False,
            encoding="utf-8",
        )
        tmp_path = fd.name
        if mode is not None:
            os.chmod(tmp_path, mode)
        fd.write(data)
        fd.flush()
        os.fsync(fd.fileno())
        fd.close()
        fd = None  # prevent double-close in finally
        os.replace(tmp_path, path)
    except BaseException:
        # Clean up the temp file on any error (including KeyboardInterrupt).
        if fd is not None:
            fd.close()
        if tmp_path is not None:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
        raise


# --- Global config ---


def _global_config_path() -> Path:
    """Path to the global config file."""
    return get_config_dir() / _CONFIG_FILENAME


def load_global_config() -> GlobalConfig:
    """Load the global configuration from the XDG config directory.

    Returns:
        The deserialised :class:`~hubcache.models.GlobalConfig`. If the
        file does not exist, a default instance is returned.

    Raises:
        ConfigError: If the file exists but contains invalid JSON or fails
            Pydantic validation.
    """
    path = _global_config_path()
    if not path.is_file():
        return GlobalConfig()
    try:
        text = path.read_text(encoding="utf-8")
        data = json.loads(text)
        return GlobalConfig.model_validate(data)
    except (json.JSONDecodeError, ValueError) as exc:
        raise ConfigError(f"Invalid global config at {path}: {exc}") from exc


def save_global_config(config: GlobalConfig) -> None:
    """Persist the global configuration atomically to disk.

    Args:
        config: The configuration to save.
    """
    data = config.model_dump(mode="json")
    atomic_write(_global_config_path(), json.dumps(data, indent=2) + "\n")


# --- Environment overrides ---


def _env_flag(name: str) -> Optional[bool]:
    """Return the boolean value of env var *name*, or ``None`` when unset or empty."""
    value = os.environ.get(name)
    if value is None or value.strip() == "":
        return None
    return value.strip().lower() in _TRUTHY


def _env_seconds(name: str) -> Optional[int]:
    """Return env var *name* as a positive integer, or ``None`` when unset.

    Raises:
        ConfigError: If the variable is set but is not a positive integer.
    """
    value = os.environ.get(name)
    if value is None or value.strip() == "":
        return None
    try:
        seconds = int(value.strip())
    except ValueError:
        raise ConfigError(
            f"Environment variable {name} must be an integer number of seconds, got: {value!r}"
        ) from None
    if seconds < 1:
        raise ConfigError(f"Environment variable {name} must be at least 1, got: {seconds}")
    return seconds


def resolve_config() -> GlobalConfig:
    """Resolve the effective configuration.

    Precedence (high to low):
        1. Environment variables
        2. User config (``~/.config/hubcache/config.json``)
        3. Defaults

    Recognised environment variables:
        - ``DISABLE_GITHUB_CACHE`` -- truthy value bypasses caching entirely
        - ``GITHUB_CACHE_ENABLED`` -- legacy spelling; ``false`` disables
        - ``GITHUB_CACHE_REPO_TTL`` -- repositories TTL in seconds
        - ``GITHUB_CACHE_ISSUE_TTL`` -- issues TTL in seconds
        - ``GITHUB_CACHE_DIR`` -- durable cache directory
        - ``GITHUB_API_URL`` -- upstream API base URL

    Returns:
        The effective :class:`~hubcache.models.GlobalConfig`.

    Raises:
        ConfigError: If the config file or an environment override is invalid.
    """
    config = load_global_config()
    cache = config.cache

    legacy_enabled = _env_flag("GITHUB_CACHE_ENABLED")
    if legacy_enabled is False:
        cache.enabled = False
    if _env_flag("DISABLE_GITHUB_CACHE"):
        cache.enabled = False

    repo_ttl = _env_seconds("GITHUB_CACHE_REPO_TTL")
    if repo_ttl is not None:
        cache.repositories_ttl_seconds = repo_ttl
    issue_ttl = _env_seconds("GITHUB_CACHE_ISSUE_TTL")
    if issue_ttl is not None:
        cache.issues_ttl_seconds = issue_ttl

    cache_dir = os.environ.get("GITHUB_CACHE_DIR")
    if cache_dir:
        cache.directory = cache_dir

    api_url = os.environ.get("GITHUB_API_URL")
    if api_url:
        config.github.api_url = api_url

    return config


def resolve_cache_dir(config: CacheConfig) -> Path:
    """Return the durable cache directory for *config*.

    Uses ``config.directory`` when set, otherwise ``<cache dir>/github``.
    The directory is not created here; the durable tier creates it on the
    first write.
    """
    if config.directory:
        return Path(config.directory).expanduser()
    return get_cache_dir() / _CACHE_SUBDIR
