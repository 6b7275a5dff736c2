"""hubcache -- Two-tier response cache for the GitHub REST API.

This package sits between a QA test-management application and the
rate-limited GitHub API. Responses are cached per caller (principal) in an
in-process memory tier backed by one JSON file per entry on disk, with
per-resource TTLs, per-principal invalidation, and hit/miss metrics.

Typical usage::

    from hubcache.cache import ResponseCache
    from hubcache.config import resolve_cache_dir, resolve_config

    config = resolve_config()
    cache = ResponseCache(resolve_cache_dir(config.cache), config.cache)
    issues = cache.get("issues", {"owner": "o", "repo": "r", "state": "open"}, token)

Modules:
    app: Typer application factory and CLI entry point.
    models: Pydantic models shared across the entire package.
    config: XDG-aware configuration loading and environment overrides.
    exceptions: Exception hierarchy with exit-code mapping.
    exit_codes: Numeric exit codes following clig.dev conventions.
    output: stdout/stderr formatting system with Rich support.
"""

__version__ = "0.1.0"
