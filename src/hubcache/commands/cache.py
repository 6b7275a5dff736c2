"""Cache commands -- statistics, sweeps, and invalidation.

Provides the ``hubcache cache`` sub-command group. Every command operates on
the durable directory of the effective configuration, so entries written by
earlier ``hubcache github`` runs are visible here.

Tokens are read from ``--token`` or ``$GITHUB_TOKEN`` and only ever used in
hashed form.
"""

from __future__ import annotations

from typing import Optional

import typer

from hubcache.commands import get_cache
from hubcache.exceptions import InvalidUsageError
from hubcache.models import InvalidationResult
from hubcache.output import format_response, info, success, warning


cache_app = typer.Typer(no_args_is_help=True)
invalidate_app = typer.Typer(no_args_is_help=True)
cache_app.add_typer(invalidate_app, name="invalidate", help="Remove cached entries.")

_TOKEN_OPTION = typer.Option(
    ...,
    "--token",
    envvar="GITHUB_TOKEN",
    show_default=False,
    help="GitHub token whose entries to target (default: $GITHUB_TOKEN).",
)


@cache_app.command("stats")
def cache_stats(ctx: typer.Context) -> None:
    """Show hit/miss counters, tier sizes, TTL settings, and estimated savings.

    Counters accumulate across runs sharing the cache directory and are
    reset by ``cache invalidate all``; the recent latency average covers
    this process only.

    Example::

        hubcache cache stats
        hubcache --json cache stats
    """
    cache = get_cache(ctx)
    stats = cache.stats()
    if not stats.enabled:
        warning("Caching is disabled (DISABLE_GITHUB_CACHE or cache.enabled=false).")
    data = stats.model_dump(mode="json")
    data["performance"] = cache.performance_summary().model_dump(mode="json")
    format_response(data)


@cache_app.command("sweep")
def cache_sweep(ctx: typer.Context) -> None:
    """Remove expired and unreadable entries from the cache now.

    Example::

        hubcache cache sweep
    """
    result = get_cache(ctx).sweep()
    format_response(result)
    if result.failed:
        warning(f"{result.failed} cache file(s) could not be removed.")
    success(f"Removed {result.memory_removed + result.durable_removed} expired entries.")


@cache_app.command("preview")
def cache_preview(ctx: typer.Context, token: str = _TOKEN_OPTION) -> None:
    """List the entries ``cache invalidate user`` would remove for a token.

    Example::

        hubcache cache preview --token ghp_...
    """
    format_response(get_cache(ctx).describe_scope(token))


@invalidate_app.command("all")
def invalidate_all(
    ctx: typer.Context,
    force: bool = typer.Option(False, "--force", "-f", help="Skip confirmation."),
) -> None:
    """Remove every cached entry for every user.

    Asks for confirmation unless ``--force`` is given.

    Example::

        hubcache cache invalidate all --force
    """
    cache = get_cache(ctx)
    if not (force or ctx.obj.get("force", False)):
        confirmed = typer.confirm("Remove all cached GitHub data for every user?")
        if not confirmed:
            info("Cancelled.")
            raise typer.Exit()
    _report(cache.invalidate_all())


@invalidate_app.command("user")
def invalidate_user(ctx: typer.Context, token: str = _TOKEN_OPTION) -> None:
    """Remove every cached entry belonging to one token.

    Example::

        GITHUB_TOKEN=ghp_... hubcache cache invalidate user
    """
    _report(get_cache(ctx).invalidate_scope(token))


@invalidate_app.command("type")
def invalidate_type(
    ctx: typer.Context,
    resource: str = typer.Argument(help="Resource type, e.g. 'repositories' or 'issues'."),
    owner: Optional[str] = typer.Option(None, "--owner", help="Repository owner (issues)."),
    repo: Optional[str] = typer.Option(None, "--repo", help="Repository name (issues)."),
    state: Optional[str] = typer.Option(None, "--state", help="Issue state (issues)."),
    token: str = _TOKEN_OPTION,
) -> None:
    """Remove cached entries of one resource type for one token.

    With ``--owner``, ``--repo`` and ``--state`` only that listing is
    removed. A partial set of scope options removes every entry for the
    token instead, and says so.

    Example::

        hubcache cache invalidate type repositories
        hubcache cache invalidate type issues --owner octo --repo widgets --state open
    """
    scope = {
        name: value
        for name, value in (("owner", owner), ("repo", repo), ("state", state))
        if value is not None
    }
    try:
        result = get_cache(ctx).invalidate_type(resource, scope or None, token)
    except ValueError as exc:
        raise InvalidUsageError(str(exc)) from None
    _report(result)


def _report(result: InvalidationResult) -> None:
    format_response(result)
    if result.note:
        warning(result.note)
    if result.failed:
        warning(f"{result.failed} cache file(s) could not be removed.")
    success(
        f"Invalidated {result.memory_removed} memory and "
        f"{result.durable_removed} durable entries ({result.applied_scope})."
    )
