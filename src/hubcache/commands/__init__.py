"""Built-in CLI sub-commands for hubcache.

* :mod:`~hubcache.commands.cache` -- cache statistics, sweeps, and
  invalidation.
* :mod:`~hubcache.commands.github` -- repository and issue listings served
  through the cache.
* :mod:`~hubcache.commands.config` -- view and modify global settings.

Commands share one :class:`~hubcache.cache.ResponseCache` per invocation,
built lazily by :func:`get_cache` and stored in ``ctx.obj``.
"""

from __future__ import annotations

import typer

from hubcache.cache import ResponseCache
from hubcache.config import resolve_cache_dir, resolve_config
from hubcache.models import GlobalConfig


def get_config(ctx: typer.Context) -> GlobalConfig:
    """Return the effective configuration for this invocation."""
    obj = ctx.ensure_object(dict)
    config = obj.get("config")
    if config is None:
        config = resolve_config()
        obj["config"] = config
    return config


def get_cache(ctx: typer.Context) -> ResponseCache:
    """Return the invocation's :class:`ResponseCache`, creating it on first use.

    The cache is closed when the root context closes.
    """
    obj = ctx.ensure_object(dict)
    cache = obj.get("cache")
    if cache is None:
        config = get_config(ctx)
        cache = ResponseCache(resolve_cache_dir(config.cache), config.cache)
        obj["cache"] = cache
        ctx.find_root().call_on_close(cache.close)
    return cache
