"""Config commands -- view and modify global configuration.

Provides the ``hubcache config`` sub-command group for reading, updating,
and resetting the user's global configuration file
(:class:`~hubcache.models.GlobalConfig`). Environment variables such as
``DISABLE_GITHUB_CACHE`` still take precedence over whatever is saved here.
"""

from __future__ import annotations

from typing import Any

import typer
from pydantic import ValidationError

from hubcache.output import error, format_response, info, success


config_app = typer.Typer(no_args_is_help=True)


@config_app.command("show")
def config_show(
    effective: bool = typer.Option(
        False, "--effective", help="Show the config with environment overrides applied."
    ),
) -> None:
    """Show current configuration.

    Example::

        hubcache config show
        hubcache --json config show --effective
    """
    from hubcache.config import get_config_dir, load_global_config, resolve_cache_dir, resolve_config

    config = resolve_config() if effective else load_global_config()
    info(f"Config directory: {get_config_dir()}")
    info(f"Cache directory: {resolve_cache_dir(config.cache)}")
    format_response(config.model_dump(mode="json"))


@config_app.command("set")
def config_set(
    key: str = typer.Argument(
        help="Config key (dot notation, e.g., 'cache.issues_ttl_seconds')."
    ),
    value: str = typer.Argument(help="Value to set."),
) -> None:
    """Set a configuration value.

    The value is coerced to the type of the field it replaces and the whole
    config is validated before it is saved.

    Raises:
        typer.Exit: With code 2 if the key is unknown or the value invalid.

    Example::

        hubcache config set cache.repositories_ttl_seconds 1800
        hubcache config set cache.enabled false
        hubcache config set output.format json
    """
    from hubcache.config import load_global_config, save_global_config
    from hubcache.models import GlobalConfig

    data = load_global_config().model_dump(mode="json")

    keys = key.split(".")
    target = data
    for k in keys[:-1]:
        if k not in target or not isinstance(target[k], dict):
            error(f"Invalid config key: {key}")
            raise typer.Exit(code=2)
        target = target[k]

    final_key = keys[-1]
    if final_key not in target or isinstance(target[final_key], dict):
        error(f"Unknown config key: {key}")
        raise typer.Exit(code=2)

    coerced = _coerce(target[final_key], value)
    if coerced is _INVALID:
        error(f"Expected a number for {key}, got: {value}")
        raise typer.Exit(code=2)
    target[final_key] = coerced

    try:
        new_config = GlobalConfig.model_validate(data)
    except ValidationError as exc:
        error(f"Validation error: {exc}")
        raise typer.Exit(code=2) from None

    save_global_config(new_config)
    success(f"Set {key} = {coerced}")


@config_app.command("reset")
def config_reset(ctx: typer.Context) -> None:
    """Reset configuration to defaults.

    Asks for confirmation unless ``--force`` is active.

    Example::

        hubcache --force config reset
    """
    from hubcache.config import save_global_config
    from hubcache.models import GlobalConfig

    force = ctx.obj.get("force", False) if ctx.obj else False
    if not force:
        confirmed = typer.confirm("Reset all config to defaults?")
        if not confirmed:
            info("Cancelled.")
            raise typer.Exit()

    save_global_config(GlobalConfig())
    success("Configuration reset to defaults.")


_INVALID = object()


def _coerce(current: Any, value: str) -> Any:
    """Coerce *value* to the type of *current*; ``_INVALID`` if it cannot be."""
    if isinstance(current, bool):
        return value.lower() in ("true", "1", "yes", "on")
    if isinstance(current, (int, float)):
        try:
            return type(current)(value)
        except ValueError:
            return _INVALID
    if current is None and value.lower() in ("", "none", "null"):
        return None
    return value
