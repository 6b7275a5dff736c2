"""Exception hierarchy for hubcache.

All exceptions inherit from :class:`HubcacheError`, which carries an
``exit_code`` attribute mapped to a constant from :mod:`hubcache.exit_codes`.
The top-level error handler in :func:`hubcache.app.main` catches
``HubcacheError`` and exits with the appropriate code, while unexpected
exceptions produce a crash log and exit with :data:`EXIT_GENERIC_FAILURE`.

The cache read and write paths never raise these: a failed read is a miss
and a failed durable write is logged. Only administrative operations
(invalidation, sweeps) surface :class:`CacheDirectoryError`, and only when
the cache directory cannot be listed at all.

Subclass hierarchy::

    HubcacheError (exit 1)
    +-- InvalidUsageError    (exit 2)
    +-- AuthError            (exit 3)
    +-- NotFoundError        (exit 4)
    +-- ServerError          (exit 5)
    +-- ConnectionError_     (exit 6)
    +-- CacheDirectoryError  (exit 8)
    +-- ConfigError          (exit 1)
"""

from hubcache.exit_codes import (
    EXIT_AUTH_FAILURE,
    EXIT_CACHE_DIRECTORY_ERROR,
    EXIT_CONNECTION_ERROR,
    EXIT_GENERIC_FAILURE,
    EXIT_INVALID_USAGE,
    EXIT_NOT_FOUND,
    EXIT_SERVER_ERROR,
)


class HubcacheError(Exception):
    """Base exception for all hubcache errors.

    Every subclass sets a class-level ``exit_code`` corresponding to one of
    the constants in :mod:`hubcache.exit_codes`. The entry point catches
    this exception type and calls ``sys.exit(exc.exit_code)``.

    Args:
        message: Human-readable error description printed to stderr.
        exit_code: Optional override for the class-level exit code.
    """

    exit_code: int = EXIT_GENERIC_FAILURE

    def __init__(self, message: str, exit_code: int | None = None):
        super().__init__(message)
        if exit_code is not None:
            self.exit_code = exit_code


class InvalidUsageError(HubcacheError):
    """Raised for invalid CLI arguments or missing required parameters."""

    exit_code = EXIT_INVALID_USAGE


class AuthError(HubcacheError):
    """Raised when GitHub rejects the access token (HTTP 401/403)."""

    exit_code = EXIT_AUTH_FAILURE


class NotFoundError(HubcacheError):
    """Raised when GitHub returns HTTP 404 (unknown repository, or no access to it)."""

    exit_code = EXIT_NOT_FOUND


class ServerError(HubcacheError):
    """Raised when GitHub returns an HTTP 5xx error or an unexpected 4xx."""

    exit_code = EXIT_SERVER_ERROR


class ConnectionError_(HubcacheError):
    """Raised on network-level failures (timeout, DNS resolution, connection refused).

    Named with a trailing underscore to avoid shadowing the built-in
    ``ConnectionError``.
    """

    exit_code = EXIT_CONNECTION_ERROR


class CacheDirectoryError(HubcacheError):
    """Raised when an administrative cache operation cannot start.

    Only raised when the durable cache directory exists but cannot be
    listed (permissions, not a directory). Failures on individual files
    during a scan are counted, never raised.
    """

    exit_code = EXIT_CACHE_DIRECTORY_ERROR


class ConfigError(HubcacheError):
    """Raised for configuration problems (invalid JSON, bad environment overrides)."""

    exit_code = EXIT_GENERIC_FAILURE
