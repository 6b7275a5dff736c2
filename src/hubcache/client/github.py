"""Cache-aware GitHub REST client.

:class:`GitHubClient` wraps :class:`httpx.Client` and layers on:

- **Response caching** -- repository and issue listings are looked up in a
  :class:`~hubcache.cache.ResponseCache` first and stored (with the
  upstream ``ETag``) after a successful fetch.
- **Payload trimming** -- only the fields the application displays are
  kept, which keeps durable cache files small.
- **Retry with backoff** -- retries on 5xx and network errors with
  exponential delay (1 s, 2 s, 4 s, ...).
- **Error mapping** -- HTTP failures become typed
  :class:`~hubcache.exceptions.HubcacheError` subclasses.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any, Callable, Optional

import httpx

from hubcache import __version__
from hubcache.exceptions import AuthError, ConnectionError_, NotFoundError, ServerError
from hubcache.models import GitHubConfig, ResourceType

if TYPE_CHECKING:
    from hubcache.cache import ResponseCache

logger = logging.getLogger(__name__)

ISSUE_STATES = ("open", "closed", "all")


class CacheStatus(str, Enum):
    """How a :class:`FetchResult` was served."""

    HIT = "HIT"
    MISS = "MISS"
    DISABLED = "DISABLED"


@dataclass
class FetchResult:
    """Data returned by a :class:`GitHubClient` listing call.

    Attributes:
        data: The trimmed payload (a list of dicts).
        cache_status: ``HIT`` when served from cache, ``MISS`` when fetched
            and stored, ``DISABLED`` when no cache was consulted.
        elapsed_ms: Wall time of the whole call in milliseconds.
    """

    data: list[dict[str, Any]]
    cache_status: CacheStatus
    elapsed_ms: float


class GitHubClient:
    """GitHub API client scoped to one access token.

    Must be used as a context manager so that the underlying transport is
    opened and closed.

    Args:
        token: GitHub access token. Sent as a bearer token and used (hashed)
            to scope cache entries.
        config: API URL, timeout, retry count, and page size.
        cache: Optional response cache. When ``None`` or disabled, every
            call goes upstream and reports ``DISABLED``.
        transport: Optional httpx transport (tests pass
            :class:`httpx.MockTransport`).

    Example::

        with GitHubClient(token, config.github, cache=cache) as gh:
            result = gh.list_issues("octo", "widgets", state="open")
            print(result.cache_status, len(result.data))
    """

    def __init__(
        self,
        token: str,
        config: GitHubConfig,
        cache: Optional[ResponseCache] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self._token = token
        self._config = config
        self._cache = cache
        self._transport = transport
        self._client: Optional[httpx.Client] = None

    def __enter__(self) -> GitHubClient:
        self._client = httpx.Client(
            base_url=self._config.api_url.rstrip("/"),
            timeout=self._config.timeout,
            follow_redirects=True,
            transport=self._transport,
            headers={
                "Accept": "application/vnd.github+json",
                "Authorization": f"Bearer {self._token}",
                "User-Agent": f"hubcache/{__version__}",
                "X-GitHub-Api-Version": "2022-11-28",
            },
        )
        return self

    def __exit__(self, *args: object) -> None:
        if self._client:
            self._client.close()
            self._client = None

    # ------------------------------------------------------------------ #
    # Listings
    # ------------------------------------------------------------------ #

    def list_repositories(self) -> FetchResult:
        """List repositories of the authenticated user, most recently updated first."""
        return self._cached_fetch(
            ResourceType.REPOSITORIES,
            None,
            "/user/repos",
            {"sort": "updated", "per_page": self._config.per_page},
            _trim_repository,
        )

    def list_issues(self, owner: str, repo: str, state: str = "open") -> FetchResult:
        """List issues of ``owner/repo`` in the given *state*.

        Raises:
            ValueError: If *state* is not ``open``, ``closed`` or ``all``.
        """
        if state not in ISSUE_STATES:
            raise ValueError(f"Invalid issue state {state!r}: expected one of {', '.join(ISSUE_STATES)}")
        return self._cached_fetch(
            ResourceType.ISSUES,
            {"owner": owner, "repo": repo, "state": state},
            f"/repos/{owner}/{repo}/issues",
            {"state": state, "per_page": self._config.per_page},
            _trim_issue,
        )

    # ------------------------------------------------------------------ #
    # Private helpers
    # ------------------------------------------------------------------ #

    def _cached_fetch(
        self,
        resource_type: ResourceType,
        scope: Optional[dict[str, str]],
        path: str,
        params: dict[str, Any],
        trim: Callable[[dict[str, Any]], dict[str, Any]],
    ) -> FetchResult:
        started = time.perf_counter()
        use_cache = self._cache is not None and self._cache.enabled

        if use_cache:
            cached = self._cache.get(resource_type, scope, self._token)
            if cached is not None:
                logger.debug("Cache HIT: %s %s", resource_type.value, _describe(scope))
                return FetchResult(cached, CacheStatus.HIT, _elapsed_ms(started))
            logger.debug("Cache MISS: %s %s", resource_type.value, _describe(scope))

        response = self._execute_with_retry(path, params)
        self._map_response_error(response)

        body = response.json()
        data = [trim(item) for item in body] if isinstance(body, list) else []

        if use_cache:
            self._cache.set(
                resource_type, scope, self._token, data, etag=response.headers.get("etag")
            )
            status = CacheStatus.MISS
        else:
            status = CacheStatus.DISABLED
        return FetchResult(data, status, _elapsed_ms(started))

    def _execute_with_retry(self, path: str, params: dict[str, Any]) -> httpx.Response:
        """GET *path*, retrying 5xx responses and network errors.

        The delay doubles each attempt: 1 s, 2 s, 4 s, ...
        """
        assert self._client is not None, "Client not initialised -- use as context manager"

        max_retries = self._config.max_retries
        for attempt in range(max_retries + 1):
            try:
                response = self._client.get(path, params=params)
            except (httpx.TimeoutException, httpx.NetworkError) as exc:
                if attempt < max_retries:
                    delay = 2 ** attempt
                    logger.debug(
                        "Connection error: %s, retrying in %ss (attempt %d/%d)",
                        exc, delay, attempt + 1, max_retries,
                    )
                    time.sleep(delay)
                    continue
                raise ConnectionError_(
                    f"Connection failed after {max_retries + 1} attempts: {exc}"
                ) from exc

            if response.status_code >= 500 and attempt < max_retries:
                delay = 2 ** attempt
                logger.debug(
                    "Server error %d, retrying in %ss (attempt %d/%d)",
                    response.status_code, delay, attempt + 1, max_retries,
                )
                time.sleep(delay)
                continue
            return response

        raise ServerError("Request failed after all retries")  # pragma: no cover

    @staticmethod
    def _map_response_error(response: httpx.Response) -> None:
        """Raise a typed exception for error HTTP status codes."""
        status = response.status_code
        if status < 400:
            return

        try:
            detail = response.json()
            msg = detail.get("message", "") if isinstance(detail, dict) else str(detail)
        except ValueError:
            msg = response.text[:200]

        full_msg = f"HTTP {status}: {msg}" if msg else f"HTTP {status}"
        if status in (401, 403):
            raise AuthError(full_msg)
        if status == 404:
            raise NotFoundError(full_msg)
        raise ServerError(full_msg)


# --- Payload trimming ---


def _user(data: Optional[dict[str, Any]]) -> Optional[dict[str, str]]:
    if not data:
        return None
    return {"login": data.get("login") or "", "avatar_url": data.get("avatar_url") or ""}


def _label(label: Any) -> dict[str, Any]:
    if isinstance(label, str):
        return {"id": 0, "name": label, "color": "", "description": None}
    return {
        "id": label.get("id", 0),
        "name": label.get("name") or "",
        "color": label.get("color") or "",
        "description": label.get("description"),
    }


def _trim_repository(repo: dict[str, Any]) -> dict[str, Any]:
    return {
        "id": repo.get("id"),
        "name": repo.get("name"),
        "full_name": repo.get("full_name"),
        "private": repo.get("private", False),
        "owner": _user(repo.get("owner")),
        "description": repo.get("description"),
        "html_url": repo.get("html_url"),
        "updated_at": repo.get("updated_at"),
        "stargazers_count": repo.get("stargazers_count") or 0,
        "forks_count": repo.get("forks_count") or 0,
        "open_issues_count": repo.get("open_issues_count") or 0,
        "has_issues": repo.get("has_issues", False),
    }


def _trim_issue(issue: dict[str, Any]) -> dict[str, Any]:
    return {
        "id": issue.get("id"),
        "number": issue.get("number"),
        "title": issue.get("title"),
        "body": issue.get("body"),
        "state": issue.get("state"),
        "labels": [_label(label) for label in issue.get("labels") or []],
        "user": _user(issue.get("user")) or {"login": "", "avatar_url": ""},
        "assignee": _user(issue.get("assignee")),
        "comments": issue.get("comments") or 0,
        "created_at": issue.get("created_at"),
        "updated_at": issue.get("updated_at"),
        "html_url": issue.get("html_url"),
    }


def _describe(scope: Optional[dict[str, str]]) -> str:
    if not scope:
        return ""
    return f"{scope['owner']}/{scope['repo']} ({scope['state']})"


def _elapsed_ms(started: float) -> float:
    return (time.perf_counter() - started) * 1000.0
