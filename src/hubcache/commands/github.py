"""GitHub commands -- repository and issue listings served through the cache.

Provides the ``hubcache github`` sub-command group. The listing goes to
stdout; whether it came from the cache (``HIT``), was fetched and stored
(``MISS``), or bypassed a disabled cache (``DISABLED``) is reported on
stderr.
"""

from __future__ import annotations

import typer

from hubcache.client import FetchResult, GitHubClient
from hubcache.commands import get_cache, get_config
from hubcache.exceptions import InvalidUsageError
from hubcache.output import info, print_table


github_app = typer.Typer(no_args_is_help=True)

_TOKEN_OPTION = typer.Option(
    ...,
    "--token",
    envvar="GITHUB_TOKEN",
    show_default=False,
    help="GitHub access token (default: $GITHUB_TOKEN).",
)


@github_app.command("repos")
def github_repos(ctx: typer.Context, token: str = _TOKEN_OPTION) -> None:
    """List your repositories, most recently updated first.

    Example::

        hubcache github repos
        hubcache --json github repos
    """
    config = get_config(ctx)
    with GitHubClient(token, config.github, cache=get_cache(ctx)) as gh:
        result = gh.list_repositories()

    rows = [
        [
            repo["full_name"] or "",
            "private" if repo["private"] else "public",
            str(repo["stargazers_count"]),
            str(repo["open_issues_count"]),
            repo["updated_at"] or "",
        ]
        for repo in result.data
    ]
    print_table(["Repository", "Visibility", "Stars", "Open issues", "Updated"], rows, title="Repositories")
    _report_status(result)


@github_app.command("issues")
def github_issues(
    ctx: typer.Context,
    owner: str = typer.Argument(help="Repository owner."),
    repo: str = typer.Argument(help="Repository name."),
    state: str = typer.Option("open", "--state", "-s", help="open, closed, or all."),
    token: str = _TOKEN_OPTION,
) -> None:
    """List the issues of one repository.

    Example::

        hubcache github issues octo widgets
        hubcache github issues octo widgets --state all
    """
    config = get_config(ctx)
    with GitHubClient(token, config.github, cache=get_cache(ctx)) as gh:
        try:
            result = gh.list_issues(owner, repo, state=state)
        except ValueError as exc:
            raise InvalidUsageError(str(exc)) from None

    rows = [
        [
            f"#{issue['number']}",
            issue["state"] or "",
            issue["title"] or "",
            ", ".join(label["name"] for label in issue["labels"]),
            issue["user"]["login"],
        ]
        for issue in result.data
    ]
    print_table(["Number", "State", "Title", "Labels", "Author"], rows, title=f"{owner}/{repo} issues")
    _report_status(result)


def _report_status(result: FetchResult) -> None:
    info(f"Cache {result.cache_status.value}: {len(result.data)} item(s) in {result.elapsed_ms:.1f} ms")
