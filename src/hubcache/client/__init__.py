"""GitHub API client with response caching."""

from hubcache.client.github import CacheStatus, FetchResult, GitHubClient

__all__ = ["CacheStatus", "FetchResult", "GitHubClient"]
