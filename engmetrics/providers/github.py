"""
GitHub REST client.

Async-generator pagination over list endpoints: pages are fetched lazily
by following the Link rel="next" header, so callers can stop early (e.g.
once a page sorted by updated desc falls outside the import window).

Usage:
    client = GitHubClient(github_config_from_env(context.env))
    async for page in client.iter_issue_pages("acme/api"):
        for raw in page:
            ...
"""

from collections.abc import AsyncIterator
from datetime import datetime
from typing import Any

import httpx

from engmetrics.domain.constants import pagination_config
from engmetrics.providers.base import ProviderApiError, ProviderClient
from engmetrics.secure_config import GitHubConfig
from engmetrics.utils.datetime_utils import ensure_utc


class GitHubApiError(ProviderApiError):
    pass


def split_full_name(full_name: str) -> tuple[str, str]:
    """
    Split "owner/repo" into its parts.

    Raises:
        ValueError: If the name is not of the form owner/repo
    """
    owner, _, repo = full_name.partition("/")
    if not owner or not repo:
        raise ValueError(f"Repository full name must be 'owner/repo': {full_name}")
    return owner, repo


def _iso(value: datetime) -> str:
    return ensure_utc(value).strftime("%Y-%m-%dT%H:%M:%SZ")


class GitHubClient(ProviderClient):
    """Thin GitHub REST v3 client."""

    error_class = GitHubApiError
    provider_name = "GitHub"

    def __init__(self, config: GitHubConfig, transport: httpx.AsyncBaseTransport | None = None):
        super().__init__(
            config.api_url,
            {
                "Authorization": f"Bearer {config.token}",
                "Accept": "application/vnd.github+json",
                "X-GitHub-Api-Version": "2022-11-28",
            },
            transport=transport,
        )

    async def iter_pages(
        self, path: str, params: dict[str, Any] | None = None, items_key: str | None = None
    ) -> AsyncIterator[list[dict[str, Any]]]:
        """
        Yield list pages of an endpoint until the Link header has no next page.

        Args:
            path: Endpoint path (e.g. "/repos/acme/api/issues")
            params: Query parameters for the first request
            items_key: Key holding the list when the endpoint wraps it
                (e.g. "workflow_runs"); None for bare-list endpoints

        Yields:
            One list of records per page
        """
        next_url: str | None = path
        next_params: dict[str, Any] | None = {"per_page": pagination_config.GITHUB_PAGE_SIZE, **(params or {})}

        while next_url:
            response = await self.request("GET", next_url, params=next_params)
            payload = response.json()
            items = payload.get(items_key, []) if items_key else payload
            yield list(items or [])

            next_url = response.links.get("next", {}).get("url")
            # The next link already carries the query string
            next_params = None

    def iter_issue_pages(self, full_name: str) -> AsyncIterator[list[dict[str, Any]]]:
        owner, repo = split_full_name(full_name)
        return self.iter_pages(
            f"/repos/{owner}/{repo}/issues",
            {"state": "all", "sort": "updated", "direction": "desc"},
        )

    def iter_pull_request_pages(self, full_name: str) -> AsyncIterator[list[dict[str, Any]]]:
        owner, repo = split_full_name(full_name)
        return self.iter_pages(
            f"/repos/{owner}/{repo}/pulls",
            {"state": "all", "sort": "updated", "direction": "desc"},
        )

    def iter_commit_pages(
        self, full_name: str, since: datetime, until: datetime, branch: str | None = None
    ) -> AsyncIterator[list[dict[str, Any]]]:
        owner, repo = split_full_name(full_name)
        params: dict[str, Any] = {"since": _iso(since), "until": _iso(until)}
        if branch:
            params["sha"] = branch
        return self.iter_pages(f"/repos/{owner}/{repo}/commits", params)

    async def get_commit(self, full_name: str, sha: str) -> dict[str, Any]:
        owner, repo = split_full_name(full_name)
        return await self.get_json(f"/repos/{owner}/{repo}/commits/{sha}")  # type: ignore[no-any-return]

    def iter_review_pages(self, full_name: str, number: int) -> AsyncIterator[list[dict[str, Any]]]:
        owner, repo = split_full_name(full_name)
        return self.iter_pages(f"/repos/{owner}/{repo}/pulls/{number}/reviews")

    def iter_workflow_run_pages(
        self, full_name: str, start: datetime, end: datetime
    ) -> AsyncIterator[list[dict[str, Any]]]:
        owner, repo = split_full_name(full_name)
        return self.iter_pages(
            f"/repos/{owner}/{repo}/actions/runs",
            {"created": f"{_iso(start)}..{_iso(end)}"},
            items_key="workflow_runs",
        )

    async def list_jobs(self, full_name: str, run_id: int | str) -> list[dict[str, Any]]:
        owner, repo = split_full_name(full_name)
        jobs: list[dict[str, Any]] = []
        async for page in self.iter_pages(f"/repos/{owner}/{repo}/actions/runs/{run_id}/jobs", items_key="jobs"):
            jobs.extend(page)
        return jobs
