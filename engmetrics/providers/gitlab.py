"""
GitLab REST v4 client.

Projects are addressed by their URL-encoded full path ("group/sub/project"),
so no extra lookup of the numeric id is needed. List endpoints are paged
with the X-Next-Page header, which is empty on the last page.

Usage:
    client = GitLabClient(gitlab_config_from_env(context.env))
    async for page in client.iter_issue_pages("acme/api", start, end):
        for raw in page:
            ...
"""

from collections.abc import AsyncIterator
from datetime import datetime
from typing import Any
from urllib.parse import quote

import httpx

from engmetrics.domain.constants import pagination_config
from engmetrics.providers.base import ProviderApiError, ProviderClient
from engmetrics.secure_config import GitLabConfig
from engmetrics.utils.datetime_utils import ensure_utc


class GitLabApiError(ProviderApiError):
    pass


def project_path(full_name: str) -> str:
    """
    API path of a project.

    Example:
        >>> project_path("acme/platform/api")
        '/projects/acme%2Fplatform%2Fapi'
    """
    if "/" not in full_name.strip("/"):
        raise ValueError(f"GitLab project path must be 'namespace/project': {full_name}")
    return f"/projects/{quote(full_name, safe='')}"


def _iso(value: datetime) -> str:
    return ensure_utc(value).strftime("%Y-%m-%dT%H:%M:%SZ")


class GitLabClient(ProviderClient):
    """Thin GitLab REST v4 client."""

    error_class = GitLabApiError
    provider_name = "GitLab"

    def __init__(self, config: GitLabConfig, transport: httpx.AsyncBaseTransport | None = None):
        super().__init__(
            config.api_url,
            {"PRIVATE-TOKEN": config.token, "Accept": "application/json"},
            transport=transport,
        )

    async def iter_pages(self, path: str, params: dict[str, Any] | None = None) -> AsyncIterator[list[dict[str, Any]]]:
        """
        Yield list pages of an endpoint until X-Next-Page is empty.

        Args:
            path: Endpoint path (e.g. "/projects/acme%2Fapi/issues")
            params: Query parameters, repeated on every page

        Yields:
            One list of records per page
        """
        page: str | None = "1"
        while page:
            response = await self.request(
                "GET",
                path,
                params={"per_page": pagination_config.GITLAB_PAGE_SIZE, **(params or {}), "page": page},
            )
            yield list(response.json() or [])
            page = response.headers.get("X-Next-Page") or None

    def _window_params(self, start: datetime, end: datetime) -> dict[str, Any]:
        return {"updated_after": _iso(start), "updated_before": _iso(end), "order_by": "updated_at", "sort": "desc"}

    def iter_issue_pages(self, full_name: str, start: datetime, end: datetime) -> AsyncIterator[list[dict[str, Any]]]:
        return self.iter_pages(
            f"{project_path(full_name)}/issues",
            {**self._window_params(start, end), "scope": "all"},
        )

    def iter_merge_request_pages(
        self, full_name: str, start: datetime, end: datetime
    ) -> AsyncIterator[list[dict[str, Any]]]:
        return self.iter_pages(
            f"{project_path(full_name)}/merge_requests",
            {**self._window_params(start, end), "state": "all", "scope": "all"},
        )

    def iter_commit_pages(
        self, full_name: str, since: datetime, until: datetime, ref: str | None = None
    ) -> AsyncIterator[list[dict[str, Any]]]:
        """Commits of a branch (default branch when ref is None), with line stats."""
        params: dict[str, Any] = {"since": _iso(since), "until": _iso(until), "with_stats": "true"}
        if ref:
            params["ref_name"] = ref
        return self.iter_pages(f"{project_path(full_name)}/repository/commits", params)

    def iter_pipeline_pages(
        self, full_name: str, start: datetime, end: datetime
    ) -> AsyncIterator[list[dict[str, Any]]]:
        return self.iter_pages(f"{project_path(full_name)}/pipelines", self._window_params(start, end))

    async def get_pipeline(self, full_name: str, pipeline_id: int | str) -> dict[str, Any]:
        """Pipeline detail; unlike list items it carries started_at, finished_at and duration."""
        return await self.get_json(f"{project_path(full_name)}/pipelines/{pipeline_id}")  # type: ignore[no-any-return]

    async def list_jobs(self, full_name: str, pipeline_id: int | str) -> list[dict[str, Any]]:
        jobs: list[dict[str, Any]] = []
        async for page in self.iter_pages(f"{project_path(full_name)}/pipelines/{pipeline_id}/jobs"):
            jobs.extend(page)
        return jobs
