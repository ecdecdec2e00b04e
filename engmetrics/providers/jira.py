"""
Jira REST client (Cloud and Data Center).

Cloud uses Basic auth (email + API token) against REST v3; Data Center uses
a personal access token (Bearer) against REST v2. Agile endpoints (boards,
sprints) are version-independent.

Usage:
    client = JiraClient(jira_config_from_env(context.env))
    async for page in client.iter_issue_pages(jql, fields=client.issue_fields()):
        ...
"""

import base64
from collections.abc import AsyncIterator
from typing import Any

import httpx

from engmetrics.domain.constants import pagination_config
from engmetrics.providers.base import ProviderApiError, ProviderClient
from engmetrics.secure_config import JiraConfig

ISSUE_FIELDS = (
    "summary",
    "description",
    "issuetype",
    "status",
    "priority",
    "assignee",
    "reporter",
    "created",
    "updated",
    "resolutiondate",
)


class JiraApiError(ProviderApiError):
    pass


def _auth_headers(config: JiraConfig) -> dict[str, str]:
    if config.variant == "cloud":
        token = base64.b64encode(f"{config.email}:{config.api_token}".encode()).decode()
        authorization = f"Basic {token}"
    else:
        authorization = f"Bearer {config.pat}"
    return {"Authorization": authorization, "Accept": "application/json", "Content-Type": "application/json"}


class JiraClient(ProviderClient):
    """Thin Jira REST + Agile client."""

    error_class = JiraApiError
    provider_name = "Jira"

    def __init__(self, config: JiraConfig, transport: httpx.AsyncBaseTransport | None = None):
        super().__init__(config.base_url, _auth_headers(config), transport=transport)
        self.config = config
        self.api_path = f"/rest/api/{config.api_version}"

    def issue_fields(self) -> list[str]:
        return [*ISSUE_FIELDS, self.config.story_points_field, self.config.sprint_field]

    async def iter_issue_pages(self, jql: str, fields: list[str] | None = None) -> AsyncIterator[list[dict[str, Any]]]:
        """
        Yield pages of a JQL search.

        Uses startAt paging with maxResults=100 and stops at the total
        reported by the server or at JIRA_MAX_RESULTS, whichever comes first.

        Args:
            jql: JQL query
            fields: Fields to return (defaults to issue_fields())

        Yields:
            One list of raw issues per page
        """
        start_at = 0
        while start_at < pagination_config.JIRA_MAX_RESULTS:
            payload = await self.post_json(
                f"{self.api_path}/search",
                {
                    "jql": jql,
                    "startAt": start_at,
                    "maxResults": pagination_config.JIRA_PAGE_SIZE,
                    "fields": fields or self.issue_fields(),
                },
            )
            issues = payload.get("issues") or []
            if not issues:
                return
            yield issues

            start_at += len(issues)
            if start_at >= payload.get("total", 0):
                return

    async def _iter_agile(self, path: str, params: dict[str, Any] | None = None) -> AsyncIterator[dict[str, Any]]:
        start_at = 0
        while True:
            payload = await self.get_json(
                path,
                params={**(params or {}), "startAt": start_at, "maxResults": pagination_config.JIRA_PAGE_SIZE},
            )
            values = payload.get("values") or []
            for value in values:
                yield value

            start_at += len(values)
            if payload.get("isLast", True) or not values:
                return

    def iter_boards(self, project_key: str) -> AsyncIterator[dict[str, Any]]:
        return self._iter_agile("/rest/agile/1.0/board", {"projectKeyOrId": project_key})

    def iter_sprints(self, board_id: int | str) -> AsyncIterator[dict[str, Any]]:
        return self._iter_agile(f"/rest/agile/1.0/board/{board_id}/sprint")

    async def get_changelog(self, issue_key: str) -> list[dict[str, Any]]:
        """
        Fetch the full changelog (history entries) of one issue.

        Cloud pages through /issue/{key}/changelog; Data Center has no such
        endpoint and returns the histories inline with expand=changelog.
        """
        if self.config.variant != "cloud":
            payload = await self.get_json(f"{self.api_path}/issue/{issue_key}", params={"expand": "changelog"})
            return list((payload.get("changelog") or {}).get("histories") or [])

        histories: list[dict[str, Any]] = []
        start_at = 0
        while True:
            payload = await self.get_json(
                f"{self.api_path}/issue/{issue_key}/changelog",
                params={"startAt": start_at, "maxResults": pagination_config.JIRA_PAGE_SIZE},
            )
            values = payload.get("values") or []
            histories.extend(values)
            start_at += len(values)
            if payload.get("isLast", True) or not values or start_at >= payload.get("total", 0):
                return histories
