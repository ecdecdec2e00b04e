"""
SonarQube Web API client.

Usage:
    client = SonarQubeClient(sonarqube_config_from_env(context.env))
    measures = await client.get_measures("acme_api", MEASURE_KEYS)
"""

from collections.abc import AsyncIterator
from datetime import datetime
from typing import Any

import httpx

from engmetrics.domain.constants import pagination_config
from engmetrics.providers.base import ProviderApiError, ProviderClient
from engmetrics.secure_config import SonarQubeConfig
from engmetrics.utils.datetime_utils import ensure_utc

MEASURE_KEYS = (
    "coverage",
    "new_coverage",
    "code_smells",
    "bugs",
    "vulnerabilities",
    "duplicated_lines_density",
    "sqale_debt_ratio",
    "complexity",
    "sqale_rating",
    "reliability_rating",
    "security_rating",
)


class SonarQubeApiError(ProviderApiError):
    pass


class SonarQubeClient(ProviderClient):
    error_class = SonarQubeApiError
    provider_name = "SonarQube"

    def __init__(self, config: SonarQubeConfig, transport: httpx.AsyncBaseTransport | None = None):
        super().__init__(
            config.base_url,
            {"Authorization": f"Bearer {config.token}", "Accept": "application/json"},
            transport=transport,
        )

    async def get_measures(self, project_key: str, metric_keys: tuple[str, ...] = MEASURE_KEYS) -> list[dict[str, Any]]:
        """
        Current measures of a project.

        Returns:
            List of {"metric": key, "value": "..."} (new-code metrics carry
            "period": {"value": "..."} instead of "value")
        """
        payload = await self.get_json(
            "/api/measures/component",
            params={"component": project_key, "metricKeys": ",".join(metric_keys)},
        )
        return list((payload.get("component") or {}).get("measures") or [])

    async def iter_analyses(self, project_key: str, start: datetime, end: datetime) -> AsyncIterator[dict[str, Any]]:
        """Yield project analyses between start and end (inclusive), newest first."""
        params = {
            "project": project_key,
            "from": ensure_utc(start).strftime("%Y-%m-%d"),
            "to": ensure_utc(end).strftime("%Y-%m-%d"),
        }
        async for analysis in self._iter_search("/api/project_analyses/search", params, "analyses"):
            yield analysis

    async def iter_issues(
        self, project_key: str, types: tuple[str, ...] = ("VULNERABILITY",), created_after: datetime | None = None
    ) -> AsyncIterator[dict[str, Any]]:
        """Yield issues of the given types, optionally only those created on or after a date."""
        params: dict[str, Any] = {"componentKeys": project_key, "types": ",".join(types)}
        if created_after is not None:
            params["createdAfter"] = ensure_utc(created_after).strftime("%Y-%m-%d")
        async for issue in self._iter_search("/api/issues/search", params, "issues"):
            yield issue

    async def _iter_search(self, path: str, params: dict[str, Any], items_key: str) -> AsyncIterator[dict[str, Any]]:
        # p/ps paging; stops on an empty page or once page * pageSize reaches paging.total
        page = 1
        while True:
            payload = await self.get_json(
                path, params={**params, "p": page, "ps": pagination_config.SONARQUBE_PAGE_SIZE}
            )
            items = payload.get(items_key) or []
            for item in items:
                yield item

            paging = payload.get("paging") or {}
            page_size = paging.get("pageSize", pagination_config.SONARQUBE_PAGE_SIZE)
            if not items or page * page_size >= paging.get("total", 0):
                return
            page += 1
