"""
Shared plumbing for GitHub import scripts: client construction from the
data source credentials, repository containers, and the early-stop rule
for endpoints sorted by updated desc.
"""

from datetime import datetime
from typing import Any

from engmetrics.domain.enums import Provider
from engmetrics.providers.github import GitHubClient
from engmetrics.scripts.base import ImportScript, RunContext, enabled_repositories
from engmetrics.secure_config import github_config_from_env
from engmetrics.storage import StorageHandle
from engmetrics.storage.repository import Row
from engmetrics.utils.datetime_utils import parse_timestamp


def page_predates_window(page: list[dict[str, Any]], start: datetime, field: str = "updated_at") -> bool:
    """
    True when the oldest record of a page (sorted desc by field) is older
    than the window start, meaning later pages cannot contain in-window
    records.

    Records whose timestamp cannot be parsed are ignored.
    """
    known = []
    for raw in page:
        try:
            value = parse_timestamp(raw.get(field))
        except ValueError:
            continue
        if value is not None:
            known.append(value)
    return bool(known) and min(known) < start


class GitHubImportScript(ImportScript):
    data_source_name = Provider.GITHUB.value

    def build_client(self, context: RunContext) -> GitHubClient:
        return GitHubClient(github_config_from_env(context.env))

    def resolve_containers(self, storage: StorageHandle, context: RunContext) -> list[Row]:
        return enabled_repositories(storage, context, Provider.GITHUB.value)
