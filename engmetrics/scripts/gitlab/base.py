"""
Shared plumbing for GitLab import scripts: client construction from the
data source credentials and repository containers. A repository's
full_name is its GitLab project path.
"""

from engmetrics.domain.enums import Provider
from engmetrics.providers.gitlab import GitLabClient
from engmetrics.scripts.base import ImportScript, RunContext, enabled_repositories
from engmetrics.secure_config import gitlab_config_from_env
from engmetrics.storage import StorageHandle
from engmetrics.storage.repository import Row


class GitLabImportScript(ImportScript):
    data_source_name = Provider.GITLAB.value

    def build_client(self, context: RunContext) -> GitLabClient:
        return GitLabClient(gitlab_config_from_env(context.env))

    def resolve_containers(self, storage: StorageHandle, context: RunContext) -> list[Row]:
        return enabled_repositories(storage, context, Provider.GITLAB.value)
