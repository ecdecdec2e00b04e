"""Shared plumbing for Jira import scripts."""

from engmetrics.domain.enums import Provider
from engmetrics.providers.jira import JiraClient
from engmetrics.scripts.base import ImportScript, RunContext, enabled_projects
from engmetrics.secure_config import jira_config_from_env
from engmetrics.storage import StorageHandle
from engmetrics.storage.repository import Row


class JiraImportScript(ImportScript):
    data_source_name = Provider.JIRA.value

    def build_client(self, context: RunContext) -> JiraClient:
        return JiraClient(jira_config_from_env(context.env))

    def resolve_containers(self, storage: StorageHandle, context: RunContext) -> list[Row]:
        return enabled_projects(storage, context, Provider.JIRA.value)
