"""
Shared base for SonarQube import scripts.

SonarQube data sources are organization-wide: their containers are the
enabled repositories of any data source in the same organization that
carry a sonar_project_key.
"""

from engmetrics.domain.enums import Provider
from engmetrics.providers.sonarqube import SonarQubeClient
from engmetrics.scripts.base import ImportScript, RunContext
from engmetrics.secure_config import sonarqube_config_from_env
from engmetrics.storage import StorageHandle
from engmetrics.storage.repository import Row


class SonarQubeImportScript(ImportScript):
    data_source_name = Provider.SONARQUBE.value

    def build_client(self, context: RunContext) -> SonarQubeClient:
        return SonarQubeClient(sonarqube_config_from_env(context.env))

    def resolve_containers(self, storage: StorageHandle, context: RunContext) -> list[Row]:
        data_source = storage.data_sources.find_unique(context.data_source_id)
        if data_source is None:
            return []

        sibling_ids = [
            row["id"] for row in storage.data_sources.find_many({"organization_id": data_source["organization_id"]})
        ]
        return storage.repositories.find_many(
            {"data_source_id": {"in": sibling_ids}, "is_enabled": True, "sonar_project_key": {"ne": None}},
            order_by=[("full_name", "asc")],
        )

    def describe_container(self, container: Row) -> str:
        return container["sonar_project_key"]
