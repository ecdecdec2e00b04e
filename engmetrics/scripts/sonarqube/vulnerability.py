"""
SonarQube vulnerability import.

VULNERABILITY issues created since the window start are upserted into
SecurityVulnerability on (repository, issue key). Status and resolution
time are refreshed on every run.
"""

from engmetrics.domain.records import CanonicalVulnerability
from engmetrics.mappers.sonarqube import map_vulnerability
from engmetrics.scripts.base import ImportSession
from engmetrics.scripts.sonarqube.base import SonarQubeImportScript
from engmetrics.storage.repository import Row


class SonarQubeVulnerabilityImportScript(SonarQubeImportScript):
    resource = "vulnerability"
    depends_on = ("repository",)
    import_window_days = 90

    def container_failure_message(self, container: Row, error: Exception) -> str:
        return f"Failed to import vulnerabilities for {container['sonar_project_key']}: {error}"

    async def import_container(self, session: ImportSession, container: Row) -> None:
        project_key = container["sonar_project_key"]

        async for raw in session.client.iter_issues(project_key, created_after=session.context.start_date):
            vulnerability = self.map_record(session, raw.get("key"), map_vulnerability, raw)
            if vulnerability is None:
                continue
            self.import_record(
                session,
                vulnerability.external_id,
                lambda vulnerability=vulnerability: self._upsert_vulnerability(session, container, vulnerability),
            )

    def _upsert_vulnerability(
        self, session: ImportSession, repository: Row, vulnerability: CanonicalVulnerability
    ) -> None:
        mutable = {
            "title": vulnerability.title,
            "severity": vulnerability.severity,
            "status": vulnerability.status,
            "resolved_at": vulnerability.resolved_at,
        }
        session.storage.security_vulnerabilities.upsert(
            {"repository_id": repository["id"], "external_id": vulnerability.external_id},
            create={**mutable, "discovered_at": vulnerability.discovered_at},
            update=mutable,
        )
