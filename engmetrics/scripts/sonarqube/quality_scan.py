"""
SonarQube quality scan import.

Containers are the enabled repositories of the data source's organization
that carry a sonar_project_key. Every analysis inside the import window
becomes one QualityScan holding the project's current measures; a project
without analyses in the window still gets one scan at the window end so
the dashboard always has a latest value.
"""

from datetime import datetime

from engmetrics.domain.records import QualityMeasures
from engmetrics.mappers.sonarqube import map_measures
from engmetrics.scripts.base import ImportSession
from engmetrics.scripts.sonarqube.base import SonarQubeImportScript
from engmetrics.storage.repository import Row
from engmetrics.utils.datetime_utils import utc_now


class SonarQubeQualityScanImportScript(SonarQubeImportScript):
    resource = "quality-scan"
    depends_on = ("repository",)
    import_window_days = 90

    def container_failure_message(self, container: Row, error: Exception) -> str:
        return f"Failed to import quality scan for {container['sonar_project_key']}: {error}"

    async def import_container(self, session: ImportSession, container: Row) -> None:
        project_key = container["sonar_project_key"]
        context = session.context

        measures = self.map_record(session, project_key, map_measures, await session.client.get_measures(project_key))
        if measures is None:
            return

        scanned = 0
        async for analysis in session.client.iter_analyses(project_key, context.start_date, context.end_date):
            scanned_at = self.record_timestamp(session, analysis.get("key"), analysis.get("date"))
            if not context.in_window(scanned_at):
                continue
            self.import_record(
                session,
                analysis.get("key"),
                lambda scanned_at=scanned_at: self._upsert_scan(session, container, scanned_at, measures),
            )
            scanned += 1

        if scanned == 0:
            scanned_at = min(context.end_date, utc_now())
            self.import_record(
                session,
                f"{project_key}@current",
                lambda: self._upsert_scan(session, container, scanned_at, measures),
            )

    def _upsert_scan(
        self, session: ImportSession, repository: Row, scanned_at: datetime, measures: QualityMeasures
    ) -> None:
        fields = {
            "coverage": measures.coverage,
            "new_coverage": measures.new_coverage,
            "code_smells": measures.code_smells,
            "bugs": measures.bugs,
            "vulnerabilities": measures.vulnerabilities,
            "duplicated_lines_density": measures.duplicated_lines_density,
            "technical_debt_ratio": measures.technical_debt_ratio,
            "complexity": measures.complexity,
            "maintainability_rating": measures.maintainability_rating,
            "reliability_rating": measures.reliability_rating,
            "security_rating": measures.security_rating,
        }
        session.storage.quality_scans.upsert(
            {"repository_id": repository["id"], "scanned_at": scanned_at},
            create=fields,
            update=fields,
        )
