"""
GitLab CI pipeline import.

Pipelines updated inside the import window are attached to the
repository's Pipeline row for .gitlab-ci.yml; repositories without one
are skipped with a warning. Each pipeline's detail supplies its timing,
and its jobs are stored as PipelineStages.
"""

from engmetrics.domain.records import CanonicalPipelineRun
from engmetrics.mappers.gitlab import GITLAB_CI_CONFIG_PATH, map_job, map_pipeline
from engmetrics.scripts.base import ImportSession
from engmetrics.scripts.gitlab.base import GitLabImportScript
from engmetrics.storage.repository import Row


class GitLabPipelineRunImportScript(GitLabImportScript):
    resource = "pipeline-run"
    depends_on = ("repository", "pipeline")
    import_window_days = 30

    def container_failure_message(self, container: Row, error: Exception) -> str:
        return f"Failed to import pipeline runs for {container['full_name']}: {error}"

    async def import_container(self, session: ImportSession, container: Row) -> None:
        full_name = container["full_name"]
        context = session.context

        pipeline = session.storage.pipelines.find_first(
            {"repository_id": container["id"], "config_path": GITLAB_CI_CONFIG_PATH}
        )
        if pipeline is None:
            self.logger.warning(f"No {GITLAB_CI_CONFIG_PATH} pipeline for {full_name}, skipping its runs")
            return

        async for page in session.client.iter_pipeline_pages(full_name, context.start_date, context.end_date):
            for raw in page:
                if not context.in_window(self.record_timestamp(session, raw.get("id"), raw.get("updated_at"))):
                    continue

                summary = self.map_record(session, raw.get("id"), map_pipeline, raw)
                if summary is None:
                    continue

                detail = await session.client.get_pipeline(full_name, summary.external_id)
                run = self.map_record(session, summary.external_id, map_pipeline, detail)
                if run is None:
                    continue

                for job in await session.client.list_jobs(full_name, run.external_id):
                    stage = self.map_record(session, job.get("id"), map_job, job)
                    if stage is not None:
                        run.stages.append(stage)

                self.import_record(
                    session,
                    f"{full_name}/{run.run_number}",
                    lambda run=run: self._upsert_run(session, pipeline, run),
                )

    def _upsert_run(self, session: ImportSession, pipeline: Row, run: CanonicalPipelineRun) -> None:
        fields = {
            "external_id": run.external_id,
            "status": run.status,
            "branch": run.branch,
            "commit_sha": run.commit_sha,
            "trigger_event": run.trigger_event,
            "started_at": run.started_at,
            "completed_at": run.completed_at,
            "duration_ms": run.duration_ms,
        }
        row = session.storage.pipeline_runs.upsert(
            {"pipeline_id": pipeline["id"], "run_number": run.run_number},
            create=fields,
            update=fields,
        )

        for stage in run.stages:
            stage_fields = {
                "status": stage.status,
                "started_at": stage.started_at,
                "completed_at": stage.completed_at,
                "duration_ms": stage.duration_ms,
            }
            session.storage.pipeline_stages.upsert(
                {"pipeline_run_id": row["id"], "name": stage.name},
                create=stage_fields,
                update=stage_fields,
            )
