"""
GitHub Actions workflow run import.

Runs created inside the import window are attached to the Pipeline whose
config_path equals the workflow file path; runs of workflows without a
Pipeline row are skipped with a warning. Each run's jobs are stored as
its PipelineStages.
"""

from engmetrics.domain.records import CanonicalPipelineRun
from engmetrics.mappers.github import map_job, map_workflow_run
from engmetrics.scripts.base import ImportSession
from engmetrics.scripts.github.base import GitHubImportScript
from engmetrics.storage.repository import Row


class GitHubPipelineRunImportScript(GitHubImportScript):
    resource = "pipeline-run"
    depends_on = ("repository", "pipeline")
    import_window_days = 30

    def container_failure_message(self, container: Row, error: Exception) -> str:
        return f"Failed to import pipeline runs for {container['full_name']}: {error}"

    async def import_container(self, session: ImportSession, container: Row) -> None:
        full_name = container["full_name"]
        context = session.context

        async for page in session.client.iter_workflow_run_pages(full_name, context.start_date, context.end_date):
            for raw in page:
                if not context.in_window(self.record_timestamp(session, raw.get("id"), raw.get("created_at"))):
                    continue

                run = self.map_record(session, raw.get("id"), map_workflow_run, raw)
                if run is None:
                    continue

                pipeline = session.storage.pipelines.find_first(
                    {"repository_id": container["id"], "config_path": run.config_path}
                )
                if pipeline is None:
                    self.logger.warning(
                        f"No pipeline for workflow {run.config_path} in {full_name}, skipping run {run.run_number}"
                    )
                    continue

                for job in await session.client.list_jobs(full_name, run.external_id):
                    stage = self.map_record(session, job.get("id"), map_job, job)
                    if stage is not None:
                        run.stages.append(stage)

                self.import_record(
                    session,
                    f"{full_name}/{run.run_number}",
                    lambda run=run, pipeline=pipeline: self._upsert_run(session, pipeline, run),
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
