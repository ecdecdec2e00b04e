"""
GitLab issue import.

Issues of each enabled repository updated inside the import window are
upserted on the synthetic key "{namespace}/{project}#{iid}". Each
repository needs a Project whose key is the repository full name.
"""

from typing import Any

from engmetrics.domain.errors import MissingDependencyError
from engmetrics.mappers.gitlab import map_issue
from engmetrics.scripts.base import ImportSession
from engmetrics.scripts.gitlab.base import GitLabImportScript
from engmetrics.storage.repository import Row


class GitLabIssueImportScript(GitLabImportScript):
    resource = "issue"
    depends_on = ("repository", "contributor", "project")
    import_window_days = 90

    def container_failure_message(self, container: Row, error: Exception) -> str:
        if isinstance(error, MissingDependencyError):
            return str(error)
        return f"Failed to import issues for {container['full_name']}: {error}"

    async def import_container(self, session: ImportSession, container: Row) -> None:
        full_name = container["full_name"]
        context = session.context
        project = session.storage.projects.find_first({"data_source_id": context.data_source_id, "key": full_name})
        if project is None:
            raise MissingDependencyError(f"Project not found for repository {full_name}")

        async for page in session.client.iter_issue_pages(full_name, context.start_date, context.end_date):
            for raw in page:
                record_id = f"{full_name}#{raw.get('iid')}"
                if not context.in_window(self.record_timestamp(session, record_id, raw.get("updated_at"))):
                    continue
                self.import_record(
                    session,
                    record_id,
                    lambda raw=raw: self._upsert_issue(session, project, full_name, raw),
                )

    def _upsert_issue(self, session: ImportSession, project: Row, full_name: str, raw: dict[str, Any]) -> None:
        issue = map_issue(raw, full_name)
        reporter_id = session.contributors.resolve(issue.reporter)
        assignee_id = session.contributors.resolve(issue.assignee)

        mutable = {
            "title": issue.title,
            "description": issue.description,
            "type": issue.type,
            "status": issue.status,
            "status_name": issue.status_name,
            "priority": issue.priority,
            "assignee_id": assignee_id,
            "resolved_at": issue.resolved_at,
        }
        session.storage.issues.upsert(
            {"key": issue.key},
            create={
                **mutable,
                "project_id": project["id"],
                "external_id": issue.external_id,
                "reporter_id": reporter_id,
                "url": issue.url,
                "created_at": issue.created_at,
            },
            update=mutable,
        )
