"""
Jira issue import.

For each enabled project, a JQL search returns the issues updated inside
the import window (newest first). Issues are upserted on their Jira key
and linked to the project's board and to the sprint named by the last
entry of the sprint field, when those rows exist.
"""

from datetime import datetime
from typing import Any

from engmetrics.mappers.jira import map_issue
from engmetrics.scripts.base import ImportSession
from engmetrics.scripts.jira.base import JiraImportScript
from engmetrics.storage.repository import Row
from engmetrics.utils.datetime_utils import format_jql_date


def build_issue_jql(project_key: str, start: datetime, end: datetime) -> str:
    """
    Example:
        >>> build_issue_jql("ENG", datetime(2025, 1, 1), datetime(2025, 1, 31))
        'project = "ENG" AND updated >= "2025-01-01" AND updated <= "2025-01-31" ORDER BY updated DESC'
    """
    return (
        f'project = "{project_key}" AND updated >= "{format_jql_date(start)}" '
        f'AND updated <= "{format_jql_date(end)}" ORDER BY updated DESC'
    )


class JiraIssueImportScript(JiraImportScript):
    resource = "issue"
    depends_on = ("project", "board", "sprint")
    import_window_days = 90

    def container_failure_message(self, container: Row, error: Exception) -> str:
        return f"Failed to import issues for project {container['key']}: {error}"

    async def import_container(self, session: ImportSession, container: Row) -> None:
        client = session.client
        context = session.context
        board = session.storage.boards.find_first({"project_id": container["id"]}, order_by=[("inserted_at", "asc")])
        jql = build_issue_jql(container["key"], context.start_date, context.end_date)

        async for page in client.iter_issue_pages(jql, fields=client.issue_fields()):
            for raw in page:
                # JQL compares at day granularity
                fields = raw.get("fields")
                updated = fields.get("updated") if isinstance(fields, dict) else None
                if updated is not None and not context.in_window(
                    self.record_timestamp(session, raw.get("key"), updated)
                ):
                    continue
                self.import_record(
                    session,
                    raw.get("key"),
                    lambda raw=raw: self._upsert_issue(session, container, board, raw),
                )

    def _upsert_issue(self, session: ImportSession, project: Row, board: Row | None, raw: dict[str, Any]) -> None:
        config = session.client.config
        issue = map_issue(raw, session.client.base_url, config.story_points_field, config.sprint_field)
        reporter_id = session.contributors.resolve(issue.reporter)
        assignee_id = session.contributors.resolve(issue.assignee)

        sprint = None
        if issue.sprint_external_id:
            sprint = session.storage.sprints.find_first(
                {"project_id": project["id"], "external_id": issue.sprint_external_id}
            )

        mutable = {
            "title": issue.title,
            "description": issue.description,
            "type": issue.type,
            "status": issue.status,
            "status_name": issue.status_name,
            "priority": issue.priority,
            "assignee_id": assignee_id,
            "sprint_id": sprint["id"] if sprint else None,
            "story_points": issue.story_points,
            "resolved_at": issue.resolved_at,
        }
        session.storage.issues.upsert(
            {"key": issue.key},
            create={
                **mutable,
                "project_id": project["id"],
                "external_id": issue.external_id,
                "reporter_id": reporter_id,
                "board_id": board["id"] if board else None,
                "url": issue.url,
                "created_at": issue.created_at,
            },
            update=mutable,
        )
