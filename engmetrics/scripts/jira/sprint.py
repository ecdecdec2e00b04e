"""
Jira sprint import.

Containers are the scrum boards of enabled Jira projects (kanban boards
have no sprints). Active and future sprints are always refreshed; closed
sprints only when their dates touch the import window.
"""

from datetime import timedelta

from engmetrics.domain.constants import import_config
from engmetrics.domain.enums import Provider
from engmetrics.domain.records import CanonicalSprint
from engmetrics.mappers.jira import map_sprint
from engmetrics.scripts.base import ImportSession, RunContext, enabled_projects
from engmetrics.scripts.jira.base import JiraImportScript
from engmetrics.storage import StorageHandle
from engmetrics.storage.repository import Row

OPEN_SPRINT_STATES = ("ACTIVE", "FUTURE")


def sprint_in_window(sprint: CanonicalSprint, context: RunContext) -> bool:
    """
    Active and future sprints always qualify; a closed sprint qualifies when
    it starts or ends inside the window, or spans the whole window.
    """
    if sprint.state in OPEN_SPRINT_STATES:
        return True

    start, end = sprint.start_date, sprint.end_date
    return (
        context.in_window(start)
        or context.in_window(end)
        or (start is not None and end is not None and start <= context.start_date and end >= context.end_date)
    )


class JiraSprintImportScript(JiraImportScript):
    resource = "sprint"
    depends_on = ("project", "board")
    import_window_days = 90

    def resolve_containers(self, storage: StorageHandle, context: RunContext) -> list[Row]:
        projects = {project["id"]: project for project in enabled_projects(storage, context, Provider.JIRA.value)}
        if not projects:
            return []

        boards = storage.boards.find_many(
            {"project_id": {"in": list(projects)}, "type": "scrum"},
            order_by=[("external_id", "asc")],
        )
        return [{**board, "project_key": projects[board["project_id"]]["key"]} for board in boards]

    def describe_container(self, container: Row) -> str:
        return f"board {container['external_id']}"

    def container_failure_message(self, container: Row, error: Exception) -> str:
        return f"Failed to import sprints for board {container['external_id']}: {error}"

    async def import_container(self, session: ImportSession, container: Row) -> None:
        async for raw in session.client.iter_sprints(container["external_id"]):
            sprint = self.map_record(session, raw.get("id"), map_sprint, raw)
            if sprint is None or not sprint_in_window(sprint, session.context):
                continue
            self.import_record(
                session,
                sprint.external_id,
                lambda sprint=sprint: self._upsert_sprint(session, container, sprint),
            )

    def _upsert_sprint(self, session: ImportSession, board: Row, sprint: CanonicalSprint) -> None:
        end_date = sprint.end_date
        if end_date is None and sprint.start_date is not None:
            end_date = sprint.start_date + timedelta(days=import_config.DEFAULT_SPRINT_LENGTH_DAYS)

        fields = {
            "board_id": board["id"],
            "name": sprint.name,
            "state": sprint.state,
            "goal": sprint.goal,
            "start_date": sprint.start_date,
            "end_date": end_date,
            "completed_at": sprint.completed_at,
        }
        session.storage.sprints.upsert(
            {"project_id": board["project_id"], "external_id": sprint.external_id},
            create=fields,
            update=fields,
        )
