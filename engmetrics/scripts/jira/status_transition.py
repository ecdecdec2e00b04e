"""
Jira status transition import.

Containers are the issues of enabled Jira projects refreshed inside the
import window (the issue script runs first). Each issue's changelog is
read and every status change is upserted on
(issue, transitioned_at, to_status).
"""

from engmetrics.domain.enums import Provider
from engmetrics.domain.records import CanonicalStatusTransition
from engmetrics.mappers.jira import map_history_transitions
from engmetrics.scripts.base import ImportSession, RunContext, enabled_projects
from engmetrics.scripts.jira.base import JiraImportScript
from engmetrics.storage import StorageHandle
from engmetrics.storage.repository import Row


class JiraStatusTransitionImportScript(JiraImportScript):
    resource = "status-transition"
    depends_on = ("issue",)
    import_window_days = 90

    def resolve_containers(self, storage: StorageHandle, context: RunContext) -> list[Row]:
        project_ids = [project["id"] for project in enabled_projects(storage, context, Provider.JIRA.value)]
        if not project_ids:
            return []

        return storage.issues.find_many(
            {
                "project_id": {"in": project_ids},
                "updated_at": {"gte": context.start_date, "lte": context.end_date},
            },
            order_by=[("key", "asc")],
        )

    def describe_container(self, container: Row) -> str:
        return container["key"]

    def container_failure_message(self, container: Row, error: Exception) -> str:
        return f"Failed to import transitions for issue {container['key']}: {error}"

    async def import_container(self, session: ImportSession, container: Row) -> None:
        histories = await session.client.get_changelog(container["key"])
        for history in histories:
            transitions = self.map_record(
                session, f"{container['key']}/{history.get('id')}", map_history_transitions, history
            )
            for transition in transitions or []:
                self.import_record(
                    session,
                    f"{container['key']}@{transition.transitioned_at.isoformat()}",
                    lambda transition=transition: self._upsert_transition(session, container, transition),
                )

    def _upsert_transition(self, session: ImportSession, issue: Row, transition: CanonicalStatusTransition) -> None:
        author_id = session.contributors.resolve(transition.author)
        session.storage.issue_status_transitions.upsert(
            {
                "issue_id": issue["id"],
                "transitioned_at": transition.transitioned_at,
                "to_status": transition.to_status,
            },
            create={"from_status": transition.from_status, "author_id": author_id},
            update={"from_status": transition.from_status},
        )
