"""
GitLab merge request import.

Merge requests updated inside the import window are stored as pull
requests, upserted on (repository, iid).
"""

from typing import Any

from engmetrics.mappers.gitlab import map_merge_request
from engmetrics.scripts.base import ImportSession
from engmetrics.scripts.gitlab.base import GitLabImportScript
from engmetrics.storage.repository import Row


class GitLabMergeRequestImportScript(GitLabImportScript):
    resource = "merge-request"
    depends_on = ("repository", "contributor")
    import_window_days = 90

    def container_failure_message(self, container: Row, error: Exception) -> str:
        return f"Failed to import merge requests for {container['full_name']}: {error}"

    async def import_container(self, session: ImportSession, container: Row) -> None:
        full_name = container["full_name"]
        context = session.context

        async for page in session.client.iter_merge_request_pages(full_name, context.start_date, context.end_date):
            for raw in page:
                record_id = f"{full_name}!{raw.get('iid')}"
                if not context.in_window(self.record_timestamp(session, record_id, raw.get("updated_at"))):
                    continue
                self.import_record(
                    session,
                    record_id,
                    lambda raw=raw: self._upsert_merge_request(session, container, raw),
                )

    def _upsert_merge_request(self, session: ImportSession, repository: Row, raw: dict[str, Any]) -> None:
        merge_request = map_merge_request(raw)
        author_id = session.contributors.resolve(merge_request.author)

        mutable = {
            "title": merge_request.title,
            "state": merge_request.state,
            "target_branch": merge_request.target_branch,
            "merged_at": merge_request.merged_at,
            "closed_at": merge_request.closed_at,
        }
        session.storage.pull_requests.upsert(
            {"repository_id": repository["id"], "number": merge_request.number},
            create={
                **mutable,
                "author_id": author_id,
                "source_branch": merge_request.source_branch,
                "url": merge_request.url,
                "created_at": merge_request.created_at,
            },
            update=mutable,
        )
