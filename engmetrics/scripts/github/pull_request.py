"""
GitHub pull request import.

Pull requests are listed sorted by updated desc; pages are consumed until
one reaches past the window start. Upserted on (repository, number).
"""

from typing import Any

from engmetrics.mappers.github import map_pull_request
from engmetrics.scripts.base import ImportSession
from engmetrics.scripts.github.base import GitHubImportScript, page_predates_window
from engmetrics.storage.repository import Row


class GitHubPullRequestImportScript(GitHubImportScript):
    resource = "pull-request"
    depends_on = ("repository", "contributor")
    import_window_days = 90

    def container_failure_message(self, container: Row, error: Exception) -> str:
        return f"Failed to import pull requests for {container['full_name']}: {error}"

    async def import_container(self, session: ImportSession, container: Row) -> None:
        full_name = container["full_name"]

        async for page in session.client.iter_pull_request_pages(full_name):
            for raw in page:
                record_id = f"{full_name}#{raw.get('number')}"
                if not session.context.in_window(self.record_timestamp(session, record_id, raw.get("updated_at"))):
                    continue
                self.import_record(
                    session,
                    record_id,
                    lambda raw=raw: self._upsert_pull_request(session, container, raw),
                )

            if page_predates_window(page, session.context.start_date):
                break

    def _upsert_pull_request(self, session: ImportSession, repository: Row, raw: dict[str, Any]) -> None:
        pull_request = map_pull_request(raw)
        author_id = session.contributors.resolve(pull_request.author)

        mutable = {
            "title": pull_request.title,
            "state": pull_request.state,
            "target_branch": pull_request.target_branch,
            "merged_at": pull_request.merged_at,
            "closed_at": pull_request.closed_at,
        }
        if pull_request.iteration_count is not None:
            mutable["iteration_count"] = pull_request.iteration_count

        session.storage.pull_requests.upsert(
            {"repository_id": repository["id"], "number": pull_request.number},
            create={
                **mutable,
                "author_id": author_id,
                "source_branch": pull_request.source_branch,
                "url": pull_request.url,
                "created_at": pull_request.created_at,
            },
            update=mutable,
        )
