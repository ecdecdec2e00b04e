"""
GitHub commit import.

Lists commits of the repository's default branch committed inside the
import window, then reads each commit's detail for line stats and the
number of files changed. Commits whose git author has no email, name or
date cannot be attributed and are skipped.
"""

from typing import Any

from engmetrics.domain.errors import MappingError
from engmetrics.mappers.github import map_commit
from engmetrics.scripts.base import ImportSession
from engmetrics.scripts.github.base import GitHubImportScript
from engmetrics.storage.repository import Row


class GitHubCommitImportScript(GitHubImportScript):
    resource = "commit"
    depends_on = ("repository", "contributor")
    import_window_days = 90

    def container_failure_message(self, container: Row, error: Exception) -> str:
        return f"Failed to import commits for {container['full_name']}: {error}"

    async def import_container(self, session: ImportSession, container: Row) -> None:
        full_name = container["full_name"]
        branch = container.get("default_branch")
        context = session.context

        async for page in session.client.iter_commit_pages(full_name, context.start_date, context.end_date, branch):
            for raw in page:
                summary = self.map_record(session, raw.get("sha"), map_commit, raw)
                if summary is None:
                    self.logger.debug(f"Skipping commit {raw.get('sha')} in {full_name}: not attributable")
                    continue
                if not context.in_window(summary.committed_at):
                    continue

                detail = await session.client.get_commit(full_name, summary.sha)
                self.import_record(
                    session,
                    summary.sha,
                    lambda detail=detail: self._upsert_commit(session, container, detail),
                )

    def _upsert_commit(self, session: ImportSession, repository: Row, raw: dict[str, Any]) -> None:
        commit = map_commit(raw)
        if commit is None:
            raise MappingError(f"Commit detail {raw.get('sha')} has no attributable author", record_id=raw.get("sha"))
        author_id = session.contributors.resolve(commit.author)

        stats = {
            "message": commit.message,
            "lines_added": commit.lines_added,
            "lines_removed": commit.lines_removed,
            "files_changed": commit.files_changed,
        }
        session.storage.commits.upsert(
            {"repository_id": repository["id"], "sha": commit.sha},
            create={
                **stats,
                "author_id": author_id,
                "branch": repository.get("default_branch"),
                "committed_at": commit.committed_at,
            },
            update=stats,
        )
