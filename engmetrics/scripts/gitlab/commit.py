"""
GitLab commit import.

Lists commits of the repository's default branch committed inside the
import window. Line stats come with the list items, so no per-commit
detail request is needed. Commits whose author has no email, name or date
cannot be attributed and are skipped.
"""

from engmetrics.domain.records import CanonicalCommit
from engmetrics.mappers.gitlab import map_commit
from engmetrics.scripts.base import ImportSession
from engmetrics.scripts.gitlab.base import GitLabImportScript
from engmetrics.storage.repository import Row


class GitLabCommitImportScript(GitLabImportScript):
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
                commit = self.map_record(session, raw.get("id"), map_commit, raw)
                if commit is None:
                    self.logger.debug(f"Skipping commit {raw.get('id')} in {full_name}: not attributable")
                    continue
                if not context.in_window(commit.committed_at):
                    continue
                self.import_record(
                    session,
                    commit.sha,
                    lambda commit=commit: self._upsert_commit(session, container, commit),
                )

    def _upsert_commit(self, session: ImportSession, repository: Row, commit: CanonicalCommit) -> None:
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
