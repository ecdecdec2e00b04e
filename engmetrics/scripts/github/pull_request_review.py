"""
GitHub pull request review import.

Containers are the pull requests of enabled repositories whose rows were
refreshed inside the import window (the pull-request script runs first).
Every submitted review of those pull requests is upserted on its
"github-{id}" external id.
"""

from engmetrics.domain.enums import Provider
from engmetrics.domain.records import CanonicalReview
from engmetrics.mappers.github import map_review
from engmetrics.scripts.base import ImportSession, RunContext, enabled_repositories
from engmetrics.scripts.github.base import GitHubImportScript
from engmetrics.storage import StorageHandle
from engmetrics.storage.repository import Row


class GitHubPullRequestReviewImportScript(GitHubImportScript):
    resource = "pull-request-review"
    depends_on = ("pull-request", "contributor")
    import_window_days = 90

    def resolve_containers(self, storage: StorageHandle, context: RunContext) -> list[Row]:
        repositories = {repo["id"]: repo for repo in enabled_repositories(storage, context, Provider.GITHUB.value)}
        if not repositories:
            return []

        pull_requests = storage.pull_requests.find_many(
            {
                "repository_id": {"in": list(repositories)},
                "updated_at": {"gte": context.start_date, "lte": context.end_date},
            },
            order_by=[("number", "asc")],
        )
        return [{**pr, "full_name": repositories[pr["repository_id"]]["full_name"]} for pr in pull_requests]

    def describe_container(self, container: Row) -> str:
        return f"{container['full_name']}#{container['number']}"

    def container_failure_message(self, container: Row, error: Exception) -> str:
        return f"Failed to import reviews for {self.describe_container(container)}: {error}"

    async def import_container(self, session: ImportSession, container: Row) -> None:
        async for page in session.client.iter_review_pages(container["full_name"], container["number"]):
            for raw in page:
                review = self.map_record(session, raw.get("id"), map_review, raw)
                if review is None:
                    continue
                self.import_record(
                    session,
                    review.external_id,
                    lambda review=review: self._upsert_review(session, container, review),
                )

    def _upsert_review(self, session: ImportSession, pull_request: Row, review: CanonicalReview) -> None:
        reviewer_id = session.contributors.resolve(review.reviewer)

        session.storage.pull_request_reviews.upsert(
            {"external_id": review.external_id},
            create={
                "pull_request_id": pull_request["id"],
                "reviewer_id": reviewer_id,
                "state": review.state,
                "submitted_at": review.submitted_at,
            },
            update={"state": review.state, "submitted_at": review.submitted_at},
        )
