"""
Tests for the GitHub import scripts

Provider clients are replaced with in-memory fakes through client_factory;
storage is a real in-memory database.
"""

from datetime import UTC, datetime, timedelta

import pytest

from engmetrics.domain.enums import IssueStatus, IssueType, LogLevel, PipelineStatus, PullRequestState
from engmetrics.providers.github import GitHubApiError
from engmetrics.scripts.base import ImportSession
from engmetrics.scripts.contributor import ContributorResolver
from engmetrics.scripts.github import (
    GitHubCommitImportScript,
    GitHubIssueImportScript,
    GitHubPipelineRunImportScript,
    GitHubPullRequestImportScript,
    GitHubPullRequestReviewImportScript,
)
from engmetrics.scripts.github.base import page_predates_window
from engmetrics.utils.datetime_utils import utc_now


class FakeGitHubClient:
    """Serves canned pages; an Exception entry is raised instead of yielded."""

    def __init__(self, issues=None, pulls=None, commits=None, details=None, reviews=None, runs=None, jobs=None):
        self.issues = issues or {}
        self.pulls = pulls or {}
        self.commits = commits or {}
        self.details = details or {}
        self.reviews = reviews or {}
        self.runs = runs or {}
        self.jobs = jobs or {}
        self.calls = []

    async def _serve(self, pages):
        for page in pages:
            if isinstance(page, Exception):
                raise page
            yield page

    def iter_issue_pages(self, full_name):
        self.calls.append(("issues", full_name))
        return self._serve(self.issues.get(full_name, []))

    def iter_pull_request_pages(self, full_name):
        return self._serve(self.pulls.get(full_name, []))

    def iter_commit_pages(self, full_name, since, until, branch=None):
        self.calls.append(("commits", full_name, branch))
        return self._serve(self.commits.get(full_name, []))

    async def get_commit(self, full_name, sha):
        self.calls.append(("commit", sha))
        return self.details[sha]

    def iter_review_pages(self, full_name, number):
        return self._serve(self.reviews.get((full_name, number), []))

    def iter_workflow_run_pages(self, full_name, start, end):
        return self._serve(self.runs.get(full_name, []))

    async def list_jobs(self, full_name, run_id):
        return self.jobs.get(run_id, [])


def raw_issue(number, updated_at="2025-03-10T10:00:00Z", **extra):
    return {
        "id": 1000 + number,
        "number": number,
        "title": f"Issue {number}",
        "body": "Steps to reproduce",
        "state": "open",
        "labels": [{"name": "bug"}],
        "user": {"login": "ada", "id": 1},
        "assignee": None,
        "created_at": "2025-03-01T09:00:00Z",
        "updated_at": updated_at,
        "html_url": f"https://github.com/acme/api/issues/{number}",
        **extra,
    }


def raw_pull_request(number, updated_at="2025-03-11T10:00:00Z", **extra):
    return {
        "number": number,
        "title": f"PR {number}",
        "state": "closed",
        "draft": False,
        "merged_at": "2025-03-11T10:00:00Z",
        "closed_at": "2025-03-11T10:00:00Z",
        "created_at": "2025-03-09T10:00:00Z",
        "updated_at": updated_at,
        "head": {"ref": "feature/login"},
        "base": {"ref": "main"},
        "user": {"login": "ada"},
        "html_url": f"https://github.com/acme/api/pull/{number}",
        "commits": 3,
        **extra,
    }


def raw_commit(sha, email="Ada@Acme.io", date="2025-03-10T10:00:00Z"):
    return {
        "sha": sha,
        "commit": {"message": f"Commit {sha}", "author": {"email": email, "name": "Ada", "date": date}},
        "author": {"login": "ada"},
    }


# ============================================================
# Issues
# ============================================================


class TestGitHubIssueImport:
    """Tests for GitHubIssueImportScript"""

    @pytest.mark.asyncio
    async def test_imports_in_window_issues_only(self, storage, github_source, repository, context_for):
        """Test that pull requests and out-of-window issues are dropped"""
        client = FakeGitHubClient(
            issues={
                "acme/api": [
                    [
                        raw_issue(1),
                        raw_issue(2, pull_request={"url": "https://api.github.com/repos/acme/api/pulls/2"}),
                        raw_issue(3, updated_at="2024-01-01T00:00:00Z"),
                    ]
                ]
            }
        )
        context = context_for(github_source)

        imported = await GitHubIssueImportScript(client_factory=lambda ctx: client).run(storage, context)

        assert imported == 1
        issue = storage.issues.find_first({"key": "acme/api#1"})
        assert issue["type"] == IssueType.BUG
        assert issue["status"] == IssueStatus.TODO
        assert issue["project_id"] == storage.projects.find_first({"key": "acme/api"})["id"]
        assert storage.contributors.find_unique(issue["reporter_id"])["email"] == "ada@github.local"
        assert storage.issues.count() == 1
        assert storage.data_source_runs.find_unique(context.run_id)["records_imported"] == 1

    @pytest.mark.asyncio
    async def test_window_bounds_inclusive(self, storage, github_source, repository, context_for, now):
        """Test that records updated exactly at the window bounds are imported"""
        start = now - timedelta(days=30)
        client = FakeGitHubClient(
            issues={
                "acme/api": [
                    [
                        raw_issue(1, updated_at=now.strftime("%Y-%m-%dT%H:%M:%SZ")),
                        raw_issue(2, updated_at=start.strftime("%Y-%m-%dT%H:%M:%SZ")),
                    ]
                ]
            }
        )

        imported = await GitHubIssueImportScript(client_factory=lambda ctx: client).run(
            storage, context_for(github_source, days=30)
        )

        assert imported == 2

    @pytest.mark.asyncio
    async def test_reimport_updates_in_place(self, storage, github_source, repository, context_for):
        """Test that running twice keeps one row and refreshes its fields"""
        first = FakeGitHubClient(issues={"acme/api": [[raw_issue(1)]]})
        second = FakeGitHubClient(issues={"acme/api": [[raw_issue(1, title="Renamed", state="closed")]]})

        await GitHubIssueImportScript(client_factory=lambda ctx: first).run(storage, context_for(github_source))
        await GitHubIssueImportScript(client_factory=lambda ctx: second).run(storage, context_for(github_source))

        assert storage.issues.count() == 1
        issue = storage.issues.find_first({"key": "acme/api#1"})
        assert issue["title"] == "Renamed"
        assert issue["status"] == IssueStatus.DONE

    @pytest.mark.asyncio
    async def test_missing_project_logged_and_skipped(
        self, storage, github_source, repository, repository_factory, context_for
    ):
        """Test that a repository without a project logs one error and others continue"""
        repository_factory(github_source, "acme/web")
        client = FakeGitHubClient(issues={"acme/api": [[raw_issue(1)]], "acme/web": [[raw_issue(5)]]})
        context = context_for(github_source)

        imported = await GitHubIssueImportScript(client_factory=lambda ctx: client).run(storage, context)

        assert imported == 1
        logs = storage.import_logs.find_many({"run_id": context.run_id})
        assert len(logs) == 1
        assert logs[0]["level"] == LogLevel.ERROR
        assert logs[0]["message"] == "Project not found for repository acme/web"
        assert logs[0]["details"]["container"] == "acme/web"
        assert logs[0]["details"]["error_type"] == "MissingDependencyError"
        assert ("issues", "acme/web") not in client.calls

    @pytest.mark.asyncio
    async def test_api_failure_isolated_to_container(
        self, storage, github_source, repository, repository_factory, project_factory, context_for
    ):
        """Test that a provider failure in one repository does not stop the next"""
        repository_factory(github_source, "acme/web")
        project_factory(github_source, "acme/web")
        client = FakeGitHubClient(
            issues={
                "acme/api": [GitHubApiError("GitHub API error (HTTP 500)", status_code=500)],
                "acme/web": [[raw_issue(5)]],
            }
        )
        context = context_for(github_source)

        imported = await GitHubIssueImportScript(client_factory=lambda ctx: client).run(storage, context)

        assert imported == 1
        logs = storage.import_logs.find_many({"run_id": context.run_id})
        assert len(logs) == 1
        assert logs[0]["details"]["status_code"] == 500
        assert "acme/api" in logs[0]["message"]
        assert storage.data_source_runs.find_unique(context.run_id)["records_imported"] == 1

    @pytest.mark.asyncio
    async def test_malformed_record_skipped(self, storage, github_source, repository, context_for):
        """Test that one malformed issue does not stop the rest of the page"""
        broken = raw_issue(2)
        del broken["title"]
        client = FakeGitHubClient(issues={"acme/api": [[raw_issue(1), broken, raw_issue(3)]]})

        imported = await GitHubIssueImportScript(client_factory=lambda ctx: client).run(
            storage, context_for(github_source)
        )

        assert imported == 2
        assert storage.issues.find_first({"key": "acme/api#2"}) is None

    @pytest.mark.asyncio
    async def test_unparsable_updated_at_skipped_across_repositories(
        self, storage, github_source, repository, repository_factory, project_factory, context_for
    ):
        """Test that a garbled timestamp skips one issue while later repositories still import"""
        repository_factory(github_source, "acme/web")
        project_factory(github_source, "acme/web")
        client = FakeGitHubClient(
            issues={
                "acme/api": [[raw_issue(1), raw_issue(2, updated_at="not-a-date")]],
                "acme/web": [[raw_issue(3)]],
            }
        )
        context = context_for(github_source)

        imported = await GitHubIssueImportScript(client_factory=lambda ctx: client).run(storage, context)

        assert imported == 2
        assert storage.issues.find_first({"key": "acme/api#2"}) is None
        assert storage.issues.find_first({"key": "acme/web#3"}) is not None
        assert storage.import_logs.count({"run_id": context.run_id}) == 0
        assert storage.data_source_runs.find_unique(context.run_id)["records_imported"] == 2

    @pytest.mark.asyncio
    async def test_non_string_created_at_skipped(self, storage, github_source, repository, context_for):
        """Test that a wrongly typed timestamp inside the mapper only skips that issue"""
        client = FakeGitHubClient(issues={"acme/api": [[raw_issue(1, created_at=12345), raw_issue(2)]]})

        imported = await GitHubIssueImportScript(client_factory=lambda ctx: client).run(
            storage, context_for(github_source)
        )

        assert imported == 1
        assert storage.issues.find_first({"key": "acme/api#2"}) is not None

    @pytest.mark.asyncio
    async def test_no_repositories(self, storage, github_source, context_for):
        """Test that a data source without containers records zero and builds no client"""
        factory_calls = []
        context = context_for(github_source)

        imported = await GitHubIssueImportScript(client_factory=factory_calls.append).run(storage, context)

        assert imported == 0
        assert factory_calls == []
        assert storage.data_source_runs.find_unique(context.run_id)["records_imported"] == 0

    @pytest.mark.asyncio
    async def test_disabled_repository_ignored(self, storage, github_source, repository_factory, context_for):
        """Test that disabled repositories are not containers"""
        repository_factory(github_source, "acme/legacy", is_enabled=False)
        client = FakeGitHubClient()

        imported = await GitHubIssueImportScript(client_factory=lambda ctx: client).run(
            storage, context_for(github_source)
        )

        assert imported == 0
        assert client.calls == []


# ============================================================
# Commits
# ============================================================


class TestGitHubCommitImport:
    """Tests for GitHubCommitImportScript"""

    @pytest.mark.asyncio
    async def test_imports_commit_with_stats(self, storage, github_source, repository, context_for):
        """Test that detail stats are stored and the default branch is requested"""
        detail = {
            **raw_commit("abc123"),
            "stats": {"additions": 10, "deletions": 2},
            "files": [{"filename": "a.py"}, {"filename": "b.py"}],
        }
        client = FakeGitHubClient(commits={"acme/api": [[raw_commit("abc123")]]}, details={"abc123": detail})

        imported = await GitHubCommitImportScript(client_factory=lambda ctx: client).run(
            storage, context_for(github_source, resource="commit")
        )

        assert imported == 1
        assert ("commits", "acme/api", "main") in client.calls
        commit = storage.commits.find_first({"sha": "abc123"})
        assert commit["lines_added"] == 10
        assert commit["lines_removed"] == 2
        assert commit["files_changed"] == 2
        assert commit["branch"] == "main"
        assert commit["repository_id"] == repository["id"]
        assert storage.contributors.find_unique(commit["author_id"])["email"] == "ada@acme.io"

    @pytest.mark.asyncio
    async def test_unattributable_commit_skipped(self, storage, github_source, repository, context_for):
        """Test that a commit without an author email is skipped before fetching detail"""
        client = FakeGitHubClient(commits={"acme/api": [[raw_commit("nomail", email=None)]]})

        imported = await GitHubCommitImportScript(client_factory=lambda ctx: client).run(
            storage, context_for(github_source, resource="commit")
        )

        assert imported == 0
        assert ("commit", "nomail") not in client.calls

    @pytest.mark.asyncio
    async def test_out_of_window_commit_skipped(self, storage, github_source, repository, context_for):
        """Test that commits outside the window are not fetched"""
        client = FakeGitHubClient(commits={"acme/api": [[raw_commit("old", date="2020-01-01T00:00:00Z")]]})

        imported = await GitHubCommitImportScript(client_factory=lambda ctx: client).run(
            storage, context_for(github_source, resource="commit")
        )

        assert imported == 0
        assert storage.commits.count() == 0

    @pytest.mark.asyncio
    async def test_commit_without_sha_skipped(self, storage, github_source, repository, context_for):
        """Test that a listed commit without a sha is skipped and the rest are imported"""
        headless = raw_commit("ignored")
        del headless["sha"]
        client = FakeGitHubClient(
            commits={"acme/api": [[headless, raw_commit("abc123")]]},
            details={"abc123": raw_commit("abc123")},
        )
        context = context_for(github_source, resource="commit")

        imported = await GitHubCommitImportScript(client_factory=lambda ctx: client).run(storage, context)

        assert imported == 1
        assert storage.commits.find_first({"sha": "abc123"}) is not None
        assert storage.data_source_runs.find_unique(context.run_id)["records_imported"] == 1


# ============================================================
# Pull requests and reviews
# ============================================================


class TestGitHubPullRequestImport:
    """Tests for GitHubPullRequestImportScript"""

    @pytest.mark.asyncio
    async def test_imports_merged_pull_request(self, storage, github_source, repository, context_for):
        """Test state inference and iteration count"""
        client = FakeGitHubClient(pulls={"acme/api": [[raw_pull_request(7)]]})

        imported = await GitHubPullRequestImportScript(client_factory=lambda ctx: client).run(
            storage, context_for(github_source, resource="pull-request")
        )

        assert imported == 1
        pull_request = storage.pull_requests.find_first({"number": 7})
        assert pull_request["state"] == PullRequestState.MERGED
        assert pull_request["iteration_count"] == 3
        assert pull_request["source_branch"] == "feature/login"
        assert pull_request["target_branch"] == "main"

    @pytest.mark.asyncio
    async def test_stops_after_page_past_window(self, storage, github_source, repository, context_for):
        """Test that pages are not consumed once a page reaches past the window start"""
        client = FakeGitHubClient(
            pulls={
                "acme/api": [
                    [raw_pull_request(9), raw_pull_request(8, updated_at="2024-06-01T00:00:00Z")],
                    [raw_pull_request(1)],
                ]
            }
        )

        imported = await GitHubPullRequestImportScript(client_factory=lambda ctx: client).run(
            storage, context_for(github_source, resource="pull-request")
        )

        assert imported == 1
        assert storage.pull_requests.find_first({"number": 1}) is None

    @pytest.mark.asyncio
    async def test_garbage_updated_at_skipped(self, storage, github_source, repository, context_for):
        """Test that an unparsable updated_at skips one pull request and keeps paging"""
        client = FakeGitHubClient(
            pulls={
                "acme/api": [
                    [raw_pull_request(7, updated_at="garbage"), raw_pull_request(8)],
                    [raw_pull_request(9)],
                ]
            }
        )

        imported = await GitHubPullRequestImportScript(client_factory=lambda ctx: client).run(
            storage, context_for(github_source, resource="pull-request")
        )

        assert imported == 2
        assert storage.pull_requests.find_first({"number": 7}) is None
        assert storage.pull_requests.find_first({"number": 9}) is not None


class TestGitHubReviewImport:
    """Tests for GitHubPullRequestReviewImportScript"""

    def add_pull_request(self, storage, repository, number=7):
        return storage.pull_requests.create(
            {
                "repository_id": repository["id"],
                "number": number,
                "title": "PR",
                "state": PullRequestState.OPEN,
                "created_at": "2025-03-09T10:00:00Z",
            }
        )

    @pytest.mark.asyncio
    async def test_imports_submitted_reviews(self, storage, github_source, repository, context_for):
        """Test that submitted reviews are stored and pending ones skipped"""
        pull_request = self.add_pull_request(storage, repository)
        client = FakeGitHubClient(
            reviews={
                ("acme/api", 7): [
                    [
                        {
                            "id": 900,
                            "state": "APPROVED",
                            "submitted_at": "2025-03-10T10:00:00Z",
                            "user": {"login": "bob"},
                        },
                        {"id": 901, "state": "PENDING", "user": {"login": "eve"}},
                    ]
                ]
            }
        )
        context = context_for(github_source, resource="pull-request-review", end=utc_now())

        imported = await GitHubPullRequestReviewImportScript(client_factory=lambda ctx: client).run(storage, context)

        assert imported == 1
        review = storage.pull_request_reviews.find_first({"external_id": "github-900"})
        assert review["pull_request_id"] == pull_request["id"]
        assert review["state"] == "APPROVED"
        assert storage.contributors.find_unique(review["reviewer_id"])["username"] == "bob"

    @pytest.mark.asyncio
    async def test_review_without_id_skipped(self, storage, github_source, repository, context_for):
        """Test that a submitted review without an id does not stop the others"""
        self.add_pull_request(storage, repository)
        submitted = {"state": "APPROVED", "submitted_at": "2025-03-10T10:00:00Z", "user": {"login": "bob"}}
        client = FakeGitHubClient(reviews={("acme/api", 7): [[dict(submitted), {**submitted, "id": 902}]]})
        context = context_for(github_source, resource="pull-request-review", end=utc_now())

        imported = await GitHubPullRequestReviewImportScript(client_factory=lambda ctx: client).run(storage, context)

        assert imported == 1
        assert storage.pull_request_reviews.find_first({"external_id": "github-902"}) is not None
        assert storage.import_logs.count({"run_id": context.run_id}) == 0

    @pytest.mark.asyncio
    async def test_stale_pull_requests_not_containers(self, storage, github_source, repository, context_for):
        """Test that pull requests not refreshed inside the window are ignored"""
        self.add_pull_request(storage, repository)
        client = FakeGitHubClient()
        context = context_for(github_source, resource="pull-request-review", end=utc_now() - timedelta(days=60))

        imported = await GitHubPullRequestReviewImportScript(client_factory=lambda ctx: client).run(storage, context)

        assert imported == 0


# ============================================================
# Pipeline runs
# ============================================================


class TestGitHubPipelineRunImport:
    """Tests for GitHubPipelineRunImportScript"""

    def workflow_run(self, run_id, run_number, path=".github/workflows/ci.yml"):
        return {
            "id": run_id,
            "run_number": run_number,
            "path": path,
            "status": "completed",
            "conclusion": "success",
            "head_branch": "main",
            "head_sha": "abc123",
            "event": "push",
            "created_at": "2025-03-10T10:00:00Z",
            "run_started_at": "2025-03-10T10:00:00Z",
            "updated_at": "2025-03-10T10:05:00Z",
        }

    @pytest.mark.asyncio
    async def test_imports_run_with_stages(self, storage, github_source, repository, context_for):
        """Test run status, duration and job stages"""
        pipeline = storage.pipelines.create(
            {
                "repository_id": repository["id"],
                "external_id": "11",
                "name": "CI",
                "config_path": ".github/workflows/ci.yml",
            }
        )
        client = FakeGitHubClient(
            runs={
                "acme/api": [[self.workflow_run(555, 12), self.workflow_run(556, 13, path=".github/workflows/x.yml")]]
            },
            jobs={
                "555": [
                    {
                        "id": 1,
                        "name": "build",
                        "status": "completed",
                        "conclusion": "success",
                        "started_at": "2025-03-10T10:00:00Z",
                        "completed_at": "2025-03-10T10:02:00Z",
                    }
                ]
            },
        )

        imported = await GitHubPipelineRunImportScript(client_factory=lambda ctx: client).run(
            storage, context_for(github_source, resource="pipeline-run")
        )

        assert imported == 1
        run = storage.pipeline_runs.find_first({"pipeline_id": pipeline["id"]})
        assert run["run_number"] == 12
        assert run["status"] == PipelineStatus.SUCCESS
        assert run["duration_ms"] == 300_000
        assert run["trigger_event"] == "push"
        stage = storage.pipeline_stages.find_first({"pipeline_run_id": run["id"]})
        assert stage["name"] == "build"
        assert stage["duration_ms"] == 120_000


# ============================================================
# Record-level recovery
# ============================================================


class TestRecordRecovery:
    """Tests for per-record skipping and what is not recovered"""

    def session_for(self, storage, context):
        return ImportSession(
            storage=storage, context=context, client=None, contributors=ContributorResolver(storage, "GITHUB")
        )

    def test_programming_error_propagates(self, storage, github_source, context_for):
        """Test that errors other than mapping and constraint failures fail the run"""
        script = GitHubIssueImportScript()
        session = self.session_for(storage, context_for(github_source))

        def upsert():
            raise KeyError("project_id")

        with pytest.raises(KeyError):
            script.import_record(session, "acme/api#1", upsert)
        assert session.skipped == 0

    def test_unparsable_window_timestamp_counts_skip(self, storage, github_source, context_for):
        """Test that record_timestamp returns None and counts the record as skipped"""
        script = GitHubIssueImportScript()
        session = self.session_for(storage, context_for(github_source))

        assert script.record_timestamp(session, "acme/api#1", "not-a-date") is None
        assert script.record_timestamp(session, "acme/api#2", "2025-03-10T10:00:00Z") == datetime(
            2025, 3, 10, 10, tzinfo=UTC
        )
        assert session.skipped == 1

    def test_page_boundary_ignores_unparsable_timestamps(self):
        """Test that garbled timestamps neither stop nor break paging"""
        start = datetime(2025, 3, 1, tzinfo=UTC)

        assert not page_predates_window([{"updated_at": "garbage"}, {"updated_at": "2025-03-10T00:00:00Z"}], start)
        assert page_predates_window([{"updated_at": "garbage"}, {"updated_at": "2025-02-10T00:00:00Z"}], start)
        assert not page_predates_window([{"updated_at": "garbage"}], start)
