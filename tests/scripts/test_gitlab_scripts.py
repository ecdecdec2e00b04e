"""
Tests for the GitLab import scripts

Provider clients are replaced with in-memory fakes through client_factory;
storage is a real in-memory database.
"""

import pytest

from engmetrics.domain.enums import IssuePriority, IssueType, LogLevel, PipelineStatus, Provider, PullRequestState
from engmetrics.mappers.gitlab import GITLAB_CI_CONFIG_PATH
from engmetrics.providers.gitlab import GitLabApiError
from engmetrics.scripts.gitlab import (
    GitLabCommitImportScript,
    GitLabIssueImportScript,
    GitLabMergeRequestImportScript,
    GitLabPipelineRunImportScript,
)


class FakeGitLabClient:
    """Serves canned pages; an Exception entry is raised instead of yielded."""

    def __init__(self, issues=None, merge_requests=None, commits=None, pipelines=None, details=None, jobs=None):
        self.issues = issues or {}
        self.merge_requests = merge_requests or {}
        self.commits = commits or {}
        self.pipelines = pipelines or {}
        self.details = details or {}
        self.jobs = jobs or {}
        self.calls = []

    async def _serve(self, pages):
        for page in pages:
            if isinstance(page, Exception):
                raise page
            yield page

    def iter_issue_pages(self, full_name, start, end):
        self.calls.append(("issues", full_name))
        return self._serve(self.issues.get(full_name, []))

    def iter_merge_request_pages(self, full_name, start, end):
        return self._serve(self.merge_requests.get(full_name, []))

    def iter_commit_pages(self, full_name, since, until, ref=None):
        self.calls.append(("commits", full_name, ref))
        return self._serve(self.commits.get(full_name, []))

    def iter_pipeline_pages(self, full_name, start, end):
        self.calls.append(("pipelines", full_name))
        return self._serve(self.pipelines.get(full_name, []))

    async def get_pipeline(self, full_name, pipeline_id):
        return self.details[str(pipeline_id)]

    async def list_jobs(self, full_name, pipeline_id):
        return self.jobs.get(str(pipeline_id), [])


@pytest.fixture
def gitlab_repository(gitlab_source, repository_factory, project_factory):
    """Enabled GitLab repository acme/api with its matching project"""
    repo = repository_factory(gitlab_source, "acme/api", provider=Provider.GITLAB)
    project_factory(gitlab_source, "acme/api", provider=Provider.GITLAB)
    return repo


def raw_issue(iid, updated_at="2025-03-10T10:00:00Z", **extra):
    return {
        "id": 5000 + iid,
        "iid": iid,
        "title": f"Issue {iid}",
        "description": "Steps to reproduce",
        "state": "opened",
        "labels": ["bug", "high"],
        "created_at": "2025-03-01T09:00:00Z",
        "updated_at": updated_at,
        "web_url": f"https://gitlab.com/acme/api/-/issues/{iid}",
        "author": {"id": 11, "username": "alice", "name": "Alice"},
        "assignees": [],
        **extra,
    }


def raw_merge_request(iid, updated_at="2025-03-11T10:00:00Z", **extra):
    return {
        "iid": iid,
        "title": f"MR {iid}",
        "state": "merged",
        "draft": False,
        "source_branch": "feature/cache",
        "target_branch": "main",
        "created_at": "2025-03-09T10:00:00Z",
        "updated_at": updated_at,
        "merged_at": "2025-03-11T10:00:00Z",
        "author": {"id": 11, "username": "alice"},
        "web_url": f"https://gitlab.com/acme/api/-/merge_requests/{iid}",
        **extra,
    }


def raw_commit(sha, committed_date="2025-03-10T10:00:00Z", email="Alice@Acme.io"):
    return {
        "id": sha,
        "message": f"Commit {sha}",
        "author_name": "Alice",
        "author_email": email,
        "committed_date": committed_date,
        "stats": {"additions": 5, "deletions": 2, "total": 7},
    }


def raw_pipeline(pipeline_id, updated_at="2025-03-12T10:05:00Z"):
    return {"id": pipeline_id, "status": "success", "ref": "main", "sha": "a1", "updated_at": updated_at}


def pipeline_detail(pipeline_id):
    return {
        **raw_pipeline(pipeline_id),
        "source": "push",
        "started_at": "2025-03-12T10:00:00Z",
        "finished_at": "2025-03-12T10:05:00Z",
        "duration": 300,
    }


# ============================================================
# Issues
# ============================================================


class TestGitLabIssueImport:
    """Tests for GitLabIssueImportScript"""

    @pytest.mark.asyncio
    async def test_imports_in_window_issues(self, storage, gitlab_source, gitlab_repository, context_for):
        """Test that in-window issues are upserted with label-derived fields"""
        client = FakeGitLabClient(
            issues={"acme/api": [[raw_issue(1), raw_issue(2, updated_at="2024-01-01T00:00:00Z")]]}
        )
        context = context_for(gitlab_source)

        imported = await GitLabIssueImportScript(client_factory=lambda ctx: client).run(storage, context)

        assert imported == 1
        issue = storage.issues.find_first({"key": "acme/api#1"})
        assert issue["type"] == IssueType.BUG
        assert issue["priority"] == IssuePriority.HIGH
        assert storage.contributors.find_unique(issue["reporter_id"])["email"] == "alice@gitlab.local"
        assert storage.data_source_runs.find_unique(context.run_id)["records_imported"] == 1

    @pytest.mark.asyncio
    async def test_malformed_records_skipped(self, storage, gitlab_source, gitlab_repository, context_for):
        """Test that an issue without title or with a garbled timestamp does not stop the page"""
        broken = raw_issue(2)
        del broken["title"]
        client = FakeGitLabClient(
            issues={"acme/api": [[raw_issue(1), broken, raw_issue(3, updated_at="not-a-date"), raw_issue(4)]]}
        )

        imported = await GitLabIssueImportScript(client_factory=lambda ctx: client).run(
            storage, context_for(gitlab_source)
        )

        assert imported == 2
        assert storage.issues.find_first({"key": "acme/api#2"}) is None
        assert storage.issues.find_first({"key": "acme/api#4"}) is not None

    @pytest.mark.asyncio
    async def test_missing_project_logged(self, storage, gitlab_source, repository_factory, context_for):
        """Test that a repository without a project logs one error without fetching issues"""
        repository_factory(gitlab_source, "acme/web", provider=Provider.GITLAB)
        client = FakeGitLabClient(issues={"acme/web": [[raw_issue(1)]]})
        context = context_for(gitlab_source)

        imported = await GitLabIssueImportScript(client_factory=lambda ctx: client).run(storage, context)

        assert imported == 0
        logs = storage.import_logs.find_many({"run_id": context.run_id})
        assert len(logs) == 1
        assert logs[0]["message"] == "Project not found for repository acme/web"
        assert client.calls == []

    @pytest.mark.asyncio
    async def test_github_repositories_ignored(self, storage, gitlab_source, repository, context_for):
        """Test that repositories of another provider are not GitLab containers"""
        client = FakeGitLabClient(issues={"acme/api": [[raw_issue(1)]]})

        imported = await GitLabIssueImportScript(client_factory=lambda ctx: client).run(
            storage, context_for(gitlab_source)
        )

        assert imported == 0
        assert client.calls == []


# ============================================================
# Merge requests
# ============================================================


class TestGitLabMergeRequestImport:
    """Tests for GitLabMergeRequestImportScript"""

    @pytest.mark.asyncio
    async def test_stored_as_pull_requests(self, storage, gitlab_source, gitlab_repository, context_for):
        """Test that merge requests are upserted on (repository, iid)"""
        client = FakeGitLabClient(merge_requests={"acme/api": [[raw_merge_request(7)]]})
        script = GitLabMergeRequestImportScript(client_factory=lambda ctx: client)

        await script.run(storage, context_for(gitlab_source, resource="merge-request"))
        await script.run(storage, context_for(gitlab_source, resource="merge-request"))

        assert storage.pull_requests.count() == 1
        pull_request = storage.pull_requests.find_first({"repository_id": gitlab_repository["id"], "number": 7})
        assert pull_request["state"] == PullRequestState.MERGED
        assert pull_request["source_branch"] == "feature/cache"

    @pytest.mark.asyncio
    async def test_api_failure_logged(self, storage, gitlab_source, gitlab_repository, context_for):
        """Test that a provider failure becomes one ImportLog row"""
        client = FakeGitLabClient(
            merge_requests={"acme/api": [GitLabApiError("GitLab API error (HTTP 502)", status_code=502)]}
        )
        context = context_for(gitlab_source, resource="merge-request")

        imported = await GitLabMergeRequestImportScript(client_factory=lambda ctx: client).run(storage, context)

        assert imported == 0
        logs = storage.import_logs.find_many({"run_id": context.run_id})
        assert logs[0]["level"] == LogLevel.ERROR
        assert logs[0]["message"].startswith("Failed to import merge requests for acme/api")
        assert logs[0]["details"]["status_code"] == 502


# ============================================================
# Commits
# ============================================================


class TestGitLabCommitImport:
    """Tests for GitLabCommitImportScript"""

    @pytest.mark.asyncio
    async def test_imports_default_branch_commits(self, storage, gitlab_source, gitlab_repository, context_for):
        """Test that commits of the default branch are stored with their stats"""
        client = FakeGitLabClient(commits={"acme/api": [[raw_commit("a1"), raw_commit("b2", email="")]]})

        imported = await GitLabCommitImportScript(client_factory=lambda ctx: client).run(
            storage, context_for(gitlab_source, resource="commit")
        )

        assert imported == 1
        assert ("commits", "acme/api", "main") in client.calls
        commit = storage.commits.find_first({"sha": "a1"})
        assert (commit["lines_added"], commit["lines_removed"]) == (5, 2)
        assert commit["branch"] == "main"
        assert storage.contributors.find_unique(commit["author_id"])["email"] == "alice@acme.io"

    @pytest.mark.asyncio
    async def test_commit_without_id_skipped(self, storage, gitlab_source, gitlab_repository, context_for):
        """Test that an attributable commit without id is skipped"""
        broken = raw_commit("b2")
        del broken["id"]
        client = FakeGitLabClient(commits={"acme/api": [[broken, raw_commit("c3")]]})

        imported = await GitLabCommitImportScript(client_factory=lambda ctx: client).run(
            storage, context_for(gitlab_source, resource="commit")
        )

        assert imported == 1
        assert storage.commits.count() == 1


# ============================================================
# Pipeline runs
# ============================================================


class TestGitLabPipelineRunImport:
    """Tests for GitLabPipelineRunImportScript"""

    @pytest.mark.asyncio
    async def test_runs_and_jobs_stored(self, storage, gitlab_source, gitlab_repository, context_for):
        """Test that pipeline detail and jobs land on the .gitlab-ci.yml pipeline"""
        pipeline = storage.pipelines.create(
            {
                "repository_id": gitlab_repository["id"],
                "external_id": "ci",
                "name": "CI",
                "config_path": GITLAB_CI_CONFIG_PATH,
            }
        )
        client = FakeGitLabClient(
            pipelines={"acme/api": [[raw_pipeline(900), {"status": "success"}]]},
            details={"900": pipeline_detail(900)},
            jobs={"900": [{"id": 1, "name": "test", "status": "success", "duration": 42}]},
        )

        imported = await GitLabPipelineRunImportScript(client_factory=lambda ctx: client).run(
            storage, context_for(gitlab_source, resource="pipeline-run")
        )

        assert imported == 1
        run = storage.pipeline_runs.find_first({"pipeline_id": pipeline["id"]})
        assert run["run_number"] == 900
        assert run["status"] == PipelineStatus.SUCCESS
        assert run["duration_ms"] == 300_000
        stage = storage.pipeline_stages.find_first({"pipeline_run_id": run["id"]})
        assert stage["name"] == "test"
        assert stage["duration_ms"] == 42_000

    @pytest.mark.asyncio
    async def test_missing_ci_pipeline_skips_repository(self, storage, gitlab_source, gitlab_repository, context_for):
        """Test that a repository without a .gitlab-ci.yml pipeline is skipped without an error"""
        client = FakeGitLabClient(pipelines={"acme/api": [[raw_pipeline(900)]]})
        context = context_for(gitlab_source, resource="pipeline-run")

        imported = await GitLabPipelineRunImportScript(client_factory=lambda ctx: client).run(storage, context)

        assert imported == 0
        assert ("pipelines", "acme/api") not in client.calls
        assert storage.import_logs.count({"run_id": context.run_id}) == 0
