"""GitHub import scripts."""

from engmetrics.scripts.github.commit import GitHubCommitImportScript
from engmetrics.scripts.github.issue import GitHubIssueImportScript
from engmetrics.scripts.github.pipeline_run import GitHubPipelineRunImportScript
from engmetrics.scripts.github.pull_request import GitHubPullRequestImportScript
from engmetrics.scripts.github.pull_request_review import GitHubPullRequestReviewImportScript

__all__ = [
    "GitHubCommitImportScript",
    "GitHubIssueImportScript",
    "GitHubPipelineRunImportScript",
    "GitHubPullRequestImportScript",
    "GitHubPullRequestReviewImportScript",
]
