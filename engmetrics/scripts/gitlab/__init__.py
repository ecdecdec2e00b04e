"""GitLab import scripts."""

from engmetrics.scripts.gitlab.commit import GitLabCommitImportScript
from engmetrics.scripts.gitlab.issue import GitLabIssueImportScript
from engmetrics.scripts.gitlab.merge_request import GitLabMergeRequestImportScript
from engmetrics.scripts.gitlab.pipeline_run import GitLabPipelineRunImportScript

__all__ = [
    "GitLabCommitImportScript",
    "GitLabIssueImportScript",
    "GitLabMergeRequestImportScript",
    "GitLabPipelineRunImportScript",
]
