"""Jira import scripts."""

from engmetrics.scripts.jira.issue import JiraIssueImportScript
from engmetrics.scripts.jira.sprint import JiraSprintImportScript
from engmetrics.scripts.jira.status_transition import JiraStatusTransitionImportScript

__all__ = ["JiraIssueImportScript", "JiraSprintImportScript", "JiraStatusTransitionImportScript"]
