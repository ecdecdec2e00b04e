"""
Provider clients: thin async HTTP wrappers exposing paginated fetch primitives.
"""

from engmetrics.providers.base import ProviderApiError, ProviderClient
from engmetrics.providers.github import GitHubApiError, GitHubClient
from engmetrics.providers.gitlab import GitLabApiError, GitLabClient
from engmetrics.providers.jira import JiraApiError, JiraClient
from engmetrics.providers.sonarqube import SonarQubeApiError, SonarQubeClient

__all__ = [
    "GitHubApiError",
    "GitHubClient",
    "GitLabApiError",
    "GitLabClient",
    "JiraApiError",
    "JiraClient",
    "ProviderApiError",
    "ProviderClient",
    "SonarQubeApiError",
    "SonarQubeClient",
]
