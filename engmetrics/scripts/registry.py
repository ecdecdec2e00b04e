"""
Script registry and execution ordering.

Scripts declare their dependencies as resource names (depends_on). The
registry orders the scripts of one data source so that every dependency
runs before its dependents:

    registry = default_registry()
    for script in registry.execution_order("GITHUB"):
        ...

Dependencies on resources that have no registered script (repository,
project, board, contributor, pipeline) are discovered outside this
pipeline and are treated as already satisfied.
"""

import heapq

from engmetrics.domain.errors import CycleError
from engmetrics.scripts.base import ImportScript


class ScriptRegistry:
    """Ordered collection of import scripts, keyed by (data source, resource)."""

    def __init__(self):
        self._scripts: list[ImportScript] = []

    def register(self, script: ImportScript) -> ImportScript:
        """
        Add a script; registration order breaks ordering ties.

        Raises:
            ValueError: If a script with the same key is already registered
        """
        if any(existing.key == script.key for existing in self._scripts):
            raise ValueError(f"Script already registered: {script.key}")
        self._scripts.append(script)
        return script

    def get(self, data_source_name: str, resource: str) -> ImportScript | None:
        return next(
            (s for s in self._scripts if s.data_source_name == data_source_name and s.resource == resource),
            None,
        )

    def scripts_for(self, data_source_name: str) -> list[ImportScript]:
        return [script for script in self._scripts if script.data_source_name == data_source_name]

    def data_source_names(self) -> list[str]:
        return list(dict.fromkeys(script.data_source_name for script in self._scripts))

    def execution_order(self, data_source_name: str) -> list[ImportScript]:
        """
        Topologically sort the scripts of one data source (Kahn's algorithm).

        Returns:
            Scripts with every dependency before its dependents; among
            scripts ready at the same time, registration order wins

        Raises:
            CycleError: If the depends_on graph has a cycle
        """
        scripts = self.scripts_for(data_source_name)
        index_by_resource = {script.resource: i for i, script in enumerate(scripts)}

        dependents: dict[int, list[int]] = {i: [] for i in range(len(scripts))}
        in_degree = [0] * len(scripts)
        for i, script in enumerate(scripts):
            for dependency in script.depends_on:
                parent = index_by_resource.get(dependency)
                if parent is None:
                    continue
                dependents[parent].append(i)
                in_degree[i] += 1

        ready = [i for i, degree in enumerate(in_degree) if degree == 0]
        heapq.heapify(ready)
        ordered: list[ImportScript] = []
        while ready:
            current = heapq.heappop(ready)
            ordered.append(scripts[current])
            for child in dependents[current]:
                in_degree[child] -= 1
                if in_degree[child] == 0:
                    heapq.heappush(ready, child)

        if len(ordered) != len(scripts):
            raise CycleError([scripts[i].resource for i, degree in enumerate(in_degree) if degree > 0])
        return ordered


def default_registry() -> ScriptRegistry:
    """Registry holding every import script of the pipeline."""
    from engmetrics.scripts.github import (
        GitHubCommitImportScript,
        GitHubIssueImportScript,
        GitHubPipelineRunImportScript,
        GitHubPullRequestImportScript,
        GitHubPullRequestReviewImportScript,
    )
    from engmetrics.scripts.gitlab import (
        GitLabCommitImportScript,
        GitLabIssueImportScript,
        GitLabMergeRequestImportScript,
        GitLabPipelineRunImportScript,
    )
    from engmetrics.scripts.jira import (
        JiraIssueImportScript,
        JiraSprintImportScript,
        JiraStatusTransitionImportScript,
    )
    from engmetrics.scripts.sonarqube import SonarQubeQualityScanImportScript, SonarQubeVulnerabilityImportScript

    registry = ScriptRegistry()
    for script_class in (
        GitHubIssueImportScript,
        GitHubCommitImportScript,
        GitHubPullRequestImportScript,
        GitHubPullRequestReviewImportScript,
        GitHubPipelineRunImportScript,
        GitLabIssueImportScript,
        GitLabCommitImportScript,
        GitLabMergeRequestImportScript,
        GitLabPipelineRunImportScript,
        JiraIssueImportScript,
        JiraSprintImportScript,
        JiraStatusTransitionImportScript,
        SonarQubeQualityScanImportScript,
        SonarQubeVulnerabilityImportScript,
    ):
        registry.register(script_class())
    return registry
