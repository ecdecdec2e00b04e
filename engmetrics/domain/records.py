"""
Canonical record shapes produced by the field mappers.

Mappers translate a provider's native payload into one of these
dataclasses; import scripts resolve contributors and parent rows and then
upsert the result. User payloads are kept raw (dict) so the contributor
resolver can apply its own identity rules.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from engmetrics.domain.enums import (
    IssuePriority,
    IssueStatus,
    IssueType,
    PipelineStatus,
    PullRequestState,
    ReviewState,
    VulnerabilitySeverity,
    VulnerabilityStatus,
)


@dataclass
class CanonicalIssue:
    """
    Provider-neutral work item.

    Attributes:
        key: Synthetic idempotency key ("org/repo#123" or the Jira issue key)
        external_id: Provider id of the record
        title: Issue summary
        type: Inferred IssueType
        status: Inferred IssueStatus
        priority: Inferred IssuePriority
        description: Plain-text description (rich documents flattened)
        status_name: Provider display name of the status
        created_at: Provider creation timestamp
        updated_at: Provider last-update timestamp (used for windowing)
        resolved_at: Close/resolution timestamp
        url: Browser URL of the record
        story_points: Estimate, when the provider carries one
        sprint_external_id: Provider id of the current sprint
        reporter: Raw reporter/author user payload
        assignee: Raw assignee user payload
    """

    key: str
    external_id: str
    title: str
    type: IssueType
    status: IssueStatus
    priority: IssuePriority
    description: str | None = None
    status_name: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    resolved_at: datetime | None = None
    url: str | None = None
    story_points: float | None = None
    sprint_external_id: str | None = None
    reporter: dict[str, Any] | None = None
    assignee: dict[str, Any] | None = None


@dataclass
class CanonicalCommit:
    sha: str
    message: str
    committed_at: datetime
    author: dict[str, Any]
    lines_added: int = 0
    lines_removed: int = 0
    files_changed: int = 0


@dataclass
class CanonicalPullRequest:
    number: int
    title: str
    state: PullRequestState
    created_at: datetime
    updated_at: datetime
    source_branch: str | None = None
    target_branch: str | None = None
    merged_at: datetime | None = None
    closed_at: datetime | None = None
    url: str | None = None
    author: dict[str, Any] | None = None
    iteration_count: int | None = None


@dataclass
class CanonicalReview:
    external_id: str
    state: ReviewState
    submitted_at: datetime
    reviewer: dict[str, Any]


@dataclass
class CanonicalPipelineStage:
    name: str
    status: PipelineStatus
    started_at: datetime | None = None
    completed_at: datetime | None = None
    duration_ms: int | None = None


@dataclass
class CanonicalPipelineRun:
    """
    Provider-neutral CI run.

    Attributes:
        run_number: Run number, unique per pipeline
        config_path: Workflow definition path used to find the Pipeline row
        status: Inferred PipelineStatus
        completed_at: Only set once the run is no longer RUNNING/PENDING
        duration_ms: Wall time from run start to last update
    """

    run_number: int
    config_path: str
    status: PipelineStatus
    external_id: str
    branch: str | None = None
    commit_sha: str | None = None
    trigger_event: str | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None
    duration_ms: int | None = None
    stages: list[CanonicalPipelineStage] = field(default_factory=list)


@dataclass
class CanonicalSprint:
    external_id: str
    name: str
    state: str
    start_date: datetime | None = None
    end_date: datetime | None = None
    completed_at: datetime | None = None
    goal: str | None = None


@dataclass
class CanonicalStatusTransition:
    from_status: str | None
    to_status: str
    transitioned_at: datetime
    author: dict[str, Any] | None = None


@dataclass
class QualityMeasures:
    """
    SonarQube measures for one analysis.

    Ratings are letters A-E; every field is None when the server did not
    report the metric.
    """

    coverage: float | None = None
    new_coverage: float | None = None
    code_smells: int | None = None
    bugs: int | None = None
    vulnerabilities: int | None = None
    duplicated_lines_density: float | None = None
    technical_debt_ratio: float | None = None
    complexity: int | None = None
    maintainability_rating: str | None = None
    reliability_rating: str | None = None
    security_rating: str | None = None


@dataclass
class CanonicalVulnerability:
    """
    Security finding reported by a scanner.

    Attributes:
        external_id: Scanner issue key, unique per repository
        title: Finding message
        discovered_at: When the scanner first reported it
        resolved_at: Set once the finding has a resolution
    """

    external_id: str
    title: str
    severity: VulnerabilitySeverity
    status: VulnerabilityStatus
    discovered_at: datetime
    resolved_at: datetime | None = None
