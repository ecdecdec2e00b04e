"""
Domain Models for Engineering Metrics

Provides type-safe enums, canonical provider-neutral records and the
dashboard data contract.

Usage:
    from engmetrics.domain import IssueStatus, CanonicalIssue
    from engmetrics.domain.dashboard import CommitMetrics
"""

from engmetrics.domain.enums import (
    ACTIVE_ISSUE_STATUSES,
    IssuePriority,
    IssueStatus,
    IssueType,
    LogLevel,
    PipelineStatus,
    Provider,
    PullRequestState,
    ReviewState,
    RunStatus,
    TrendType,
    VulnerabilitySeverity,
    VulnerabilityStatus,
)
from engmetrics.domain.errors import CycleError, MappingError, MissingDependencyError, StorageError
from engmetrics.domain.records import (
    CanonicalCommit,
    CanonicalIssue,
    CanonicalPipelineRun,
    CanonicalPipelineStage,
    CanonicalPullRequest,
    CanonicalReview,
    CanonicalSprint,
    CanonicalStatusTransition,
    QualityMeasures,
)

__all__ = [
    # Enums
    "ACTIVE_ISSUE_STATUSES",
    "IssuePriority",
    "IssueStatus",
    "IssueType",
    "LogLevel",
    "PipelineStatus",
    "Provider",
    "PullRequestState",
    "ReviewState",
    "RunStatus",
    "TrendType",
    "VulnerabilitySeverity",
    "VulnerabilityStatus",
    # Errors
    "CycleError",
    "MappingError",
    "MissingDependencyError",
    "StorageError",
    # Records
    "CanonicalCommit",
    "CanonicalIssue",
    "CanonicalPipelineRun",
    "CanonicalPipelineStage",
    "CanonicalPullRequest",
    "CanonicalReview",
    "CanonicalSprint",
    "CanonicalStatusTransition",
    "QualityMeasures",
]
