"""
Dashboard data contract.

Result objects returned by the metrics aggregator to the presentation
layer. Fields are snake_case in Python; to_dict() emits the camelCase
names the dashboard consumes (dailyAverage, mergeRate, dayOfWeek, ...),
with None serialised as null.

Usage:
    from engmetrics.metrics.individual import fetch_commit_metrics

    metrics = fetch_commit_metrics(storage, contributor_id, date_range)
    payload = metrics.to_dict()   # {"total": 12, "dailyAverage": 0.4, ...}
"""

from dataclasses import dataclass, field, fields
from datetime import date, datetime
from enum import Enum
from typing import Any

from engmetrics.domain.enums import TrendType


def camelize(name: str) -> str:
    """
    Convert a snake_case field name to camelCase.

    Example:
        >>> camelize("avg_time_to_review_hours")
        'avgTimeToReviewHours'
    """
    head, *rest = name.split("_")
    return head + "".join(part[:1].upper() + part[1:] for part in rest)


def _serialize(value: Any) -> Any:
    if isinstance(value, DashboardContract):
        return value.to_dict()
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime | date):
        return value.isoformat()
    if isinstance(value, list | tuple):
        return [_serialize(item) for item in value]
    if isinstance(value, dict):
        return {key: _serialize(item) for key, item in value.items()}
    return value


class DashboardContract:
    """Mixin giving dataclass results a camelCase dict form."""

    # Field names whose contract spelling is not plain camelCase
    FIELD_ALIASES: dict[str, str] = {}

    def to_dict(self) -> dict[str, Any]:
        return {
            self.FIELD_ALIASES.get(f.name, camelize(f.name)): _serialize(getattr(self, f.name))
            for f in fields(self)  # type: ignore[arg-type]
        }


# ============================================================
# Shared
# ============================================================


@dataclass
class Trend(DashboardContract):
    value: int
    type: TrendType


@dataclass
class ChartDataPoint(DashboardContract):
    date: str
    value: float


@dataclass
class CountWithTrend(DashboardContract):
    count: int
    trend: Trend


@dataclass
class DistributionItem(DashboardContract):
    name: str
    value: int


# ============================================================
# Individual contributor
# ============================================================


@dataclass
class ContributorOption(DashboardContract):
    id: str
    name: str
    username: str | None
    avatar_url: str | None


@dataclass
class CommitMetrics(DashboardContract):
    total: int
    daily_average: float
    lines_added: int
    lines_removed: int
    files_changed: int
    chart: list[ChartDataPoint] = field(default_factory=list)


@dataclass
class PRMetrics(DashboardContract):
    """
    Pull request metrics for one contributor.

    merge_rate and avg_iterations are None when no PRs were created in the
    range.
    """

    created: int
    merged: int
    merge_rate: float | None
    avg_iterations: float | None
    chart: list[ChartDataPoint] = field(default_factory=list)


@dataclass
class ReviewMetrics(DashboardContract):
    count: int
    avg_time_to_review_hours: float | None
    chart: list[ChartDataPoint] = field(default_factory=list)


@dataclass
class StreakData(DashboardContract):
    current_streak: int
    longest_streak: int


@dataclass
class Achievement(DashboardContract):
    id: str
    name: str
    icon: str
    earned: bool
    description: str | None = None


@dataclass
class HeatmapDay(DashboardContract):
    date: str
    count: int
    day_of_week: int
    week_number: int


@dataclass
class Distributions(DashboardContract):
    repositories: list[DistributionItem]
    languages: list[DistributionItem]


@dataclass
class IndividualDashboardData(DashboardContract):
    commits: CommitMetrics
    pull_requests: PRMetrics
    reviews: ReviewMetrics
    streaks: StreakData
    achievements: list[Achievement]
    heatmap: list[HeatmapDay]
    distributions: Distributions


# ============================================================
# Organization
# ============================================================


@dataclass
class OverviewMetrics(DashboardContract):
    repositories: int
    contributors: CountWithTrend
    commits: CountWithTrend
    pull_requests: CountWithTrend


@dataclass
class DeliveryMetrics(DashboardContract):
    FIELD_ALIASES = {"open_prs": "openPRs"}

    avg_pr_age_days: float | None
    open_prs: int
    commits_to_master: int
    avg_time_to_review_hours: float | None
    avg_time_to_merge_hours: float | None
    deployments: CountWithTrend
    commit_trend: list[ChartDataPoint] = field(default_factory=list)


@dataclass
class OperationalMetrics(DashboardContract):
    master_success_rate: float | None
    pr_success_rate: float | None
    master_avg_duration_ms: int | None
    pr_avg_duration_ms: int | None
    master_failure_steps: list[DistributionItem]
    pr_failure_steps: list[DistributionItem]
    success_rate_trend: Trend


@dataclass
class QualityMetrics(DashboardContract):
    overall_coverage: float | None
    new_code_coverage: float | None
    bugs_count: int
    vulnerabilities_count: int
    code_smells_count: int
    coverage_trend: list[ChartDataPoint] = field(default_factory=list)


@dataclass
class TicketMetrics(DashboardContract):
    avg_active_ticket_age_days: float | None
    active_count: int
    completed_count: int
    cumulative_time_in_column_hours: float | None


@dataclass
class SeverityCount(DashboardContract):
    critical: int = 0
    high: int = 0
    medium: int = 0
    low: int = 0


@dataclass
class SecurityMetrics(DashboardContract):
    cve_by_severity: SeverityCount
    avg_time_to_close_days: float | None


@dataclass
class DashboardData(DashboardContract):
    overview: OverviewMetrics
    delivery: DeliveryMetrics
    tickets: TicketMetrics
    operational: OperationalMetrics
    quality: QualityMetrics
    security: SecurityMetrics
