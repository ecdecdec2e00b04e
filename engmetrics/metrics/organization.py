"""
Organization dashboard metrics.

Every fetch_* function accepts (storage, date_range, previous_range=None,
team_id=None, now=None). previous_range defaults to previous_period(); a
team_id restricts repository-based metrics to the team's repositories and
ticket metrics to the team's projects.

Averages are None when there is nothing to average; counts are 0.
"""

from collections import defaultdict
from datetime import datetime
from typing import Any

from engmetrics.domain.constants import dashboard_config
from engmetrics.domain.dashboard import (
    ChartDataPoint,
    CountWithTrend,
    DashboardData,
    DeliveryMetrics,
    OperationalMetrics,
    OverviewMetrics,
    QualityMetrics,
    SecurityMetrics,
    SeverityCount,
    TicketMetrics,
    Trend,
)
from engmetrics.domain.enums import (
    ACTIVE_ISSUE_STATUSES,
    IssueStatus,
    PipelineStatus,
    PullRequestState,
    TrendType,
    VulnerabilityStatus,
)
from engmetrics.metrics.date_range import DateRange, calculate_trend, previous_period
from engmetrics.metrics.series import aggregate_count_by_day, build_distribution, init_day_map, to_time_series
from engmetrics.storage import StorageHandle
from engmetrics.storage.repository import Row
from engmetrics.utils.datetime_utils import days_between, hours_between, to_date_key, utc_now
from engmetrics.utils.statistics import mean_or_none, percentage_or_none, round1, round_int

MAIN_BRANCHES = list(dashboard_config.MAIN_BRANCHES)
FINISHED_RUN_STATUSES = [PipelineStatus.SUCCESS, PipelineStatus.FAILED]
OPEN_VULNERABILITY_STATUSES = [VulnerabilityStatus.OPEN, VulnerabilityStatus.IN_PROGRESS]
DEPLOYMENT_TRIGGER = "push"


# ============================================================
# Team scoping
# ============================================================


def team_repository_ids(storage: StorageHandle, team_id: str | None) -> list[str] | None:
    """Repository ids of the team, or None when not filtering by team."""
    if team_id is None:
        return None
    return [row["repository_id"] for row in storage.team_repositories.find_many({"team_id": team_id})]


def team_project_ids(storage: StorageHandle, team_id: str | None) -> list[str] | None:
    if team_id is None:
        return None
    return [row["project_id"] for row in storage.team_projects.find_many({"team_id": team_id})]


def _scoped(where: dict[str, Any], column: str, ids: list[str] | None) -> dict[str, Any]:
    if ids is None:
        return where
    return {**where, column: {"in": ids}}


def _pipeline_ids(storage: StorageHandle, repository_ids: list[str] | None) -> list[str] | None:
    if repository_ids is None:
        return None
    return [row["id"] for row in storage.pipelines.find_many({"repository_id": {"in": repository_ids}})]


def _round1_or_none(value: float | None) -> float | None:
    return round1(value) if value is not None else None


# ============================================================
# Overview
# ============================================================


def fetch_overview_metrics(
    storage: StorageHandle,
    date_range: DateRange,
    previous_range: DateRange | None = None,
    team_id: str | None = None,
    now: datetime | None = None,
) -> OverviewMetrics:
    previous_range = previous_range or previous_period(date_range)
    repository_ids = team_repository_ids(storage, team_id)

    def commits_in(window: DateRange) -> dict[str, Any]:
        return _scoped({"committed_at": window.as_filter()}, "repository_id", repository_ids)

    def pull_requests_in(window: DateRange) -> dict[str, Any]:
        return _scoped({"created_at": window.as_filter()}, "repository_id", repository_ids)

    current_contributors = len(storage.commits.distinct("author_id", commits_in(date_range)))
    previous_contributors = len(storage.commits.distinct("author_id", commits_in(previous_range)))
    current_commits = storage.commits.count(commits_in(date_range))
    previous_commits = storage.commits.count(commits_in(previous_range))
    current_prs = storage.pull_requests.count(pull_requests_in(date_range))
    previous_prs = storage.pull_requests.count(pull_requests_in(previous_range))

    return OverviewMetrics(
        repositories=storage.repositories.count(_scoped({"is_enabled": True}, "id", repository_ids)),
        contributors=CountWithTrend(current_contributors, calculate_trend(current_contributors, previous_contributors)),
        commits=CountWithTrend(current_commits, calculate_trend(current_commits, previous_commits)),
        pull_requests=CountWithTrend(current_prs, calculate_trend(current_prs, previous_prs)),
    )


# ============================================================
# Delivery
# ============================================================


def _first_review_at(storage: StorageHandle, pull_request_ids: list[str]) -> dict[str, datetime]:
    first: dict[str, datetime] = {}
    reviews = storage.pull_request_reviews.find_many(
        {"pull_request_id": {"in": pull_request_ids}, "submitted_at": {"ne": None}},
        order_by=[("submitted_at", "asc")],
    )
    for review in reviews:
        first.setdefault(review["pull_request_id"], review["submitted_at"])
    return first


def _deployment_count(storage: StorageHandle, window: DateRange, pipeline_ids: list[str] | None) -> int:
    return storage.pipeline_runs.count(
        _scoped(
            {
                "status": PipelineStatus.SUCCESS,
                "branch": {"in": MAIN_BRANCHES},
                "trigger_event": DEPLOYMENT_TRIGGER,
                "completed_at": window.as_filter(),
            },
            "pipeline_id",
            pipeline_ids,
        )
    )


def fetch_delivery_metrics(
    storage: StorageHandle,
    date_range: DateRange,
    previous_range: DateRange | None = None,
    team_id: str | None = None,
    now: datetime | None = None,
) -> DeliveryMetrics:
    """
    Flow of work through pull requests and the mainline.

    - avg_pr_age_days: mean age of currently open PRs
    - avg_time_to_review_hours: creation to first review, open reviewed PRs
    - avg_time_to_merge_hours: creation to merge, PRs merged in the range
    - deployments: successful push-triggered mainline runs completed in the range
    """
    now = now or utc_now()
    previous_range = previous_range or previous_period(date_range)
    repository_ids = team_repository_ids(storage, team_id)
    pipeline_ids = _pipeline_ids(storage, repository_ids)

    open_prs = storage.pull_requests.find_many(
        _scoped({"state": PullRequestState.OPEN}, "repository_id", repository_ids)
    )
    first_review = _first_review_at(storage, [pr["id"] for pr in open_prs])

    merged_prs = storage.pull_requests.find_many(
        _scoped(
            {"state": PullRequestState.MERGED, "merged_at": date_range.as_filter()},
            "repository_id",
            repository_ids,
        )
    )
    merge_hours = [hours_between(pr["created_at"], pr["merged_at"]) for pr in merged_prs if pr["created_at"]]

    commits = storage.commits.find_many(
        _scoped({"committed_at": date_range.as_filter()}, "repository_id", repository_ids)
    )

    current_deployments = _deployment_count(storage, date_range, pipeline_ids)
    previous_deployments = _deployment_count(storage, previous_range, pipeline_ids)

    return DeliveryMetrics(
        avg_pr_age_days=_round1_or_none(
            mean_or_none(days_between(pr["created_at"], now) for pr in open_prs if pr["created_at"])
        ),
        open_prs=len(open_prs),
        commits_to_master=sum(1 for commit in commits if commit["branch"] in MAIN_BRANCHES),
        avg_time_to_review_hours=_round1_or_none(
            mean_or_none(
                hours_between(pr["created_at"], first_review[pr["id"]])
                for pr in open_prs
                if pr["id"] in first_review and pr["created_at"]
            )
        ),
        avg_time_to_merge_hours=_round1_or_none(mean_or_none(hours for hours in merge_hours if hours >= 0)),
        deployments=CountWithTrend(current_deployments, calculate_trend(current_deployments, previous_deployments)),
        commit_trend=aggregate_count_by_day((c["committed_at"] for c in commits), date_range.start, date_range.end),
    )


# ============================================================
# Operational
# ============================================================


def _finished_runs(
    storage: StorageHandle, window: DateRange, mainline: bool, pipeline_ids: list[str] | None
) -> list[Row]:
    branch = {"in": MAIN_BRANCHES} if mainline else {"not_in": MAIN_BRANCHES}
    return storage.pipeline_runs.find_many(
        _scoped(
            {"status": {"in": FINISHED_RUN_STATUSES}, "branch": branch, "completed_at": window.as_filter()},
            "pipeline_id",
            pipeline_ids,
        )
    )


def success_rate(runs: list[Row]) -> float | None:
    """Share of SUCCESS runs in %, one decimal; None without runs."""
    successes = sum(1 for run in runs if run["status"] == PipelineStatus.SUCCESS.value)
    return percentage_or_none(successes, len(runs))


def _avg_success_duration_ms(runs: list[Row]) -> int | None:
    average = mean_or_none(
        run["duration_ms"]
        for run in runs
        if run["status"] == PipelineStatus.SUCCESS.value and run["duration_ms"] is not None
    )
    return round_int(average) if average is not None else None


def _failure_steps(storage: StorageHandle, window: DateRange, mainline: bool, pipeline_ids: list[str] | None):
    branch = {"in": MAIN_BRANCHES} if mainline else {"not_in": MAIN_BRANCHES}
    run_ids = [
        run["id"]
        for run in storage.pipeline_runs.find_many(
            _scoped({"branch": branch, "completed_at": window.as_filter()}, "pipeline_id", pipeline_ids)
        )
    ]
    failed_stages = storage.pipeline_stages.find_many(
        {"pipeline_run_id": {"in": run_ids}, "status": PipelineStatus.FAILED}
    )
    return build_distribution(stage["name"] for stage in failed_stages)


def fetch_operational_metrics(
    storage: StorageHandle,
    date_range: DateRange,
    previous_range: DateRange | None = None,
    team_id: str | None = None,
    now: datetime | None = None,
) -> OperationalMetrics:
    """
    CI stability: success rates and mean successful duration of finished
    runs completed in the range, mainline (main/master) versus other
    branches, plus the most frequently failing stages.
    """
    previous_range = previous_range or previous_period(date_range)
    pipeline_ids = _pipeline_ids(storage, team_repository_ids(storage, team_id))

    master_runs = _finished_runs(storage, date_range, True, pipeline_ids)
    pr_runs = _finished_runs(storage, date_range, False, pipeline_ids)
    master_rate = success_rate(master_runs)
    previous_master_rate = success_rate(_finished_runs(storage, previous_range, True, pipeline_ids))

    if master_rate is None or previous_master_rate is None:
        rate_trend = Trend(0, TrendType.NEUTRAL)
    else:
        rate_trend = calculate_trend(master_rate, previous_master_rate)

    return OperationalMetrics(
        master_success_rate=master_rate,
        pr_success_rate=success_rate(pr_runs),
        master_avg_duration_ms=_avg_success_duration_ms(master_runs),
        pr_avg_duration_ms=_avg_success_duration_ms(pr_runs),
        master_failure_steps=_failure_steps(storage, date_range, True, pipeline_ids),
        pr_failure_steps=_failure_steps(storage, date_range, False, pipeline_ids),
        success_rate_trend=rate_trend,
    )


# ============================================================
# Quality
# ============================================================


def latest_scans(storage: StorageHandle, as_of: datetime, repository_ids: list[str] | None = None) -> list[Row]:
    """The most recent scan of each repository scanned at or before as_of."""
    scans = storage.quality_scans.find_many(
        _scoped({"scanned_at": {"lte": as_of}}, "repository_id", repository_ids),
        order_by=[("repository_id", "asc"), ("scanned_at", "desc")],
    )
    latest: dict[str, Row] = {}
    for scan in scans:
        latest.setdefault(scan["repository_id"], scan)
    return list(latest.values())


def _coverage_series(scans: list[Row], date_range: DateRange) -> list[ChartDataPoint]:
    by_day: dict[str, list[float]] = defaultdict(list)
    for scan in scans:
        if scan["coverage"] is not None:
            by_day[to_date_key(scan["scanned_at"])].append(scan["coverage"])

    day_map = init_day_map(date_range.start, date_range.end)
    for day, values in by_day.items():
        if day in day_map:
            day_map[day] = round1(sum(values) / len(values))
    return to_time_series(day_map)


def fetch_quality_metrics(
    storage: StorageHandle,
    date_range: DateRange,
    previous_range: DateRange | None = None,
    team_id: str | None = None,
    now: datetime | None = None,
) -> QualityMetrics:
    """
    Code quality from the latest scan of each repository as of the range
    end: coverage averaged over repositories that report it, issue counts
    summed.
    """
    repository_ids = team_repository_ids(storage, team_id)
    latest = latest_scans(storage, date_range.end, repository_ids)
    in_range = storage.quality_scans.find_many(
        _scoped({"scanned_at": date_range.as_filter()}, "repository_id", repository_ids)
    )

    return QualityMetrics(
        overall_coverage=_round1_or_none(mean_or_none(s["coverage"] for s in latest if s["coverage"] is not None)),
        new_code_coverage=_round1_or_none(
            mean_or_none(s["new_coverage"] for s in latest if s["new_coverage"] is not None)
        ),
        bugs_count=sum(scan["bugs"] or 0 for scan in latest),
        vulnerabilities_count=sum(scan["vulnerabilities"] or 0 for scan in latest),
        code_smells_count=sum(scan["code_smells"] or 0 for scan in latest),
        coverage_trend=_coverage_series(in_range, date_range),
    )


# ============================================================
# Tickets
# ============================================================


def cumulative_time_in_column_hours(transitions: list[Row], now: datetime) -> float | None:
    """
    Sum over issues of the time spent after each status transition: until
    the next transition of the same issue, or until now for the last one.

    Args:
        transitions: Transition rows ordered by transitioned_at ascending
        now: End instant for each issue's current status

    Returns:
        Total hours, or None when there are no transitions
    """
    if not transitions:
        return None

    per_issue: dict[str, list[datetime]] = defaultdict(list)
    for transition in transitions:
        per_issue[transition["issue_id"]].append(transition["transitioned_at"])

    total = 0.0
    for instants in per_issue.values():
        for current, following in zip(instants, [*instants[1:], now], strict=True):
            total += hours_between(current, following)
    return total


def fetch_ticket_metrics(
    storage: StorageHandle,
    date_range: DateRange,
    previous_range: DateRange | None = None,
    team_id: str | None = None,
    now: datetime | None = None,
) -> TicketMetrics:
    now = now or utc_now()
    project_ids = team_project_ids(storage, team_id)

    active = storage.issues.find_many(
        _scoped({"status": {"in": list(ACTIVE_ISSUE_STATUSES)}}, "project_id", project_ids)
    )
    completed = storage.issues.count(
        _scoped({"status": IssueStatus.DONE, "resolved_at": date_range.as_filter()}, "project_id", project_ids)
    )
    transitions = storage.issue_status_transitions.find_many(
        {"issue_id": {"in": [issue["id"] for issue in active]}},
        order_by=[("transitioned_at", "asc")],
    )

    return TicketMetrics(
        avg_active_ticket_age_days=_round1_or_none(
            mean_or_none(days_between(issue["created_at"], now) for issue in active if issue["created_at"])
        ),
        active_count=len(active),
        completed_count=completed,
        cumulative_time_in_column_hours=_round1_or_none(cumulative_time_in_column_hours(transitions, now)),
    )


# ============================================================
# Security
# ============================================================


def fetch_security_metrics(
    storage: StorageHandle,
    date_range: DateRange,
    previous_range: DateRange | None = None,
    team_id: str | None = None,
    now: datetime | None = None,
) -> SecurityMetrics:
    """
    Open vulnerabilities by severity and the mean days to resolve those
    discovered in the range.
    """
    repository_ids = team_repository_ids(storage, team_id)

    severity = SeverityCount()
    open_vulnerabilities = storage.security_vulnerabilities.find_many(
        _scoped({"status": {"in": OPEN_VULNERABILITY_STATUSES}}, "repository_id", repository_ids)
    )
    for vulnerability in open_vulnerabilities:
        key = (vulnerability["severity"] or "").lower()
        if hasattr(severity, key):
            setattr(severity, key, getattr(severity, key) + 1)

    resolved = storage.security_vulnerabilities.find_many(
        _scoped(
            {
                "status": VulnerabilityStatus.RESOLVED,
                "resolved_at": {"ne": None},
                "discovered_at": date_range.as_filter(),
            },
            "repository_id",
            repository_ids,
        )
    )

    return SecurityMetrics(
        cve_by_severity=severity,
        avg_time_to_close_days=_round1_or_none(
            mean_or_none(days_between(v["discovered_at"], v["resolved_at"]) for v in resolved)
        ),
    )


def fetch_dashboard_data(
    storage: StorageHandle,
    date_range: DateRange,
    previous_range: DateRange | None = None,
    team_id: str | None = None,
    now: datetime | None = None,
) -> DashboardData:
    """All organization metric groups for one range."""
    previous_range = previous_range or previous_period(date_range)
    args = (storage, date_range, previous_range, team_id, now)
    return DashboardData(
        overview=fetch_overview_metrics(*args),
        delivery=fetch_delivery_metrics(*args),
        tickets=fetch_ticket_metrics(*args),
        operational=fetch_operational_metrics(*args),
        quality=fetch_quality_metrics(*args),
        security=fetch_security_metrics(*args),
    )
