"""
Individual contributor metrics.

Every function takes the contributor id and (where windowed) a DateRange,
and reads normalized rows only.

Usage:
    date_range = parse_date_range({"preset": "30d"})
    dashboard = fetch_individual_dashboard(storage, contributor_id, date_range)
    payload = dashboard.to_dict()
"""

import math
from datetime import date

from engmetrics.domain.constants import dashboard_config
from engmetrics.domain.dashboard import (
    Achievement,
    CommitMetrics,
    ContributorOption,
    Distributions,
    HeatmapDay,
    IndividualDashboardData,
    PRMetrics,
    ReviewMetrics,
    StreakData,
)
from engmetrics.domain.enums import PullRequestState
from engmetrics.metrics.achievements import ContributorStats, evaluate_achievements
from engmetrics.metrics.date_range import DateRange
from engmetrics.metrics.series import (
    aggregate_count_by_day,
    build_distribution,
    build_heatmap,
    calculate_streaks,
    init_day_map,
)
from engmetrics.storage import StorageHandle
from engmetrics.utils.datetime_utils import hours_between, to_date_key, utc_now
from engmetrics.utils.statistics import mean_or_none, percentage_or_none, round1


def fetch_contributors(storage: StorageHandle) -> list[ContributorOption]:
    """All contributors, ordered by name, for the contributor selector."""
    return [
        ContributorOption(id=row["id"], name=row["name"], username=row["username"], avatar_url=row["avatar_url"])
        for row in storage.contributors.find_many(order_by=[("name", "asc")])
    ]


def fetch_commit_metrics(storage: StorageHandle, contributor_id: str, date_range: DateRange) -> CommitMetrics:
    """
    Commit totals and daily chart.

    The daily average divides by the range length in whole days (at least
    one) and is 0 when there are no commits.
    """
    commits = storage.commits.find_many({"author_id": contributor_id, "committed_at": date_range.as_filter()})

    days = max(1, math.ceil(date_range.duration.total_seconds() / 86400))
    return CommitMetrics(
        total=len(commits),
        daily_average=round1(len(commits) / days) if commits else 0,
        lines_added=sum(commit["lines_added"] or 0 for commit in commits),
        lines_removed=sum(commit["lines_removed"] or 0 for commit in commits),
        files_changed=sum(commit["files_changed"] or 0 for commit in commits),
        chart=aggregate_count_by_day((c["committed_at"] for c in commits), date_range.start, date_range.end),
    )


def fetch_pull_request_metrics(storage: StorageHandle, contributor_id: str, date_range: DateRange) -> PRMetrics:
    """
    Pull requests created in the range, those merged in the range, and
    the merge rate (merged / created, %). merge_rate and avg_iterations are
    None when nothing was created.
    """
    created = storage.pull_requests.find_many({"author_id": contributor_id, "created_at": date_range.as_filter()})
    merged = storage.pull_requests.count(
        {"author_id": contributor_id, "state": PullRequestState.MERGED, "merged_at": date_range.as_filter()}
    )

    avg_iterations = mean_or_none(pr["iteration_count"] or 0 for pr in created)
    return PRMetrics(
        created=len(created),
        merged=merged,
        merge_rate=percentage_or_none(merged, len(created)),
        avg_iterations=round1(avg_iterations) if avg_iterations is not None else None,
        chart=aggregate_count_by_day((pr["created_at"] for pr in created), date_range.start, date_range.end),
    )


def fetch_review_metrics(storage: StorageHandle, contributor_id: str, date_range: DateRange) -> ReviewMetrics:
    reviews = storage.pull_request_reviews.find_many(
        {"reviewer_id": contributor_id, "submitted_at": date_range.as_filter()}
    )
    pull_request_ids = list({review["pull_request_id"] for review in reviews})
    created_at = {
        pr["id"]: pr["created_at"] for pr in storage.pull_requests.find_many({"id": {"in": pull_request_ids}})
    }

    wait_hours = mean_or_none(
        hours_between(created_at[review["pull_request_id"]], review["submitted_at"])
        for review in reviews
        if created_at.get(review["pull_request_id"]) is not None
    )
    return ReviewMetrics(
        count=len(reviews),
        avg_time_to_review_hours=round1(wait_hours) if wait_hours is not None else None,
        chart=aggregate_count_by_day((r["submitted_at"] for r in reviews), date_range.start, date_range.end),
    )


def fetch_streak_data(storage: StorageHandle, contributor_id: str, today: date | None = None) -> StreakData:
    """Streaks over the contributor's whole commit history (UTC days)."""
    days = storage.commits.distinct("committed_at", {"author_id": contributor_id})
    return calculate_streaks(days, today or utc_now().date())


def fetch_achievements(storage: StorageHandle, contributor_id: str, streaks: StreakData) -> list[Achievement]:
    stats = ContributorStats(
        total_commits=storage.commits.count({"author_id": contributor_id}),
        has_merged_pull_request=storage.pull_requests.count(
            {"author_id": contributor_id, "state": PullRequestState.MERGED}
        )
        > 0,
        total_reviews=storage.pull_request_reviews.count({"reviewer_id": contributor_id}),
        longest_streak=streaks.longest_streak,
    )
    return evaluate_achievements(stats)


def fetch_heatmap(storage: StorageHandle, contributor_id: str, date_range: DateRange) -> list[HeatmapDay]:
    day_map = init_day_map(date_range.start, date_range.end)
    for committed_at in (
        commit["committed_at"]
        for commit in storage.commits.find_many({"author_id": contributor_id, "committed_at": date_range.as_filter()})
    ):
        key = to_date_key(committed_at)
        if key in day_map:
            day_map[key] += 1
    return build_heatmap(day_map)


def fetch_distributions(storage: StorageHandle, contributor_id: str, date_range: DateRange) -> Distributions:
    """
    Commits per repository (top 10) and per repository language (all, a
    missing language counted as "Unknown").
    """
    commits = storage.commits.find_many({"author_id": contributor_id, "committed_at": date_range.as_filter()})
    repositories = {
        repo["id"]: repo
        for repo in storage.repositories.find_many({"id": {"in": list({c["repository_id"] for c in commits})}})
    }

    touched = [repositories[c["repository_id"]] for c in commits if c["repository_id"] in repositories]
    return Distributions(
        repositories=build_distribution((repo["name"] for repo in touched), limit=dashboard_config.TOP_REPOSITORIES),
        languages=build_distribution(repo["language"] or dashboard_config.UNKNOWN_LANGUAGE for repo in touched),
    )


def fetch_individual_dashboard(
    storage: StorageHandle, contributor_id: str, date_range: DateRange, today: date | None = None
) -> IndividualDashboardData:
    streaks = fetch_streak_data(storage, contributor_id, today)
    return IndividualDashboardData(
        commits=fetch_commit_metrics(storage, contributor_id, date_range),
        pull_requests=fetch_pull_request_metrics(storage, contributor_id, date_range),
        reviews=fetch_review_metrics(storage, contributor_id, date_range),
        streaks=streaks,
        achievements=fetch_achievements(storage, contributor_id, streaks),
        heatmap=fetch_heatmap(storage, contributor_id, date_range),
        distributions=fetch_distributions(storage, contributor_id, date_range),
    )
