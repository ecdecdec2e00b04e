"""
Contributor achievements.

Each rule is evaluated independently, so tiers accumulate: a contributor
with 600 commits earns First Commit, Century and 500 Club.
"""

from collections.abc import Callable
from dataclasses import dataclass

from engmetrics.domain.dashboard import Achievement


@dataclass(frozen=True)
class ContributorStats:
    """All-time totals the achievement rules are evaluated against."""

    total_commits: int = 0
    has_merged_pull_request: bool = False
    total_reviews: int = 0
    longest_streak: int = 0


@dataclass(frozen=True)
class AchievementRule:
    id: str
    name: str
    icon: str
    predicate: Callable[[ContributorStats], bool]
    description: str | None = None


ACHIEVEMENT_RULES: tuple[AchievementRule, ...] = (
    AchievementRule("first-commit", "First Commit", "commit", lambda s: s.total_commits >= 1),
    AchievementRule("100-commits", "Century", "century", lambda s: s.total_commits >= 100, "100 commits"),
    AchievementRule("500-commits", "500 Club", "star", lambda s: s.total_commits >= 500, "500 commits"),
    AchievementRule("1k-commits", "Prolific", "trophy", lambda s: s.total_commits >= 1000, "1000 commits"),
    AchievementRule("first-merged", "First Merge", "merge", lambda s: s.has_merged_pull_request),
    AchievementRule("first-review", "Reviewer", "review", lambda s: s.total_reviews >= 1),
    AchievementRule("50-reviews", "Code Guardian", "shield", lambda s: s.total_reviews >= 50, "50 reviews"),
    AchievementRule("7-day-streak", "Week Warrior", "fire", lambda s: s.longest_streak >= 7, "7-day streak"),
    AchievementRule("30-day-streak", "Monthly Master", "calendar", lambda s: s.longest_streak >= 30, "30-day streak"),
)


def evaluate_achievements(
    stats: ContributorStats, rules: tuple[AchievementRule, ...] = ACHIEVEMENT_RULES
) -> list[Achievement]:
    """Earned achievements, in rule order."""
    return [
        Achievement(id=rule.id, name=rule.name, icon=rule.icon, earned=True, description=rule.description)
        for rule in rules
        if rule.predicate(stats)
    ]
