#!/usr/bin/env python3
"""
Application Constants

Centralized constants for import windows, pagination and metrics
thresholds. Provides immutable configuration values used across import
scripts and the metrics aggregator.
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class ImportConfig:
    """
    Import script constants.

    Attributes:
        DEFAULT_WINDOW_DAYS: Default look-back bound for a script's import window
        INITIAL_WINDOW_DAYS: Forward window used when a resource has never completed a run
        BACKFILL_CHUNK_DAYS: Size of each backfill chunk walked backwards in time
        STALE_RUN_MINUTES: RUNNING runs older than this are marked FAILED
        DEFAULT_SPRINT_LENGTH_DAYS: Sprint length assumed when a sprint has no end date
    """

    DEFAULT_WINDOW_DAYS: int = 90
    INITIAL_WINDOW_DAYS: int = 7
    BACKFILL_CHUNK_DAYS: int = 7
    STALE_RUN_MINUTES: int = 30
    DEFAULT_SPRINT_LENGTH_DAYS: int = 14


@dataclass(frozen=True)
class PaginationConfig:
    """
    Provider pagination constants.

    Attributes:
        GITHUB_PAGE_SIZE: per_page for GitHub list endpoints (API maximum)
        JIRA_PAGE_SIZE: maxResults for Jira search and agile endpoints
        JIRA_MAX_RESULTS: Hard cap on issues returned by one Jira search
        SONARQUBE_PAGE_SIZE: ps for SonarQube paged endpoints
        GITLAB_PAGE_SIZE: per_page for GitLab list endpoints (API maximum)
    """

    GITHUB_PAGE_SIZE: int = 100
    JIRA_PAGE_SIZE: int = 100
    JIRA_MAX_RESULTS: int = 1000
    SONARQUBE_PAGE_SIZE: int = 100
    GITLAB_PAGE_SIZE: int = 100


@dataclass(frozen=True)
class DashboardConfig:
    """
    Metrics aggregator constants.

    Attributes:
        MAIN_BRANCHES: Branch names treated as the mainline
        TOP_REPOSITORIES: Repository distribution is truncated to this many entries
        UNKNOWN_LANGUAGE: Label used for repositories without a language
        DEFAULT_PRESET: Date range preset applied when none (or an invalid one) is given
    """

    MAIN_BRANCHES: tuple[str, ...] = ("main", "master")
    TOP_REPOSITORIES: int = 10
    UNKNOWN_LANGUAGE: str = "Unknown"
    DEFAULT_PRESET: str = "90d"


import_config = ImportConfig()
pagination_config = PaginationConfig()
dashboard_config = DashboardConfig()
