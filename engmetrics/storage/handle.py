"""
StorageHandle: the set of entity repositories handed to import scripts and
the metrics aggregator.

Usage:
    from engmetrics.storage import StorageHandle

    with StorageHandle(".tmp/engmetrics.db") as storage:
        repos = storage.repositories.find_many({"is_enabled": True})
"""

import sqlite3
from pathlib import Path

from engmetrics.core.logging_config import get_logger
from engmetrics.storage.repository import EntityRepository
from engmetrics.storage.schema import ENTITIES, create_schema
from engmetrics.utils.error_handling import with_retry

logger = get_logger(__name__)


@with_retry(max_attempts=3, backoff_seconds=0.5, exceptions=(sqlite3.OperationalError,))
def connect(path: str) -> sqlite3.Connection:
    """
    Open a sqlite connection in autocommit mode and ensure the schema exists.

    Retries when the database file is locked by another writer.
    """
    if path != ":memory:":
        Path(path).parent.mkdir(parents=True, exist_ok=True)

    connection = sqlite3.connect(path, isolation_level=None)
    connection.row_factory = sqlite3.Row
    if path != ":memory:":
        connection.execute("PRAGMA journal_mode = WAL")
    create_schema(connection)
    return connection


class StorageHandle:
    """
    Provider-agnostic storage facade: one EntityRepository per entity.

    Attributes are named after the entity collections (issues, commits,
    data_source_runs, ...) and declared in engmetrics.storage.schema.
    """

    data_sources: EntityRepository
    data_source_runs: EntityRepository
    import_logs: EntityRepository
    repositories: EntityRepository
    projects: EntityRepository
    boards: EntityRepository
    sprints: EntityRepository
    pipelines: EntityRepository
    contributors: EntityRepository
    issues: EntityRepository
    issue_status_transitions: EntityRepository
    commits: EntityRepository
    pull_requests: EntityRepository
    pull_request_reviews: EntityRepository
    pipeline_runs: EntityRepository
    pipeline_stages: EntityRepository
    quality_scans: EntityRepository
    security_vulnerabilities: EntityRepository
    teams: EntityRepository
    team_repositories: EntityRepository
    team_projects: EntityRepository

    def __init__(self, path: str = ":memory:"):
        self.path = path
        self.connection = connect(path)
        for entity in ENTITIES:
            setattr(self, entity.name, EntityRepository(self.connection, entity))
        logger.debug(f"Opened storage at {path}")

    def close(self) -> None:
        self.connection.close()

    def __enter__(self) -> "StorageHandle":
        return self

    def __exit__(self, *args) -> None:
        self.close()
