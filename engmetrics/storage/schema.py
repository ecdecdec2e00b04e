#!/usr/bin/env python3
"""
Normalized storage schema.

Every entity is declared once as an EntitySchema: its table, typed columns
and the natural key its upserts are idempotent on. create_schema() turns
the declarations into tables and unique indexes (idempotent).

Column types:
    text, integer, real  - stored as-is
    boolean              - stored as 0/1, returned as bool
    timestamp            - stored as fixed-width UTC ISO strings so that
                           lexical comparison equals chronological order
    json                 - stored as JSON text, returned decoded
"""

import sqlite3
from dataclasses import dataclass, field

COLUMN_TYPES = {
    "text": "TEXT",
    "integer": "INTEGER",
    "real": "REAL",
    "boolean": "INTEGER",
    "timestamp": "TEXT",
    "json": "TEXT",
}


def quote(identifier: str) -> str:
    return f'"{identifier}"'


# Maintained by the repository on every write
AUDIT_COLUMNS = {"inserted_at": "timestamp", "updated_at": "timestamp"}


@dataclass(frozen=True)
class EntitySchema:
    """
    Declaration of one normalized entity.

    Attributes:
        name: Repository attribute name on StorageHandle (e.g. "issues")
        table: SQL table name
        columns: Column name -> column type (id and audit columns are implicit)
        unique: Natural key columns used by upsert
        indexes: Additional non-unique indexes
    """

    name: str
    table: str
    columns: dict[str, str]
    unique: tuple[str, ...] = ()
    indexes: tuple[tuple[str, ...], ...] = field(default_factory=tuple)

    def column_type(self, column: str) -> str | None:
        if column == "id":
            return "text"
        return self.columns.get(column) or AUDIT_COLUMNS.get(column)

    def ddl(self) -> str:
        column_lines = ["id TEXT PRIMARY KEY"]
        column_lines += [f"{quote(name)} {COLUMN_TYPES[kind]}" for name, kind in self.columns.items()]
        column_lines += [f"{quote(name)} {COLUMN_TYPES[kind]}" for name, kind in AUDIT_COLUMNS.items()]
        statements = [f"CREATE TABLE IF NOT EXISTS {self.table} (\n    " + ",\n    ".join(column_lines) + "\n);"]
        if self.unique:
            statements.append(
                f"CREATE UNIQUE INDEX IF NOT EXISTS ux_{self.table} "
                f"ON {self.table} ({', '.join(quote(c) for c in self.unique)});"
            )
        for index_columns in self.indexes:
            statements.append(
                f"CREATE INDEX IF NOT EXISTS ix_{self.table}_{'_'.join(index_columns)} "
                f"ON {self.table} ({', '.join(quote(c) for c in index_columns)});"
            )
        return "\n".join(statements)


# ---------------------------------------------------------------------------
# Ingestion bookkeeping
# ---------------------------------------------------------------------------

DATA_SOURCE = EntitySchema(
    name="data_sources",
    table="data_source",
    columns={
        "organization_id": "text",
        "name": "text",
        "provider": "text",
        "env": "json",
        "is_enabled": "boolean",
    },
)

DATA_SOURCE_RUN = EntitySchema(
    name="data_source_runs",
    table="data_source_run",
    columns={
        "data_source_id": "text",
        "resource": "text",
        "batch_id": "text",
        "status": "text",
        "started_at": "timestamp",
        "completed_at": "timestamp",
        "duration_ms": "integer",
        "records_imported": "integer",
        "error_message": "text",
        "last_fetched_data_at": "timestamp",
        "earliest_fetched_data_at": "timestamp",
    },
    indexes=(("data_source_id", "resource", "status"),),
)

IMPORT_LOG = EntitySchema(
    name="import_logs",
    table="import_log",
    columns={"run_id": "text", "level": "text", "message": "text", "details": "json"},
    indexes=(("run_id",),),
)

# ---------------------------------------------------------------------------
# Containers
# ---------------------------------------------------------------------------

REPOSITORY = EntitySchema(
    name="repositories",
    table="repository",
    columns={
        "data_source_id": "text",
        "provider": "text",
        "name": "text",
        "full_name": "text",
        "url": "text",
        "language": "text",
        "default_branch": "text",
        "sonar_project_key": "text",
        "is_enabled": "boolean",
    },
    unique=("data_source_id", "full_name"),
)

PROJECT = EntitySchema(
    name="projects",
    table="project",
    columns={
        "data_source_id": "text",
        "provider": "text",
        "key": "text",
        "name": "text",
        "is_enabled": "boolean",
    },
    unique=("data_source_id", "key"),
)

BOARD = EntitySchema(
    name="boards",
    table="board",
    columns={"project_id": "text", "external_id": "text", "name": "text", "type": "text"},
    unique=("project_id", "external_id"),
)

SPRINT = EntitySchema(
    name="sprints",
    table="sprint",
    columns={
        "project_id": "text",
        "board_id": "text",
        "external_id": "text",
        "name": "text",
        "state": "text",
        "goal": "text",
        "start_date": "timestamp",
        "end_date": "timestamp",
        "completed_at": "timestamp",
    },
    unique=("project_id", "external_id"),
)

PIPELINE = EntitySchema(
    name="pipelines",
    table="pipeline",
    columns={"repository_id": "text", "external_id": "text", "name": "text", "config_path": "text"},
    unique=("repository_id", "config_path"),
)

# ---------------------------------------------------------------------------
# People and facts
# ---------------------------------------------------------------------------

CONTRIBUTOR = EntitySchema(
    name="contributors",
    table="contributor",
    columns={
        "provider": "text",
        "email": "text",
        "name": "text",
        "username": "text",
        "provider_user_id": "text",
        "avatar_url": "text",
    },
    unique=("provider", "email"),
)

ISSUE = EntitySchema(
    name="issues",
    table="issue",
    columns={
        "project_id": "text",
        "key": "text",
        "external_id": "text",
        "title": "text",
        "description": "text",
        "type": "text",
        "status": "text",
        "status_name": "text",
        "priority": "text",
        "reporter_id": "text",
        "assignee_id": "text",
        "board_id": "text",
        "sprint_id": "text",
        "story_points": "real",
        "url": "text",
        "created_at": "timestamp",
        "resolved_at": "timestamp",
    },
    unique=("key",),
    indexes=(("project_id", "status"),),
)

ISSUE_STATUS_TRANSITION = EntitySchema(
    name="issue_status_transitions",
    table="issue_status_transition",
    columns={
        "issue_id": "text",
        "from_status": "text",
        "to_status": "text",
        "transitioned_at": "timestamp",
        "author_id": "text",
    },
    unique=("issue_id", "transitioned_at", "to_status"),
)

COMMIT = EntitySchema(
    name="commits",
    table="git_commit",
    columns={
        "repository_id": "text",
        "author_id": "text",
        "sha": "text",
        "message": "text",
        "branch": "text",
        "committed_at": "timestamp",
        "lines_added": "integer",
        "lines_removed": "integer",
        "files_changed": "integer",
    },
    unique=("repository_id", "sha"),
    indexes=(("author_id", "committed_at"), ("committed_at",)),
)

PULL_REQUEST = EntitySchema(
    name="pull_requests",
    table="pull_request",
    columns={
        "repository_id": "text",
        "author_id": "text",
        "number": "integer",
        "title": "text",
        "state": "text",
        "source_branch": "text",
        "target_branch": "text",
        "url": "text",
        "iteration_count": "integer",
        "created_at": "timestamp",
        "merged_at": "timestamp",
        "closed_at": "timestamp",
    },
    unique=("repository_id", "number"),
    indexes=(("author_id", "created_at"),),
)

PULL_REQUEST_REVIEW = EntitySchema(
    name="pull_request_reviews",
    table="pull_request_review",
    columns={
        "pull_request_id": "text",
        "reviewer_id": "text",
        "external_id": "text",
        "state": "text",
        "submitted_at": "timestamp",
    },
    unique=("external_id",),
    indexes=(("reviewer_id", "submitted_at"),),
)

PIPELINE_RUN = EntitySchema(
    name="pipeline_runs",
    table="pipeline_run",
    columns={
        "pipeline_id": "text",
        "external_id": "text",
        "run_number": "integer",
        "status": "text",
        "branch": "text",
        "commit_sha": "text",
        "trigger_event": "text",
        "started_at": "timestamp",
        "completed_at": "timestamp",
        "duration_ms": "integer",
    },
    unique=("pipeline_id", "run_number"),
    indexes=(("completed_at",),),
)

PIPELINE_STAGE = EntitySchema(
    name="pipeline_stages",
    table="pipeline_stage",
    columns={
        "pipeline_run_id": "text",
        "name": "text",
        "status": "text",
        "started_at": "timestamp",
        "completed_at": "timestamp",
        "duration_ms": "integer",
    },
    unique=("pipeline_run_id", "name"),
)

QUALITY_SCAN = EntitySchema(
    name="quality_scans",
    table="quality_scan",
    columns={
        "repository_id": "text",
        "scanned_at": "timestamp",
        "coverage": "real",
        "new_coverage": "real",
        "code_smells": "integer",
        "bugs": "integer",
        "vulnerabilities": "integer",
        "duplicated_lines_density": "real",
        "technical_debt_ratio": "real",
        "complexity": "integer",
        "maintainability_rating": "text",
        "reliability_rating": "text",
        "security_rating": "text",
    },
    unique=("repository_id", "scanned_at"),
)

SECURITY_VULNERABILITY = EntitySchema(
    name="security_vulnerabilities",
    table="security_vulnerability",
    columns={
        "repository_id": "text",
        "external_id": "text",
        "title": "text",
        "severity": "text",
        "status": "text",
        "discovered_at": "timestamp",
        "resolved_at": "timestamp",
    },
    unique=("repository_id", "external_id"),
)

# ---------------------------------------------------------------------------
# Teams (read-only here, maintained by the team CRUD surface)
# ---------------------------------------------------------------------------

TEAM = EntitySchema(
    name="teams",
    table="team",
    columns={"organization_id": "text", "name": "text"},
)

TEAM_REPOSITORY = EntitySchema(
    name="team_repositories",
    table="team_repository",
    columns={"team_id": "text", "repository_id": "text"},
    unique=("team_id", "repository_id"),
)

TEAM_PROJECT = EntitySchema(
    name="team_projects",
    table="team_project",
    columns={"team_id": "text", "project_id": "text"},
    unique=("team_id", "project_id"),
)

ENTITIES: tuple[EntitySchema, ...] = (
    DATA_SOURCE,
    DATA_SOURCE_RUN,
    IMPORT_LOG,
    REPOSITORY,
    PROJECT,
    BOARD,
    SPRINT,
    PIPELINE,
    CONTRIBUTOR,
    ISSUE,
    ISSUE_STATUS_TRANSITION,
    COMMIT,
    PULL_REQUEST,
    PULL_REQUEST_REVIEW,
    PIPELINE_RUN,
    PIPELINE_STAGE,
    QUALITY_SCAN,
    SECURITY_VULNERABILITY,
    TEAM,
    TEAM_REPOSITORY,
    TEAM_PROJECT,
)


def create_schema(conn: sqlite3.Connection) -> None:
    """Create all tables and indexes (idempotent)."""
    conn.executescript("\n".join(entity.ddl() for entity in ENTITIES))
