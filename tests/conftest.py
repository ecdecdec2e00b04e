"""
Pytest configuration and shared fixtures

Provides an in-memory storage handle, seeded tenants (organization, data
sources, repositories, projects, boards) and a fixed reference clock.
"""

from datetime import UTC, datetime, timedelta

import pytest

from engmetrics.domain.enums import Provider, RunStatus
from engmetrics.scripts.base import RunContext
from engmetrics.storage import StorageHandle

ORGANIZATION_ID = "org_acme"


# ===== Clock =====


@pytest.fixture
def now():
    """Provide a consistent reference instant for testing"""
    return datetime(2025, 3, 15, 12, 0, 0, tzinfo=UTC)


# ===== Storage =====


@pytest.fixture
def storage():
    """Fresh in-memory storage with the full schema"""
    handle = StorageHandle(":memory:")
    yield handle
    handle.close()


@pytest.fixture
def github_source(storage):
    """Enabled GitHub data source"""
    return storage.data_sources.create(
        {
            "organization_id": ORGANIZATION_ID,
            "name": "acme-github",
            "provider": Provider.GITHUB,
            "env": {"GITHUB_TOKEN": "ghp_realtoken123"},
            "is_enabled": True,
        }
    )


@pytest.fixture
def gitlab_source(storage):
    """Enabled GitLab data source"""
    return storage.data_sources.create(
        {
            "organization_id": ORGANIZATION_ID,
            "name": "acme-gitlab",
            "provider": Provider.GITLAB,
            "env": {"GITLAB_TOKEN": "glpat_realtoken123"},
            "is_enabled": True,
        }
    )


@pytest.fixture
def jira_source(storage):
    """Enabled Jira Cloud data source"""
    return storage.data_sources.create(
        {
            "organization_id": ORGANIZATION_ID,
            "name": "acme-jira",
            "provider": Provider.JIRA,
            "env": {
                "JIRA_DOMAIN": "acme",
                "JIRA_EMAIL": "bot@acme.io",
                "JIRA_API_TOKEN": "atl_token_123",
            },
            "is_enabled": True,
        }
    )


@pytest.fixture
def sonarqube_source(storage):
    """Enabled SonarQube data source in the same organization"""
    return storage.data_sources.create(
        {
            "organization_id": ORGANIZATION_ID,
            "name": "acme-sonar",
            "provider": Provider.SONARQUBE,
            "env": {"SONARQUBE_URL": "https://sonar.acme.io", "SONARQUBE_TOKEN": "squ_token_123"},
            "is_enabled": True,
        }
    )


def add_repository(storage, data_source, full_name, **extra):
    """Insert a GitHub repository container."""
    return storage.repositories.create(
        {
            "data_source_id": data_source["id"],
            "provider": Provider.GITHUB,
            "name": full_name.split("/")[-1],
            "full_name": full_name,
            "default_branch": "main",
            "is_enabled": True,
            **extra,
        }
    )


def add_project(storage, data_source, key, provider=Provider.GITHUB, **extra):
    """Insert a project container."""
    return storage.projects.create(
        {
            "data_source_id": data_source["id"],
            "provider": provider,
            "key": key,
            "name": key,
            "is_enabled": True,
            **extra,
        }
    )


@pytest.fixture
def repository(storage, github_source):
    """Enabled repository acme/api with its matching project"""
    repo = add_repository(storage, github_source, "acme/api", language="Python")
    add_project(storage, github_source, "acme/api")
    return repo


@pytest.fixture
def jira_project(storage, jira_source):
    """Enabled Jira project ENG with one scrum board"""
    project = add_project(storage, jira_source, "ENG", provider=Provider.JIRA)
    storage.boards.create({"project_id": project["id"], "external_id": "42", "name": "ENG board", "type": "scrum"})
    return project


# ===== Runs =====


def start_run(storage, data_source, resource="issue", started_at=None):
    """Insert a RUNNING DataSourceRun and return its id."""
    run = storage.data_source_runs.create(
        {
            "data_source_id": data_source["id"],
            "resource": resource,
            "status": RunStatus.RUNNING,
            "started_at": started_at or datetime(2025, 3, 15, 12, 0, 0, tzinfo=UTC),
            "records_imported": 0,
        }
    )
    return run["id"]


def make_context(storage, data_source, now, days=30, resource="issue"):
    """RunContext over [now - days, now] backed by a real run row."""
    return RunContext(
        data_source_id=data_source["id"],
        run_id=start_run(storage, data_source, resource),
        start_date=now - timedelta(days=days),
        end_date=now,
        env=dict(data_source["env"] or {}),
    )


@pytest.fixture
def context_for(storage, now):
    """Factory building a RunContext for a data source over the last N days"""

    def factory(data_source, days=30, resource="issue", end=None):
        return make_context(storage, data_source, end or now, days=days, resource=resource)

    return factory


@pytest.fixture
def repository_factory(storage):
    """Factory inserting repositories"""

    def factory(data_source, full_name, **extra):
        return add_repository(storage, data_source, full_name, **extra)

    return factory


@pytest.fixture
def project_factory(storage):
    """Factory inserting projects"""

    def factory(data_source, key, provider=Provider.GITHUB, **extra):
        return add_project(storage, data_source, key, provider=provider, **extra)

    return factory
