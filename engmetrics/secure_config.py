"""
Secure Configuration Management

Provides centralized, validated configuration for the import runner and the
per-data-source provider credentials.

Provider credentials live on each DataSource (its env mapping) rather than
in the process environment, so provider configs are built from a mapping:

Usage:
    from engmetrics.secure_config import get_config, github_config_from_env

    config = get_config()
    storage = config.get_storage_config()

    github = github_config_from_env(context.env)
    print(github.api_url)

Security Features:
    - Strict validation of all configuration values
    - Fail-fast on missing/invalid configuration
    - Placeholder detection (e.g., "your_token_here")
    - HTTPS enforcement for URLs

Raises:
    ConfigurationError: If configuration is missing or invalid
"""

import os
import re
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv


class ConfigurationError(Exception):
    """Raised when configuration is missing or invalid."""

    pass


PLACEHOLDERS = ["your_token", "your_pat", "your_api", "example", "placeholder", "xxx", "replace_me"]

JIRA_VARIANTS = ("cloud", "datacenter")
DEFAULT_STORY_POINTS_FIELD = "customfield_10016"
DEFAULT_SPRINT_FIELD = "customfield_10020"


def _check_secret(name: str, value: str) -> None:
    if not value:
        raise ConfigurationError(f"{name} is required")
    if any(placeholder in value.lower() for placeholder in PLACEHOLDERS):
        raise ConfigurationError(f"{name} contains a placeholder value - please set a real credential")


def _check_https(name: str, url: str) -> None:
    if not url:
        raise ConfigurationError(f"{name} is required")
    if not url.startswith("https://"):
        raise ConfigurationError(f"{name} must use HTTPS: {url}")


@dataclass
class GitHubConfig:
    """
    Validated GitHub configuration.
    """

    token: str
    api_url: str = "https://api.github.com"

    def __post_init__(self):
        self._validate()

    def _validate(self):
        """
        Validate GitHub configuration.

        Raises:
            ConfigurationError: If configuration is invalid
        """
        _check_secret("GITHUB_TOKEN", self.token)
        _check_https("GITHUB_API_URL", self.api_url)
        self.api_url = self.api_url.rstrip("/")


@dataclass
class JiraConfig:
    """
    Validated Jira configuration.

    Cloud instances authenticate with email + API token (Basic auth, REST v3);
    Data Center instances authenticate with a personal access token (Bearer,
    REST v2).
    """

    variant: str
    base_url: str
    email: str | None = None
    api_token: str | None = None
    pat: str | None = None
    story_points_field: str = DEFAULT_STORY_POINTS_FIELD
    sprint_field: str = DEFAULT_SPRINT_FIELD

    def __post_init__(self):
        self._validate()

    def _validate(self):
        """
        Validate Jira configuration.

        Raises:
            ConfigurationError: If configuration is invalid
        """
        if self.variant not in JIRA_VARIANTS:
            raise ConfigurationError(f"JIRA_VARIANT must be one of {', '.join(JIRA_VARIANTS)}: {self.variant}")

        _check_https("Jira base URL", self.base_url)
        self.base_url = self.base_url.rstrip("/")

        if self.variant == "cloud":
            if not self.email:
                raise ConfigurationError("JIRA_EMAIL is required for Jira Cloud")
            _check_secret("JIRA_API_TOKEN", self.api_token or "")
        else:
            _check_secret("JIRA_PAT", self.pat or "")

        for name, field in (
            ("JIRA_STORY_POINTS_FIELD", self.story_points_field),
            ("JIRA_SPRINT_FIELD", self.sprint_field),
        ):
            if not re.match(r"^[A-Za-z0-9_]+$", field):
                raise ConfigurationError(f"{name} contains invalid characters: {field}")

    @property
    def api_version(self) -> str:
        return "3" if self.variant == "cloud" else "2"


@dataclass
class SonarQubeConfig:
    """
    Validated SonarQube configuration.
    """

    base_url: str
    token: str

    def __post_init__(self):
        self._validate()

    def _validate(self):
        _check_https("SONARQUBE_URL", self.base_url)
        self.base_url = self.base_url.rstrip("/")
        _check_secret("SONARQUBE_TOKEN", self.token)


@dataclass
class GitLabConfig:
    """
    Validated GitLab configuration.

    host is the instance root (gitlab.com or a self-managed server); the
    REST v4 API lives under {host}/api/v4.
    """

    token: str
    host: str = "https://gitlab.com"

    def __post_init__(self):
        self._validate()

    def _validate(self):
        _check_secret("GITLAB_TOKEN", self.token)
        _check_https("GITLAB_HOST", self.host)
        self.host = self.host.rstrip("/")

    @property
    def api_url(self) -> str:
        return f"{self.host}/api/v4"


@dataclass
class StorageConfig:
    """
    Validated storage configuration.
    """

    database_path: str

    def __post_init__(self):
        if not self.database_path:
            raise ConfigurationError("ENGMETRICS_DATABASE is required")
        if self.database_path != ":memory:" and Path(self.database_path).is_dir():
            raise ConfigurationError(f"ENGMETRICS_DATABASE must be a file path, got a directory: {self.database_path}")


@dataclass
class RunnerConfig:
    """
    Import runner settings.
    """

    log_level: str = "INFO"
    json_logs: bool = False
    log_file: str | None = None

    def __post_init__(self):
        self.log_level = self.log_level.upper()
        if self.log_level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ConfigurationError(f"ENGMETRICS_LOG_LEVEL is not a valid level: {self.log_level}")


def github_config_from_env(env: Mapping[str, str]) -> GitHubConfig:
    """
    Build validated GitHub configuration from a data source env mapping.

    Args:
        env: Credentials mapping (GITHUB_TOKEN, optional GITHUB_API_URL)

    Returns:
        GitHubConfig

    Raises:
        ConfigurationError: If configuration is missing or invalid
    """
    return GitHubConfig(
        token=env.get("GITHUB_TOKEN", ""),
        api_url=env.get("GITHUB_API_URL") or "https://api.github.com",
    )


def jira_config_from_env(env: Mapping[str, str]) -> JiraConfig:
    """
    Build validated Jira configuration from a data source env mapping.

    JIRA_VARIANT selects cloud (JIRA_DOMAIN, JIRA_EMAIL, JIRA_API_TOKEN) or
    datacenter (JIRA_SERVER_URL, JIRA_PAT). JIRA_STORY_POINTS_FIELD and
    JIRA_SPRINT_FIELD override the custom field ids.

    Raises:
        ConfigurationError: If configuration is missing or invalid
    """
    variant = (env.get("JIRA_VARIANT") or "cloud").lower()

    if variant == "cloud":
        domain = env.get("JIRA_DOMAIN", "")
        if not domain:
            raise ConfigurationError("JIRA_DOMAIN is required for Jira Cloud")
        base_url = f"https://{domain}.atlassian.net"
    else:
        base_url = env.get("JIRA_SERVER_URL", "")

    return JiraConfig(
        variant=variant,
        base_url=base_url,
        email=env.get("JIRA_EMAIL"),
        api_token=env.get("JIRA_API_TOKEN"),
        pat=env.get("JIRA_PAT"),
        story_points_field=env.get("JIRA_STORY_POINTS_FIELD") or DEFAULT_STORY_POINTS_FIELD,
        sprint_field=env.get("JIRA_SPRINT_FIELD") or DEFAULT_SPRINT_FIELD,
    )


def gitlab_config_from_env(env: Mapping[str, str]) -> GitLabConfig:
    """
    Build validated GitLab configuration from a data source env mapping.

    Args:
        env: Credentials mapping (GITLAB_TOKEN, optional GITLAB_HOST)

    Raises:
        ConfigurationError: If configuration is missing or invalid
    """
    return GitLabConfig(
        token=env.get("GITLAB_TOKEN", ""),
        host=env.get("GITLAB_HOST") or "https://gitlab.com",
    )


def sonarqube_config_from_env(env: Mapping[str, str]) -> SonarQubeConfig:
    return SonarQubeConfig(
        base_url=env.get("SONARQUBE_URL", ""),
        token=env.get("SONARQUBE_TOKEN", ""),
    )


class SecureConfig:
    """
    Centralized secure configuration manager.

    Loads and validates runner configuration from environment variables.
    Provides fail-fast behavior to catch configuration issues early.
    """

    def __init__(self):
        """Initialize configuration (loads .env file)."""
        load_dotenv()

    def get_storage_config(self) -> StorageConfig:
        """
        Get validated storage configuration.

        Returns:
            StorageConfig: Validated configuration

        Raises:
            ConfigurationError: If configuration is missing or invalid
        """
        return StorageConfig(database_path=os.getenv("ENGMETRICS_DATABASE", ".tmp/engmetrics.db"))

    def get_runner_config(self) -> RunnerConfig:
        """
        Get runner configuration (logging).

        Raises:
            ConfigurationError: If configuration is invalid
        """
        return RunnerConfig(
            log_level=os.getenv("ENGMETRICS_LOG_LEVEL", "INFO"),
            json_logs=os.getenv("ENGMETRICS_JSON_LOGS", "false").lower() in ("1", "true", "yes"),
            log_file=os.getenv("ENGMETRICS_LOG_FILE") or None,
        )


_config_instance = None


def get_config() -> SecureConfig:
    """
    Get the global configuration instance (singleton pattern).

    Returns:
        SecureConfig: The configuration manager
    """
    global _config_instance
    if _config_instance is None:
        _config_instance = SecureConfig()
    return _config_instance
