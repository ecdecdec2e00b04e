"""
Engineering metrics ingestion, normalization and aggregation core.

Subpackages:
    - providers: thin async HTTP clients for GitHub, GitLab, Jira and SonarQube
    - mappers: pure translation of provider records into canonical shapes
    - scripts: per-resource import scripts, registry, windowing and run tracking
    - storage: sqlite-backed entity repositories
    - metrics: read-only dashboard aggregations
    - domain: enums, canonical records and dashboard data contracts
"""

__version__ = "0.4.0"
