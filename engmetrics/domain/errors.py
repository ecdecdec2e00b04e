"""
Domain exceptions for the ingestion pipeline.

Container-level errors (MissingDependencyError and the provider API errors
in engmetrics.providers.base) are recorded as ImportLog rows and never
escape a container. MappingError marks a single malformed record, which is
skipped. Everything else propagates and fails the run.
"""


class MissingDependencyError(Exception):
    """A parent row (Project, Board, Pipeline) required by a container is absent."""

    pass


class MappingError(ValueError):
    """A provider record could not be translated into its canonical shape."""

    def __init__(self, message: str, record_id: str | None = None):
        super().__init__(message)
        self.record_id = record_id


class StorageError(Exception):
    """Invalid use of the storage layer (unknown entity, column or key)."""

    pass


class CycleError(Exception):
    """The dependsOn graph of the registered scripts contains a cycle."""

    def __init__(self, resources: list[str]):
        super().__init__(f"Dependency cycle between resources: {', '.join(sorted(resources))}")
        self.resources = resources
