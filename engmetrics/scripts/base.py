#!/usr/bin/env python3
"""
Base Import Script

Provides the shared ingestion algorithm for every per-resource script:

1. Resolve the data source's enabled containers (repositories or projects).
   None found is not an error: the run records 0 imported records.
2. For each container, independently and sequentially:
   - page through provider records inside [start_date, end_date]
   - map each record and upsert it on its natural key, one record at a time
   - a malformed record is logged and skipped
   - a provider API failure or missing parent row logs one ERROR ImportLog
     row naming the container, then processing moves to the next container
3. Write DataSourceRun.records_imported exactly once with the total.

Storage connectivity errors and programming errors propagate and fail the
whole run.

Subclasses declare data_source_name, resource, depends_on and
import_window_days, and implement build_client(), resolve_containers(),
import_container() and container_failure_message().
"""

import sqlite3
from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, ClassVar, TypeVar

import httpx

from engmetrics.core.logging_config import get_logger, log_with_context
from engmetrics.core.run_metrics import get_current_tracker
from engmetrics.domain.constants import import_config
from engmetrics.domain.enums import LogLevel
from engmetrics.domain.errors import MappingError, MissingDependencyError
from engmetrics.providers.base import ProviderApiError
from engmetrics.scripts.contributor import ContributorResolver
from engmetrics.storage import StorageHandle
from engmetrics.storage.repository import Row
from engmetrics.utils.datetime_utils import in_window, parse_timestamp
from engmetrics.utils.error_handling import log_and_continue, log_and_return_default

# Recovered at the container boundary: one ImportLog row, next container
CONTAINER_ERRORS: tuple[type[Exception], ...] = (ProviderApiError, MissingDependencyError, httpx.HTTPError)

T = TypeVar("T")

# Recovered per record: warning, record skipped
RECORD_ERRORS: tuple[type[Exception], ...] = (MappingError, sqlite3.IntegrityError, sqlite3.DataError)


@dataclass
class RunContext:
    """
    Execution context handed to ImportScript.run().

    Attributes:
        data_source_id: DataSource the run belongs to
        run_id: DataSourceRun being recorded
        start_date: Import window start (inclusive)
        end_date: Import window end (inclusive)
        env: Provider credentials of the data source
    """

    data_source_id: str
    run_id: str
    start_date: datetime
    end_date: datetime
    env: dict[str, str] = field(default_factory=dict)

    def in_window(self, value: datetime | None) -> bool:
        return in_window(value, self.start_date, self.end_date)


@dataclass
class ImportSession:
    """Per-run state shared by the containers of one script run."""

    storage: StorageHandle
    context: RunContext
    client: Any
    contributors: ContributorResolver
    imported: int = 0
    skipped: int = 0


class ImportScript(ABC):
    """
    Base class for per-resource import scripts.

    Class attributes are static, introspectable metadata used by the
    script registry to order execution.
    """

    data_source_name: ClassVar[str]
    resource: ClassVar[str]
    depends_on: ClassVar[tuple[str, ...]] = ()
    import_window_days: ClassVar[int] = import_config.DEFAULT_WINDOW_DAYS

    def __init__(self, client_factory: Callable[[RunContext], Any] | None = None):
        """
        Args:
            client_factory: Optional override for provider client construction
                (receives the RunContext); defaults to build_client()
        """
        self.client_factory = client_factory
        self.logger = get_logger(f"engmetrics.scripts.{self.data_source_name.lower()}.{self.resource}")

    @property
    def key(self) -> str:
        return f"{self.data_source_name}:{self.resource}"

    # ------------------------------------------------------------------
    # Subclass hooks
    # ------------------------------------------------------------------

    @abstractmethod
    def build_client(self, context: RunContext) -> Any:
        """Build the provider client from the context's credentials (may raise ConfigurationError)."""

    @abstractmethod
    def resolve_containers(self, storage: StorageHandle, context: RunContext) -> list[Row]:
        """Enabled containers of this data source."""

    @abstractmethod
    async def import_container(self, session: ImportSession, container: Row) -> None:
        """Import every in-window record of one container."""

    @abstractmethod
    def container_failure_message(self, container: Row, error: Exception) -> str:
        """ImportLog message for a failed container."""

    def describe_container(self, container: Row) -> str:
        return str(container.get("full_name") or container.get("key") or container.get("id"))

    # ------------------------------------------------------------------
    # Algorithm
    # ------------------------------------------------------------------

    async def run(self, storage: StorageHandle, context: RunContext) -> int:
        """
        Import all containers of the data source for the context's window.

        Args:
            storage: Storage handle
            context: Run context (data source, run id, window, credentials)

        Returns:
            Number of records upserted successfully

        Raises:
            ConfigurationError: If provider credentials are invalid
            sqlite3.OperationalError: If storage becomes unavailable
        """
        containers = self.resolve_containers(storage, context)
        if not containers:
            log_with_context(
                self.logger,
                "info",
                f"No enabled containers for {self.key}, nothing to import",
                data_source_id=context.data_source_id,
                run_id=context.run_id,
            )
            self._record_total(storage, context, 0)
            return 0

        client = self.client_factory(context) if self.client_factory else self.build_client(context)
        session = ImportSession(
            storage=storage,
            context=context,
            client=client,
            contributors=ContributorResolver(storage, self.data_source_name),
        )

        tracker = get_current_tracker()
        if tracker:
            tracker.container_count += len(containers)

        for container in containers:
            label = self.describe_container(container)
            before = session.imported
            try:
                await self.import_container(session, container)
            except CONTAINER_ERRORS as e:
                self._record_container_failure(session, container, e)
                continue

            log_with_context(
                self.logger,
                "info",
                f"Imported {session.imported - before} {self.resource} records for {label}",
                data_source_id=context.data_source_id,
                run_id=context.run_id,
                container=label,
            )

        self._record_total(storage, context, session.imported)
        log_with_context(
            self.logger,
            "info",
            f"{self.key} finished: {session.imported} imported, {session.skipped} skipped",
            data_source_id=context.data_source_id,
            run_id=context.run_id,
            records_imported=session.imported,
            records_skipped=session.skipped,
        )
        return session.imported

    def import_record(self, session: ImportSession, record_id: Any, upsert: Callable[[], Any]) -> bool:
        """
        Upsert one record, skipping it if it is malformed or violates a constraint.

        Args:
            session: Current import session
            record_id: Identifier used in the skip warning
            upsert: Zero-argument callable performing map + upsert

        Returns:
            True when the record was stored
        """
        try:
            upsert()
        except RECORD_ERRORS as e:
            session.skipped += 1
            log_and_continue(
                self.logger,
                e,
                context={"run_id": session.context.run_id, "resource": self.resource, "record": str(record_id)},
                error_type=f"{self.resource} record import",
            )
            return False

        session.imported += 1
        return True

    def map_record(self, session: ImportSession, record_id: Any, mapper: Callable[..., T], *args: Any) -> T | None:
        """
        Apply a field mapper, returning None (and counting a skip) when the
        record is malformed.
        """
        try:
            return mapper(*args)
        except RECORD_ERRORS as e:
            session.skipped += 1
            log_and_continue(
                self.logger,
                e,
                context={"run_id": session.context.run_id, "resource": self.resource, "record": str(record_id)},
                error_type=f"{self.resource} record mapping",
            )
            return None

    def record_timestamp(self, session: ImportSession, record_id: Any, value: Any) -> datetime | None:
        """
        Parse the timestamp a record is windowed on.

        An unparsable value counts the record as skipped and returns None,
        which callers treat as outside the window.
        """
        try:
            return parse_timestamp(value)
        except ValueError as e:
            session.skipped += 1
            return log_and_return_default(
                self.logger,
                e,
                context={"run_id": session.context.run_id, "resource": self.resource, "record": str(record_id)},
                default_value=None,
                error_type=f"{self.resource} record timestamp",
            )

    def _record_container_failure(self, session: ImportSession, container: Row, error: Exception) -> None:
        message = self.container_failure_message(container, error)
        session.storage.import_logs.create(
            {
                "run_id": session.context.run_id,
                "level": LogLevel.ERROR,
                "message": message,
                "details": {
                    "container": self.describe_container(container),
                    "error_type": type(error).__name__,
                    "status_code": getattr(error, "status_code", None),
                },
            }
        )
        log_with_context(
            self.logger,
            "error",
            message,
            data_source_id=session.context.data_source_id,
            run_id=session.context.run_id,
            container=self.describe_container(container),
            exception_class=type(error).__name__,
        )

    def _record_total(self, storage: StorageHandle, context: RunContext, total: int) -> None:
        storage.data_source_runs.update(context.run_id, {"records_imported": total})


def enabled_repositories(storage: StorageHandle, context: RunContext, provider: str) -> list[Row]:
    return storage.repositories.find_many(
        {"data_source_id": context.data_source_id, "provider": provider, "is_enabled": True},
        order_by=[("full_name", "asc")],
    )


def enabled_projects(storage: StorageHandle, context: RunContext, provider: str) -> list[Row]:
    return storage.projects.find_many(
        {"data_source_id": context.data_source_id, "provider": provider, "is_enabled": True},
        order_by=[("key", "asc")],
    )
