"""
DataSourceRun lifecycle: RUNNING -> COMPLETED | FAILED.

Runs left RUNNING by a crashed process are failed by cleanup_stale_runs()
before the next scheduled execution.
"""

from datetime import datetime, timedelta

from engmetrics.core.logging_config import get_logger
from engmetrics.domain.constants import import_config
from engmetrics.domain.enums import RunStatus
from engmetrics.storage import StorageHandle
from engmetrics.utils.datetime_utils import milliseconds_between, utc_now

logger = get_logger(__name__)

STALE_RUN_MESSAGE = "Run timed out - marked as failed after being stuck in RUNNING state"


def create_run(
    storage: StorageHandle,
    data_source_id: str,
    resource: str,
    batch_id: str | None = None,
    now: datetime | None = None,
) -> str:
    """
    Record the start of a script execution.

    Returns:
        Id of the new RUNNING DataSourceRun
    """
    run = storage.data_source_runs.create(
        {
            "data_source_id": data_source_id,
            "resource": resource,
            "batch_id": batch_id,
            "status": RunStatus.RUNNING,
            "started_at": now or utc_now(),
            "records_imported": 0,
        }
    )
    return run["id"]


def complete_run(
    storage: StorageHandle,
    run_id: str,
    records_imported: int | None,
    last_fetched_data_at: datetime,
    earliest_fetched_data_at: datetime | None = None,
    now: datetime | None = None,
) -> None:
    """
    Mark a run COMPLETED and record how far it fetched.

    Args:
        records_imported: Total to record; None keeps the value the script wrote
        last_fetched_data_at: End of the forward window
        earliest_fetched_data_at: Start of the oldest window covered so far
            (defaults to last_fetched_data_at)
    """
    completed_at = now or utc_now()
    run = storage.data_source_runs.find_unique(run_id)
    if run is None:
        raise ValueError(f"DataSourceRun {run_id} not found")

    data = {
        "status": RunStatus.COMPLETED,
        "last_fetched_data_at": last_fetched_data_at,
        "earliest_fetched_data_at": earliest_fetched_data_at or last_fetched_data_at,
        "completed_at": completed_at,
        "duration_ms": milliseconds_between(run["started_at"], completed_at),
    }
    if records_imported is not None:
        data["records_imported"] = records_imported
    storage.data_source_runs.update(run_id, data)


def fail_run(storage: StorageHandle, run_id: str, error_message: str, now: datetime | None = None) -> None:
    completed_at = now or utc_now()
    run = storage.data_source_runs.find_unique(run_id)
    if run is None:
        raise ValueError(f"DataSourceRun {run_id} not found")

    storage.data_source_runs.update(
        run_id,
        {
            "status": RunStatus.FAILED,
            "error_message": error_message,
            "completed_at": completed_at,
            "duration_ms": milliseconds_between(run["started_at"], completed_at),
        },
    )


def cleanup_stale_runs(
    storage: StorageHandle,
    timeout_minutes: int = import_config.STALE_RUN_MINUTES,
    now: datetime | None = None,
) -> int:
    """
    Fail every run that has been RUNNING for longer than the timeout.

    Returns:
        Number of runs marked FAILED
    """
    now = now or utc_now()
    count = storage.data_source_runs.update_many(
        {"status": RunStatus.RUNNING, "started_at": {"lt": now - timedelta(minutes=timeout_minutes)}},
        {"status": RunStatus.FAILED, "error_message": STALE_RUN_MESSAGE, "completed_at": now},
    )
    if count > 0:
        logger.warning(f"Cleaned up {count} stale run(s)")
    return count
