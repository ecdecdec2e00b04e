"""
Import window calculator.

The first run of a script imports a short recent window so a new data
source shows data quickly. Later runs import forward from where the last
completed run stopped, and walk history backwards one chunk per run until
the script's target window is covered:

    run 1:  forward [now-7d, now]
    run 2:  forward [last fetched, now] + backfill [earliest-7d, earliest]
    ...
    run n:  forward [last fetched, now], backfill complete
"""

from dataclasses import dataclass
from datetime import datetime, timedelta

from engmetrics.domain.constants import import_config
from engmetrics.domain.enums import RunStatus
from engmetrics.storage import StorageHandle
from engmetrics.utils.datetime_utils import utc_now


@dataclass(frozen=True)
class ImportWindow:
    start: datetime
    end: datetime


@dataclass(frozen=True)
class ImportWindows:
    """
    Windows for one script execution.

    Attributes:
        forward: Window from the last fetched instant to now (None when the
            last run recorded no fetched instant)
        backfill: Next historical chunk, None when nothing is left to backfill
        backfill_complete: True once history reaches the target window
        earliest_fetched: Earliest instant covered once this execution succeeds
    """

    forward: ImportWindow | None
    backfill: ImportWindow | None
    backfill_complete: bool
    earliest_fetched: datetime

    def windows(self) -> list[ImportWindow]:
        """Windows to import, forward first."""
        return [window for window in (self.forward, self.backfill) if window is not None]


def calculate_date_windows(
    storage: StorageHandle,
    data_source_id: str,
    resource: str,
    target_window_days: int,
    now: datetime | None = None,
) -> ImportWindows:
    """
    Compute the forward and backfill windows of a script from its last
    completed run.

    Args:
        storage: Storage handle
        data_source_id: Data source being imported
        resource: Script resource name (e.g. "issue")
        target_window_days: How far back history should eventually reach
        now: Reference instant (defaults to the current UTC time)

    Returns:
        ImportWindows
    """
    now = now or utc_now()
    target_boundary = now - timedelta(days=target_window_days)

    last_run = storage.data_source_runs.find_first(
        {"data_source_id": data_source_id, "resource": resource, "status": RunStatus.COMPLETED},
        order_by=[("completed_at", "desc")],
    )

    if last_run is None:
        start = now - timedelta(days=import_config.INITIAL_WINDOW_DAYS)
        return ImportWindows(
            forward=ImportWindow(start, now),
            backfill=None,
            backfill_complete=False,
            earliest_fetched=start,
        )

    last_fetched = last_run.get("last_fetched_data_at")
    forward = ImportWindow(last_fetched, now) if last_fetched else None

    earliest = last_run.get("earliest_fetched_data_at")
    if earliest is None:
        earliest = last_fetched - timedelta(days=import_config.INITIAL_WINDOW_DAYS) if last_fetched else now

    if earliest <= target_boundary:
        return ImportWindows(forward=forward, backfill=None, backfill_complete=True, earliest_fetched=earliest)

    backfill_start = max(earliest - timedelta(days=import_config.BACKFILL_CHUNK_DAYS), target_boundary)
    return ImportWindows(
        forward=forward,
        backfill=ImportWindow(backfill_start, earliest),
        backfill_complete=False,
        earliest_fetched=backfill_start,
    )
