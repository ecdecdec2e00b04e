"""
Script executor.

Runs import scripts for configured data sources:

    execute_script()        one script: run record, windows, forward then backfill
    execute_data_source()   every script of a data source in dependency order
    execute_all()           every enabled data source

A script failure fails its DataSourceRun and skips the scripts that depend
on it; other scripts of the data source still run.
"""

from dataclasses import dataclass
from datetime import datetime

from engmetrics.core.logging_config import get_logger, log_with_context
from engmetrics.core.run_metrics import track_run_performance
from engmetrics.scripts.base import ImportScript, RunContext
from engmetrics.scripts.date_window import calculate_date_windows
from engmetrics.scripts.registry import ScriptRegistry
from engmetrics.scripts.run_tracker import complete_run, create_run, fail_run
from engmetrics.storage import StorageHandle
from engmetrics.storage.repository import Row
from engmetrics.utils.datetime_utils import utc_now

logger = get_logger(__name__)


@dataclass
class ScriptExecutionResult:
    data_source_id: str
    script_key: str
    success: bool
    skipped: bool = False
    records_imported: int = 0
    run_id: str | None = None
    error: str | None = None


async def execute_script(
    storage: StorageHandle,
    script: ImportScript,
    data_source: Row,
    now: datetime | None = None,
    batch_id: str | None = None,
) -> ScriptExecutionResult:
    """
    Execute one script for one data source.

    The forward window is imported first, then the backfill chunk (when
    any). Each script.run() writes its own records_imported; the completed
    run records the sum over both windows.

    Args:
        storage: Storage handle
        script: Import script to execute
        data_source: DataSource row
        now: Reference instant (defaults to the current UTC time)
        batch_id: Optional id grouping the runs of one scheduler invocation

    Returns:
        ScriptExecutionResult (never raises for script failures)
    """
    now = now or utc_now()
    run_id = create_run(storage, data_source["id"], script.resource, batch_id=batch_id, now=now)

    try:
        with track_run_performance(script.key) as tracker:
            windows = calculate_date_windows(
                storage, data_source["id"], script.resource, script.import_window_days, now=now
            )
            total = 0
            for window in windows.windows():
                context = RunContext(
                    data_source_id=data_source["id"],
                    run_id=run_id,
                    start_date=window.start,
                    end_date=window.end,
                    env=dict(data_source.get("env") or {}),
                )
                total += await script.run(storage, context)
    except Exception as e:
        error_message = str(e) or type(e).__name__
        fail_run(storage, run_id, error_message)
        logger.error(f"Script {script.key} failed for data source {data_source['id']}: {error_message}", exc_info=True)
        return ScriptExecutionResult(
            data_source_id=data_source["id"],
            script_key=script.key,
            success=False,
            run_id=run_id,
            error=error_message,
        )

    complete_run(
        storage,
        run_id,
        total,
        last_fetched_data_at=now,
        earliest_fetched_data_at=windows.earliest_fetched,
    )
    log_with_context(
        logger,
        "info",
        f"Script {script.key} completed: {total} records",
        data_source_id=data_source["id"],
        run_id=run_id,
        records_imported=total,
        backfill_complete=windows.backfill_complete,
        **tracker.to_dict(),
    )
    return ScriptExecutionResult(
        data_source_id=data_source["id"],
        script_key=script.key,
        success=True,
        records_imported=total,
        run_id=run_id,
    )


async def execute_data_source(
    storage: StorageHandle,
    data_source: Row,
    registry: ScriptRegistry,
    now: datetime | None = None,
    batch_id: str | None = None,
) -> list[ScriptExecutionResult]:
    """
    Execute every registered script of the data source's provider in
    dependency order. Dependents of a failed or skipped script are skipped.
    """
    results: list[ScriptExecutionResult] = []
    blocked: set[str] = set()

    for script in registry.execution_order(data_source["provider"]):
        failed_dependencies = [dependency for dependency in script.depends_on if dependency in blocked]
        if failed_dependencies:
            logger.warning(f"Skipping {script.key}: dependencies failed ({', '.join(failed_dependencies)})")
            blocked.add(script.resource)
            results.append(
                ScriptExecutionResult(
                    data_source_id=data_source["id"],
                    script_key=script.key,
                    success=False,
                    skipped=True,
                    error=f"Skipped: dependencies failed ({', '.join(failed_dependencies)})",
                )
            )
            continue

        result = await execute_script(storage, script, data_source, now=now, batch_id=batch_id)
        if not result.success:
            blocked.add(script.resource)
        results.append(result)

    return results


async def execute_all(
    storage: StorageHandle,
    registry: ScriptRegistry,
    data_source_id: str | None = None,
    now: datetime | None = None,
    batch_id: str | None = None,
) -> list[ScriptExecutionResult]:
    """
    Execute every enabled data source (or only data_source_id).

    Returns:
        Results of all scripts, in execution order
    """
    where: dict = {"is_enabled": True}
    if data_source_id:
        where["id"] = data_source_id

    results: list[ScriptExecutionResult] = []
    for data_source in storage.data_sources.find_many(where, order_by=[("name", "asc")]):
        logger.info(f"Importing data source {data_source['name']} ({data_source['provider']})")
        results.extend(await execute_data_source(storage, data_source, registry, now=now, batch_id=batch_id))

    succeeded = sum(1 for result in results if result.success)
    skipped = sum(1 for result in results if result.skipped)
    failed = len(results) - succeeded - skipped
    logger.info(f"Import finished: {succeeded} succeeded, {failed} failed, {skipped} skipped")
    return results
