#!/usr/bin/env python3
"""
Import Runner

Executes every registered import script for the enabled data sources in
dependency order, recording one DataSourceRun per script.

Usage:
    python -m engmetrics.run_imports
    python -m engmetrics.run_imports --data-source <id>
    python -m engmetrics.run_imports --cleanup-stale

Configuration (environment or .env):
    ENGMETRICS_DATABASE    sqlite database path (default .tmp/engmetrics.db)
    ENGMETRICS_LOG_LEVEL   log level (default INFO)
    ENGMETRICS_JSON_LOGS   emit JSON logs on the console
    ENGMETRICS_LOG_FILE    also write JSON logs to this file
"""

import argparse
import asyncio
import sys
import uuid
from pathlib import Path

from engmetrics.core.logging_config import get_logger, setup_logging
from engmetrics.scripts.executor import ScriptExecutionResult, execute_all
from engmetrics.scripts.registry import default_registry
from engmetrics.scripts.run_tracker import cleanup_stale_runs
from engmetrics.secure_config import ConfigurationError, get_config
from engmetrics.storage import StorageHandle

logger = get_logger(__name__)


def parse_arguments(argv: list[str] | None = None) -> argparse.Namespace:
    """
    Parse command-line arguments.

    Returns:
        Namespace: Parsed arguments
    """
    parser = argparse.ArgumentParser(description="Import engineering data from configured data sources")

    parser.add_argument("--data-source", type=str, help="Only import this data source id")

    parser.add_argument(
        "--cleanup-stale",
        action="store_true",
        help="Fail runs stuck in RUNNING for more than 30 minutes before importing",
    )

    parser.add_argument("--database", type=str, help="sqlite database path (overrides ENGMETRICS_DATABASE)")

    return parser.parse_args(argv)


async def run_imports(args: argparse.Namespace) -> list[ScriptExecutionResult]:
    config = get_config()
    database_path = args.database or config.get_storage_config().database_path

    with StorageHandle(database_path) as storage:
        if args.cleanup_stale:
            cleanup_stale_runs(storage)
        return await execute_all(
            storage,
            default_registry(),
            data_source_id=args.data_source,
            batch_id=uuid.uuid4().hex,
        )


def main(argv: list[str] | None = None) -> int:
    """
    Entry point.

    Returns:
        Process exit code: 0 when every script succeeded, 1 otherwise
    """
    args = parse_arguments(argv)

    try:
        runner_config = get_config().get_runner_config()
    except ConfigurationError as e:
        logger.error(f"Configuration error: {e}")
        return 1

    setup_logging(
        level=runner_config.log_level,
        log_file=Path(runner_config.log_file) if runner_config.log_file else None,
        json_output=runner_config.json_logs,
    )

    try:
        results = asyncio.run(run_imports(args))
    except ConfigurationError as e:
        logger.error(f"Configuration error: {e}")
        return 1

    failed = [result for result in results if not result.success]
    for result in failed:
        logger.error(f"{result.script_key} ({result.data_source_id}): {result.error}")
    return 1 if failed else 0


if __name__ == "__main__":
    sys.exit(main())
