#!/usr/bin/env python3
"""
Error Handling Utility Module

Provides reusable error handling patterns with structured logging:
1. log_and_continue() - Log error and continue execution (for expected failures)
2. log_and_return_default() - Log error and return a default value
3. with_retry() - Decorator for retry logic with exponential backoff
   (works on both plain and async functions)

All functions use structured logging with contextual information to aid debugging.
"""

import asyncio
import functools
import inspect
import logging
import time
from collections.abc import Callable
from typing import Any, TypeVar

T = TypeVar("T")


def _error_extra(error: Exception, context: dict[str, Any], error_type: str) -> dict[str, Any]:
    return {
        "extra_fields": {
            "error_type": error_type,
            "exception_class": error.__class__.__name__,
            "context": context,
        }
    }


def log_and_continue(
    logger: logging.Logger,
    error: Exception,
    context: dict[str, Any],
    error_type: str = "Operation",
) -> None:
    """
    Log an error with structured context and continue execution gracefully.

    Use this when encountering expected errors that should not halt execution
    (e.g., a malformed record inside an otherwise healthy page).

    Args:
        logger: Logger instance from get_logger(__name__)
        error: The caught exception
        context: Structured data about what failed (record key, container, etc.)
        error_type: Human-readable description of the operation

    Example:
        try:
            issue = map_issue(raw, full_name)
        except MappingError as e:
            log_and_continue(
                logger, e,
                context={"repository": full_name, "number": raw.get("number")},
                error_type="Issue mapping"
            )
            continue
    """
    logger.warning(f"{error_type} failed: {error}", extra=_error_extra(error, context, error_type))


def log_and_return_default(
    logger: logging.Logger,
    error: Exception,
    context: dict[str, Any],
    default_value: Any = None,
    error_type: str = "Operation",
) -> Any:
    """
    Log an error and return a default value (for functions that need to return something).

    Args:
        logger: Logger instance
        error: The caught exception
        context: Structured data about what failed
        default_value: Value to return on error (None, [], {}, etc.)
        error_type: Human-readable description

    Returns:
        default_value

    Example:
        try:
            return parse_timestamp(value)
        except ValueError as e:
            return log_and_return_default(
                logger, e,
                context={"value": value},
                default_value=None,
                error_type="Timestamp parsing"
            )
    """
    extra = _error_extra(error, context, error_type)
    extra["extra_fields"]["default_value"] = str(default_value)
    logger.warning(f"{error_type} failed, returning default value: {error}", extra=extra)
    return default_value


def with_retry(
    max_attempts: int = 3,
    backoff_seconds: float = 1.0,
    exceptions: tuple[type[Exception], ...] = (Exception,),
) -> Callable[[Callable[..., T]], Callable[..., T]]:
    """
    Decorator to retry a function with exponential backoff.

    Coroutine functions are awaited and back off with asyncio.sleep so the
    event loop is never blocked; plain functions use time.sleep.

    Args:
        max_attempts: Maximum number of attempts (default: 3)
        backoff_seconds: Initial backoff time, doubles each retry
        exceptions: Tuple of exception types to catch

    Example:
        @with_retry(max_attempts=3, backoff_seconds=2.0, exceptions=(httpx.TransportError,))
        async def fetch_page(url: str) -> dict:
            ...
    """

    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        logger = logging.getLogger(func.__module__)

        def _on_failure(attempt: int, error: Exception) -> float:
            if attempt == max_attempts:
                logger.error(
                    f"Function {func.__name__} failed after {max_attempts} attempts",
                    exc_info=True,
                    extra={
                        "extra_fields": {
                            "function": func.__name__,
                            "max_attempts": max_attempts,
                            "final_exception": error.__class__.__name__,
                        }
                    },
                )
                raise error

            wait_time = backoff_seconds * (2 ** (attempt - 1))
            logger.warning(
                f"Function {func.__name__} failed (attempt {attempt}/{max_attempts}), "
                f"retrying in {wait_time:.1f}s: {error}",
                extra={
                    "extra_fields": {
                        "function": func.__name__,
                        "attempt": attempt,
                        "wait_time": wait_time,
                        "exception": error.__class__.__name__,
                    }
                },
            )
            return wait_time

        if inspect.iscoroutinefunction(func):

            @functools.wraps(func)
            async def async_wrapper(*args: Any, **kwargs: Any) -> Any:
                for attempt in range(1, max_attempts + 1):
                    try:
                        return await func(*args, **kwargs)
                    except exceptions as e:
                        await asyncio.sleep(_on_failure(attempt, e))
                raise RuntimeError("Retry logic failed unexpectedly")

            return async_wrapper  # type: ignore[return-value]

        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> T:
            for attempt in range(1, max_attempts + 1):
                try:
                    return func(*args, **kwargs)
                except exceptions as e:
                    time.sleep(_on_failure(attempt, e))
            raise RuntimeError("Retry logic failed unexpectedly")

        return wrapper

    return decorator
