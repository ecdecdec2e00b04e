"""
Payload field helpers shared by the provider mappers.

A mapper decorated with payload_mapper raises MappingError for any payload
it cannot read (missing keys, wrong shapes, unparsable timestamps), so the
import scripts can skip that one record and keep going.
"""

import functools
from collections.abc import Callable
from typing import Any, TypeVar

from engmetrics.domain.errors import MappingError

F = TypeVar("F", bound=Callable[..., Any])

# Raised by dict access, int()/float() and parse_timestamp on malformed input
PAYLOAD_ERRORS: tuple[type[Exception], ...] = (AttributeError, KeyError, TypeError, ValueError)


def record_id_of(raw: Any) -> str | None:
    """Best-effort identifier of a raw payload for skip warnings."""
    if not isinstance(raw, dict):
        return None
    for field in ("id", "key", "sha", "iid", "number"):
        if raw.get(field) is not None:
            return str(raw[field])
    return None


def required(raw: dict[str, Any], field: str, record: str) -> Any:
    """
    Value of a mandatory payload field.

    Raises:
        MappingError: If the field is absent or null
    """
    value = raw.get(field)
    if value is None:
        raise MappingError(f"{record} is missing '{field}'", record_id=record_id_of(raw))
    return value


def payload_mapper(record: str) -> Callable[[F], F]:
    """
    Decorator turning payload read failures into MappingError.

    The first positional argument of the decorated function is the raw
    payload; it is used to identify the record in the error.

    Example:
        @payload_mapper("GitHub issue")
        def map_issue(raw: dict[str, Any], full_name: str) -> CanonicalIssue:
            ...
    """

    def decorator(func: F) -> F:
        @functools.wraps(func)
        def wrapper(raw: Any, *args: Any, **kwargs: Any) -> Any:
            try:
                return func(raw, *args, **kwargs)
            except MappingError:
                raise
            except PAYLOAD_ERRORS as e:
                raise MappingError(f"Malformed {record}: {e}", record_id=record_id_of(raw)) from e

        return wrapper  # type: ignore[return-value]

    return decorator
