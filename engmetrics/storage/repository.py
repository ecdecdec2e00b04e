"""
Entity repositories over sqlite3.

One EntityRepository per normalized entity, offering the small query
surface the ingestion pipeline and the aggregator need:

    upsert(key, create, update)    atomic insert-or-update on the natural key
    create(data) / update(id, data) / update_many(where, data)
    find_unique(id) / find_first(where, order_by) / find_many(where, order_by, limit)
    count(where) / distinct(column, where)

Filters:
    {"status": "OPEN"}                       equality
    {"resolved_at": None}                    IS NULL
    {"committed_at": {"gte": start, "lte": end}}
    {"branch": {"in": ["main", "master"]}}   also "not_in"
    {"duration_ms": {"ne": None}}            IS NOT NULL

Rows come back as plain dicts with timestamps as aware UTC datetimes.
"""

import json
import sqlite3
import uuid
from collections.abc import Iterable, Mapping
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from engmetrics.domain.errors import StorageError
from engmetrics.storage.schema import EntitySchema, quote
from engmetrics.utils.datetime_utils import ensure_utc, parse_timestamp

TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"

COMPARISON_OPERATORS = {"gte": ">=", "gt": ">", "lte": "<=", "lt": "<", "ne": "!="}
SET_OPERATORS = {"in": "IN", "not_in": "NOT IN"}

Row = dict[str, Any]
Where = Mapping[str, Any]
OrderBy = Iterable[tuple[str, str]]


def encode_timestamp(value: datetime | str) -> str:
    if isinstance(value, str):
        parsed = parse_timestamp(value)
        if parsed is None:
            raise StorageError("Empty timestamp string")
        value = parsed
    return ensure_utc(value).strftime(TIMESTAMP_FORMAT)


def decode_timestamp(value: str) -> datetime:
    return datetime.strptime(value, TIMESTAMP_FORMAT).replace(tzinfo=UTC)


class EntityRepository:
    """
    Query surface for one entity table.

    Each call is its own auto-committed unit of work; upserts are a single
    INSERT ... ON CONFLICT statement and therefore atomic per key.
    """

    def __init__(self, connection: sqlite3.Connection, schema: EntitySchema):
        self.connection = connection
        self.schema = schema
        self.table = schema.table

    # ------------------------------------------------------------------
    # Encoding
    # ------------------------------------------------------------------

    def _kind(self, column: str) -> str:
        kind = self.schema.column_type(column)
        if kind is None:
            raise StorageError(f"Unknown column '{column}' on {self.table}")
        return kind

    def _encode(self, column: str, value: Any) -> Any:
        kind = self._kind(column)
        if value is None:
            return None
        if isinstance(value, Enum):
            value = value.value
        if kind == "timestamp":
            return encode_timestamp(value)
        if kind == "boolean":
            return 1 if value else 0
        if kind == "json":
            return json.dumps(value, default=str)
        return value

    def _decode(self, row: sqlite3.Row | None) -> Row | None:
        if row is None:
            return None
        decoded: Row = {}
        for column in row.keys():
            value = row[column]
            kind = self._kind(column)
            if value is not None:
                if kind == "timestamp":
                    value = decode_timestamp(value)
                elif kind == "boolean":
                    value = bool(value)
                elif kind == "json":
                    value = json.loads(value)
            decoded[column] = value
        return decoded

    # ------------------------------------------------------------------
    # SQL fragments
    # ------------------------------------------------------------------

    def _where(self, where: Where | None) -> tuple[str, list[Any]]:
        if not where:
            return "", []

        clauses: list[str] = []
        params: list[Any] = []
        for column, condition in where.items():
            name = quote(column)
            self._kind(column)

            if isinstance(condition, Mapping):
                for operator, operand in condition.items():
                    if operator in COMPARISON_OPERATORS:
                        if operand is None and operator == "ne":
                            clauses.append(f"{name} IS NOT NULL")
                        elif operand is None:
                            raise StorageError(f"Operator '{operator}' on {column} needs a value")
                        else:
                            clauses.append(f"{name} {COMPARISON_OPERATORS[operator]} ?")
                            params.append(self._encode(column, operand))
                    elif operator in SET_OPERATORS:
                        values = [self._encode(column, item) for item in operand]
                        if not values:
                            # IN () matches nothing, NOT IN () matches everything
                            clauses.append("0" if operator == "in" else "1")
                            continue
                        placeholders = ", ".join("?" for _ in values)
                        clauses.append(f"{name} {SET_OPERATORS[operator]} ({placeholders})")
                        params.extend(values)
                    else:
                        raise StorageError(f"Unknown filter operator '{operator}' on {column}")
            elif condition is None:
                clauses.append(f"{name} IS NULL")
            else:
                clauses.append(f"{name} = ?")
                params.append(self._encode(column, condition))

        return " WHERE " + " AND ".join(clauses), params

    def _order(self, order_by: OrderBy | None) -> str:
        if not order_by:
            return ""
        parts = []
        for column, direction in order_by:
            self._kind(column)
            if direction.lower() not in ("asc", "desc"):
                raise StorageError(f"Invalid sort direction '{direction}'")
            parts.append(f"{quote(column)} {direction.upper()}")
        return " ORDER BY " + ", ".join(parts)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def find_many(
        self, where: Where | None = None, order_by: OrderBy | None = None, limit: int | None = None
    ) -> list[Row]:
        clause, params = self._where(where)
        sql = f"SELECT * FROM {self.table}{clause}{self._order(order_by)}"
        if limit is not None:
            sql += " LIMIT ?"
            params.append(limit)
        rows = self.connection.execute(sql, params).fetchall()
        return [row for row in (self._decode(r) for r in rows) if row is not None]

    def find_first(self, where: Where | None = None, order_by: OrderBy | None = None) -> Row | None:
        rows = self.find_many(where, order_by, limit=1)
        return rows[0] if rows else None

    def find_unique(self, id: str) -> Row | None:
        return self.find_first({"id": id})

    def count(self, where: Where | None = None) -> int:
        clause, params = self._where(where)
        (total,) = self.connection.execute(f"SELECT COUNT(*) FROM {self.table}{clause}", params).fetchone()
        return int(total)

    def distinct(self, column: str, where: Where | None = None) -> list[Any]:
        """Distinct non-null values of one column among matching rows."""
        kind = self._kind(column)
        clause, params = self._where(where)
        name = quote(column)
        joiner = " AND " if clause else " WHERE "
        sql = f"SELECT DISTINCT {name} FROM {self.table}{clause}{joiner}{name} IS NOT NULL"
        values = [row[0] for row in self.connection.execute(sql, params).fetchall()]
        if kind == "timestamp":
            return [decode_timestamp(value) for value in values]
        return values

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def _now(self) -> str:
        return encode_timestamp(datetime.now(UTC))

    def create(self, data: Mapping[str, Any]) -> Row:
        """
        Insert a new row.

        Args:
            data: Column values; an explicit "id" is honoured, otherwise generated

        Returns:
            The stored row
        """
        now = self._now()
        values = {column: self._encode(column, value) for column, value in data.items()}
        values.setdefault("id", uuid.uuid4().hex)
        values.setdefault("inserted_at", now)
        values["updated_at"] = now

        columns = ", ".join(quote(column) for column in values)
        placeholders = ", ".join("?" for _ in values)
        self.connection.execute(f"INSERT INTO {self.table} ({columns}) VALUES ({placeholders})", list(values.values()))
        return self._require(values["id"])

    def update(self, id: str, data: Mapping[str, Any]) -> Row:
        """
        Update one row by id.

        Raises:
            StorageError: If no row has this id
        """
        if self.update_many({"id": id}, data) == 0:
            raise StorageError(f"No {self.table} row with id {id}")
        return self._require(id)

    def update_many(self, where: Where, data: Mapping[str, Any]) -> int:
        values = {column: self._encode(column, value) for column, value in data.items()}
        values["updated_at"] = self._now()
        assignments = ", ".join(f"{quote(column)} = ?" for column in values)
        clause, params = self._where(where)
        cursor = self.connection.execute(f"UPDATE {self.table} SET {assignments}{clause}", [*values.values(), *params])
        return cursor.rowcount

    def upsert(self, key: Mapping[str, Any], create: Mapping[str, Any], update: Mapping[str, Any]) -> Row:
        """
        Create the row identified by its natural key, or update it in place.

        Args:
            key: Values for every natural key column of the entity
            create: Fields written when the row does not exist yet (key included automatically)
            update: Fields refreshed when the row already exists

        Returns:
            The stored row

        Raises:
            StorageError: If key does not name exactly the entity's unique columns
        """
        if not self.schema.unique or set(key) != set(self.schema.unique):
            raise StorageError(f"Upsert key for {self.table} must be {self.schema.unique}, got {tuple(key)}")

        now = self._now()
        insert_values = {column: self._encode(column, value) for column, value in {**create, **key}.items()}
        insert_values["id"] = uuid.uuid4().hex
        insert_values["inserted_at"] = now
        insert_values["updated_at"] = now

        update_values = {column: self._encode(column, value) for column, value in update.items()}
        update_values["updated_at"] = now

        columns = ", ".join(quote(column) for column in insert_values)
        placeholders = ", ".join("?" for _ in insert_values)
        conflict = ", ".join(quote(column) for column in self.schema.unique)
        assignments = ", ".join(f"{quote(column)} = ?" for column in update_values)
        sql = (
            f"INSERT INTO {self.table} ({columns}) VALUES ({placeholders}) "
            f"ON CONFLICT ({conflict}) DO UPDATE SET {assignments}"
        )
        self.connection.execute(sql, [*insert_values.values(), *update_values.values()])

        row = self.find_first(dict(key))
        if row is None:
            raise StorageError(f"Upsert on {self.table} did not produce a row for {dict(key)}")
        return row

    def _require(self, id: str) -> Row:
        row = self.find_unique(id)
        if row is None:
            raise StorageError(f"No {self.table} row with id {id}")
        return row
