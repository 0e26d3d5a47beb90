"""
Generic asynchronous CRUD operations against the SQLite store.

Table and column names come from entity metadata (see entities.py); values
are always passed as bound parameters, never interpolated. Every call opens
and closes its own connection.
"""

import logging
import sqlite3
from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import Any, TypeVar

from ..config import StoreConfig
from ..errors import InvalidArgument, ReadError, StoreError, WriteError
from ..results import Result, StatusCode
from .entities import EntityMetadata, entity_metadata
from .transactions import Parameters, open_connection

T = TypeVar("T")


def quote(identifier: str) -> str:
    """Quote an SQL identifier."""
    return '"' + identifier.replace('"', '""') + '"'


def _select_list(meta: EntityMetadata, columns: Sequence[str] | None) -> str:
    if not columns:
        return "*"
    return ", ".join(quote(c) for c in meta.check_columns(columns))


class SQLiteDataAccess:
    """
    Convention-based data access for the application's SQLite store.

    Only call after DatabaseInitializer.initialize() has succeeded.

    Expected failures come back as failed Results (WriteError, ReadError,
    InvalidArgument). Passing a type that does not follow the entity
    convention is a programming error and raises TypeError.
    """

    def __init__(
        self,
        db_path: Path | str,
        config: StoreConfig | None = None,
        logger: logging.Logger | None = None,
    ):
        self.db_path = Path(db_path)
        self.config = config or StoreConfig()
        self.logger = logger or logging.getLogger(__name__)

    def _connect(self):
        return open_connection(
            self.db_path,
            timeout=self.config.busy_timeout_seconds,
            foreign_keys=self.config.foreign_keys,
        )

    def _failure(self, error_type: type[StoreError], action: str, e: Exception) -> Result:
        self.logger.warning(f"{action} failed: {e}")
        error = error_type(f"{action} failed: {e}")
        error.__cause__ = e
        return Result.failure(error)

    async def _fetch(self, sql: str, parameters: Parameters | None) -> list[dict[str, Any]]:
        async with self._connect() as conn:
            async with conn.execute(sql, parameters or ()) as cursor:
                rows = await cursor.fetchall()
        return [dict(row) for row in rows]

    async def _execute(self, sql: str, parameters: Parameters) -> tuple[int | None, int]:
        """Run one write statement; returns (lastrowid, rowcount)."""
        async with self._connect() as conn:
            async with conn.execute(sql, parameters) as cursor:
                return cursor.lastrowid, cursor.rowcount

    async def create(self, entity: Any) -> Result[int]:
        """
        Insert an entity into the table named after its type.

        Every public attribute except the primary key is written. The primary
        key is not set back on the object.

        Returns:
            Result with the new primary key (the row id)
        """
        meta = entity_metadata(type(entity))
        columns = meta.insert_columns
        if columns:
            sql = (
                f"INSERT INTO {quote(meta.table)} ({', '.join(quote(c) for c in columns)}) "
                f"VALUES ({', '.join(':' + c for c in columns)})"
            )
        else:
            sql = f"INSERT INTO {quote(meta.table)} DEFAULT VALUES"

        try:
            new_id, _ = await self._execute(sql, meta.values_of(entity))
        except sqlite3.Error as e:
            return self._failure(WriteError, f"Insert into {meta.table}", e)

        # INTEGER PRIMARY KEY columns alias the rowid
        return Result.success(new_id, StatusCode.CREATED)

    async def read_all(
        self,
        entity_type: type[T],
        where: str | None = None,
        parameters: Parameters | None = None,
        columns: Sequence[str] | None = None,
    ) -> Result[list[T]]:
        """
        Read all rows of a table, optionally filtered.

        Args:
            entity_type: Record type; the table name is its class name
            where: Optional SQL predicate without the WHERE keyword
            parameters: Bound parameters for the predicate
            columns: Optional subset of columns to select
        """
        meta = entity_metadata(entity_type)
        try:
            sql = f"SELECT {_select_list(meta, columns)} FROM {quote(meta.table)}"
        except InvalidArgument as e:
            return Result.failure(e)
        if where and where.strip():
            sql += f" WHERE {where}"

        try:
            rows = await self._fetch(sql, parameters)
        except sqlite3.Error as e:
            return self._failure(ReadError, f"Read from {meta.table}", e)

        return Result.success([meta.build(row) for row in rows])

    async def read_by_key(
        self,
        entity_type: type[T],
        key: int,
        columns: Sequence[str] | None = None,
    ) -> Result[T | None]:
        """
        Read one row by primary key.

        Returns:
            Result with the entity, or with None when no row has that key
        """
        meta = entity_metadata(entity_type)
        try:
            select_list = _select_list(meta, columns)
        except InvalidArgument as e:
            return Result.failure(e)
        sql = (
            f"SELECT {select_list} FROM {quote(meta.table)} "
            f"WHERE {quote(meta.primary_key)} = ? LIMIT 1"
        )

        try:
            rows = await self._fetch(sql, (key,))
        except sqlite3.Error as e:
            return self._failure(ReadError, f"Read from {meta.table}", e)

        return Result.success(meta.build(rows[0]) if rows else None)

    async def update_by_key(
        self,
        entity_type: type,
        key: int,
        values: Mapping[str, Any],
    ) -> Result[bool]:
        """
        Set the given columns on the row with this primary key.

        Returns:
            Result with True if a row was updated, False if none had the key
        """
        meta = entity_metadata(entity_type)
        if not values:
            return Result.failure(
                InvalidArgument("At least one column value must be provided"), value=False
            )
        try:
            names = meta.check_columns(values.keys())
        except InvalidArgument as e:
            return Result.failure(e, value=False)

        set_clause = ", ".join(f"{quote(name)} = ?" for name in names)
        sql = f"UPDATE {quote(meta.table)} SET {set_clause} WHERE {quote(meta.primary_key)} = ?"
        parameters = list(values.values()) + [key]

        try:
            _, affected = await self._execute(sql, parameters)
        except sqlite3.Error as e:
            return self._failure(WriteError, f"Update of {meta.table}", e)

        return Result.success(affected > 0)

    async def delete_by_key(self, entity_type: type, key: int) -> Result[bool]:
        """
        Delete the row with this primary key.

        Returns:
            Result with True if a row was deleted, False if none had the key
        """
        meta = entity_metadata(entity_type)
        sql = f"DELETE FROM {quote(meta.table)} WHERE {quote(meta.primary_key)} = ?"

        try:
            _, affected = await self._execute(sql, (key,))
        except sqlite3.Error as e:
            return self._failure(WriteError, f"Delete from {meta.table}", e)

        return Result.success(affected > 0)

    async def read_raw(
        self, sql: str, parameters: Parameters | None = None
    ) -> Result[list[dict[str, Any]]]:
        """
        Run a hand-written query and return loosely typed rows.

        The caller is responsible for the correctness of the SQL.
        """
        try:
            rows = await self._fetch(sql, parameters)
        except sqlite3.Error as e:
            return self._failure(ReadError, "Raw query", e)
        return Result.success(rows)

