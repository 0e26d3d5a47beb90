"""
Connection and transaction helpers.

Connections are opened in sqlite3 autocommit mode (isolation_level=None) so
that transactions are only ever started explicitly. This matters for schema
changes: the sqlite3 module never opens an implicit transaction before DDL,
so CREATE/ALTER statements would otherwise commit on their own and could not
be rolled back.
"""

import logging
import sqlite3
from collections.abc import AsyncIterator, Iterable, Mapping
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any

import aiosqlite

logger = logging.getLogger(__name__)

Parameters = Iterable[Any] | Mapping[str, Any]


@asynccontextmanager
async def open_connection(
    db_path: Path | str,
    timeout: float = 5.0,
    foreign_keys: bool = True,
) -> AsyncIterator[aiosqlite.Connection]:
    """Open a connection with row factory, closed on exit."""
    async with aiosqlite.connect(str(db_path), timeout=timeout, isolation_level=None) as conn:
        conn.row_factory = aiosqlite.Row
        if foreign_keys:
            await conn.execute("PRAGMA foreign_keys = ON")
        yield conn


class Transaction:
    """Handle on an open transaction.

    Passed to migrations next to the connection; statements executed through
    it belong to the transaction and are undone together on rollback.
    """

    def __init__(self, connection: aiosqlite.Connection):
        self.connection = connection
        self.active = True

    async def execute(self, sql: str, parameters: Parameters | None = None) -> aiosqlite.Cursor:
        """Execute one statement inside the transaction."""
        if not self.active:
            raise RuntimeError("Transaction is no longer active")
        return await self.connection.execute(sql, parameters or ())


@asynccontextmanager
async def transaction(
    connection: aiosqlite.Connection, immediate: bool = True
) -> AsyncIterator[Transaction]:
    """
    Run the body inside BEGIN ... COMMIT.

    Any exception, including task cancellation, rolls the transaction back
    and is re-raised. BEGIN IMMEDIATE takes the write lock up front so that
    check-then-write sequences are atomic across processes.
    """
    await connection.execute("BEGIN IMMEDIATE" if immediate else "BEGIN")
    txn = Transaction(connection)
    try:
        yield txn
    except BaseException:
        txn.active = False
        try:
            await connection.rollback()
        except sqlite3.Error as e:
            logger.error(f"Rollback failed: {e}")
        raise
    else:
        txn.active = False
        await connection.commit()
