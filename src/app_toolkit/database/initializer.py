"""
Database initializer.

Ensures the application's store exists and is current: creates it (ledger
table first) when the file is missing, otherwise applies the migrations above
the ledger's highest number. Initialization is serialized by a process-wide
lock held for the entire create-or-migrate sequence.
"""

import asyncio
import logging
import threading
from collections.abc import AsyncIterator, Iterable
from contextlib import asynccontextmanager
from enum import Enum
from pathlib import Path

import aiosqlite

from ..config import VALID_JOURNAL_MODES, StoreConfig
from ..errors import (
    InitializationError,
    InvalidArgument,
    PathResolutionError,
    ReadError,
    StoreError,
)
from ..filesystem import AppFileSystem
from ..results import Result
from .migrations import LedgerRecord, Migration, MigrationRunner
from .transactions import open_connection


class InitializerState(str, Enum):
    """Lifecycle of a DatabaseInitializer."""

    UNINITIALIZED = "UNINITIALIZED"
    CREATING = "CREATING"
    MIGRATING = "MIGRATING"
    READY = "READY"
    FAILED = "FAILED"


def _release_when_acquired(lock: threading.Lock):
    def callback(fut: asyncio.Future) -> None:
        if not fut.cancelled() and fut.exception() is None and fut.result():
            lock.release()

    return callback


@asynccontextmanager
async def hold_lock(lock: threading.Lock) -> AsyncIterator[None]:
    """
    Hold a threading.Lock from async code without blocking the event loop.

    Uncontended acquisition is immediate; otherwise the wait happens in a
    worker thread. If the waiting task is cancelled, the lock is released as
    soon as the worker obtains it.
    """
    if not lock.acquire(blocking=False):
        acquiring = asyncio.ensure_future(asyncio.to_thread(lock.acquire))
        try:
            await asyncio.shield(acquiring)
        except asyncio.CancelledError:
            acquiring.add_done_callback(_release_when_acquired(lock))
            raise
    try:
        yield
    finally:
        lock.release()


class DatabaseInitializer:
    """
    Creates or migrates the SQLite store.

    The store lives at {app_directory}/{app_directory.name}.db, where the
    application directory comes from the file system provider.

    Call initialize() once at startup, before any data access; halt startup if
    it fails, since no data access is safe against an unknown schema version.
    """

    # Process-wide: shared by every initializer instance in this process.
    _init_lock = threading.Lock()

    def __init__(
        self,
        migrations: Iterable[Migration],
        file_system: AppFileSystem | None = None,
        config: StoreConfig | None = None,
        logger: logging.Logger | None = None,
    ):
        """
        Initialize the initializer.

        Args:
            migrations: Every migration known to the application
            file_system: Store path provider (default: built from config)
            config: Store settings (default: StoreConfig())
            logger: Logger sink (default: this module's logger)
        """
        self.config = config or StoreConfig()
        if self.config.journal_mode.upper() not in VALID_JOURNAL_MODES:
            raise InvalidArgument(f"Unknown journal mode: {self.config.journal_mode}")
        self.logger = logger or logging.getLogger(__name__)
        self.file_system = file_system or AppFileSystem(
            app_name=self.config.app_name,
            data_root=self.config.data_root,
            logger=self.logger,
        )
        self.runner = MigrationRunner(migrations, logger=self.logger)
        self.state = InitializerState.UNINITIALIZED
        self._store_path: Path | None = None

    def resolve_store_path(self) -> Result[Path]:
        """Get the full path to the store file, resolved once per instance."""
        if self._store_path is not None:
            return Result.success(self._store_path)

        directory_result = self.file_system.get_app_directory_path()
        if not directory_result.ok:
            self.logger.error("Failed to retrieve path to the application's SQLite database file.")
            error = directory_result.error
            if not isinstance(error, PathResolutionError):
                error = PathResolutionError(directory_result.message)
            return Result.failure(error)

        app_directory = directory_result.value
        self._store_path = app_directory / f"{app_directory.name}.db"
        return Result.success(self._store_path)

    def _connect(self, db_path: Path):
        return open_connection(
            db_path,
            timeout=self.config.busy_timeout_seconds,
            foreign_keys=self.config.foreign_keys,
        )

    async def initialize(self) -> Result[list[int]]:
        """
        Ensure the store exists and is current.

        Returns:
            Success with the numbers of the migrations applied by this call
            (empty when already current), or a failure carrying an
            InitializationError whose cause is the underlying error.
        """
        async with hold_lock(self._init_lock):
            try:
                applied = await self._create_or_migrate()
            except asyncio.CancelledError:
                self.state = InitializerState.FAILED
                raise
            except Exception as e:
                self.state = InitializerState.FAILED
                self.logger.error(f"Failed to initialize database: {e}")
                return Result.failure(InitializationError("Failed to initialize the database", e))

            self.state = InitializerState.READY
            return Result.success(applied)

    async def _create_or_migrate(self) -> list[int]:
        db_path = self.resolve_store_path().unwrap()

        # Duplicate numbers must fail before anything touches the store.
        self.runner.discover_migrations()

        since_number: int | None = None
        if db_path.exists():
            self.state = InitializerState.MIGRATING
            async with self._connect(db_path) as conn:
                if not await self.runner.ledger.table_exists(conn):
                    self.logger.warning(f"Ledger table missing in existing store {db_path}; creating it")
                await self._prepare(conn)
                since_number = await self.runner.ledger.max_applied_number(conn)
            self.logger.info(f"Updating existing store {db_path} (last migration: {since_number})")
        else:
            self.state = InitializerState.CREATING
            self.logger.info(f"Creating new store {db_path}")
            await self._create_store(db_path)

        self.state = InitializerState.MIGRATING
        async with self._connect(db_path) as conn:
            return await self.runner.apply_pending(conn, since_number)

    async def _create_store(self, db_path: Path) -> None:
        """Create the file and its ledger; remove the file if that fails."""
        try:
            async with self._connect(db_path) as conn:
                await self._prepare(conn)
        except BaseException:
            for leftover in (db_path, *(db_path.with_name(db_path.name + s) for s in ("-wal", "-shm"))):
                try:
                    leftover.unlink(missing_ok=True)
                except OSError as e:
                    self.logger.warning(f"Could not remove partially created {leftover}: {e}")
            raise

    async def _prepare(self, conn: aiosqlite.Connection) -> None:
        await conn.execute(f"PRAGMA journal_mode = {self.config.journal_mode}")
        await self.runner.ledger.ensure_table_exists(conn)

    async def current_version(self) -> Result[int | None]:
        """Highest applied migration number, None for a new or empty store."""
        try:
            async with self._existing_store() as conn:
                if conn is None:
                    return Result.success(None)
                return Result.success(await self.runner.ledger.max_applied_number(conn))
        except StoreError as e:
            return Result.failure(e)
        except Exception as e:
            return Result.failure(ReadError(f"Failed to read the migration ledger: {e}"))

    async def history(self) -> Result[list[LedgerRecord]]:
        """Applied migrations in ascending order (empty for a new store)."""
        try:
            async with self._existing_store() as conn:
                if conn is None:
                    return Result.success([])
                return Result.success(await self.runner.ledger.history(conn))
        except StoreError as e:
            return Result.failure(e)
        except Exception as e:
            return Result.failure(ReadError(f"Failed to read the migration ledger: {e}"))

    @asynccontextmanager
    async def _existing_store(self) -> AsyncIterator[aiosqlite.Connection | None]:
        """Connection to the store if it exists and has a ledger, else None."""
        db_path = self.resolve_store_path().unwrap()
        if not db_path.exists():
            yield None
            return
        async with self._connect(db_path) as conn:
            yield conn if await self.runner.ledger.table_exists(conn) else None
