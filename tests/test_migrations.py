"""Tests for migrations, the migration ledger and the migration runner."""

import asyncio
import logging
import sqlite3

import pytest
from fixtures import widget_migrations

from app_toolkit.database import (
    Migration,
    MigrationLedger,
    MigrationRegistry,
    MigrationRunner,
    load_migrations,
    open_connection,
    sql_migration,
)
from app_toolkit.errors import (
    DuplicateMigrationNumber,
    ErrorKind,
    InvalidArgument,
    MigrationAlreadyApplied,
)


async def table_names(conn) -> set[str]:
    async with conn.execute("SELECT name FROM sqlite_master WHERE type = 'table'") as cursor:
        return {row[0] for row in await cursor.fetchall()}


async def column_names(conn, table: str) -> list[str]:
    async with conn.execute(f"PRAGMA table_info({table})") as cursor:
        return [row[1] for row in await cursor.fetchall()]


class TestMigrationDefinition:
    """Tests for the Migration entity."""

    async def _noop(self, connection, transaction):
        pass

    def test_number_must_be_non_negative(self):
        with pytest.raises(InvalidArgument):
            Migration(number=-1, description="bad", upgrade=self._noop)

    def test_number_must_be_int(self):
        with pytest.raises(InvalidArgument):
            Migration(number=True, description="bad", upgrade=self._noop)
        with pytest.raises(InvalidArgument):
            Migration(number="1", description="bad", upgrade=self._noop)

    def test_description_required(self):
        with pytest.raises(InvalidArgument):
            Migration(number=1, description="  ", upgrade=self._noop)

    def test_numbers_need_not_be_contiguous(self):
        runner = MigrationRunner(
            [
                sql_migration(30, "third", "SELECT 1"),
                sql_migration(5, "first", "SELECT 1"),
                sql_migration(10, "second", "SELECT 1"),
            ]
        )
        assert [m.number for m in runner.discover_migrations()] == [5, 10, 30]

    def test_sql_migration_requires_statements(self):
        with pytest.raises(InvalidArgument):
            sql_migration(1, "empty")

    def test_display_name(self):
        migration = sql_migration(7, "add index", "SELECT 1")
        assert migration.display_name == "007 (add index)"


class TestMigrationRegistry:
    """Tests for explicit migration registration."""

    def test_register_and_iterate(self):
        registry = MigrationRegistry()
        registry.sql(2, "second", "SELECT 1")
        registry.register(sql_migration(1, "first", "SELECT 1"))

        assert len(registry) == 2
        assert [m.number for m in registry] == [2, 1]

    def test_decorator_registers_function(self):
        registry = MigrationRegistry()

        @registry.migration(4, "decorated")
        async def decorated(connection, transaction):
            await transaction.execute("CREATE TABLE Decorated (DecoratedId INTEGER PRIMARY KEY)")

        assert isinstance(decorated, Migration)
        assert list(registry) == [decorated]
        assert decorated.number == 4

    def test_registry_accepts_duplicates_until_discovery(self):
        registry = MigrationRegistry()
        registry.sql(1, "one", "SELECT 1")
        registry.sql(1, "also one", "SELECT 1")

        runner = MigrationRunner(registry)
        with pytest.raises(DuplicateMigrationNumber) as exc_info:
            runner.discover_migrations()

        assert exc_info.value.number == 1
        assert exc_info.value.kind == ErrorKind.DUPLICATE_MIGRATION_NUMBER
        assert exc_info.value.descriptions == ["one", "also one"]


class TestLoadMigrations:
    """Tests for loading migration modules from a package."""

    def test_loads_numbered_modules(self):
        migrations = load_migrations("fixtures.sample_migrations")

        assert [m.number for m in migrations] == [1, 2]
        assert migrations[0].description == "create Gadget table"

    def test_skips_incomplete_modules_with_warning(self, caplog):
        with caplog.at_level(logging.WARNING):
            load_migrations("fixtures.sample_migrations")

        assert "003_incomplete" in caplog.text

    def test_unknown_package_raises(self):
        with pytest.raises(ImportError):
            load_migrations("fixtures.does_not_exist")

    @pytest.mark.asyncio
    async def test_loaded_migrations_apply(self, temp_db):
        runner = MigrationRunner(load_migrations("fixtures.sample_migrations"))

        async with open_connection(temp_db) as conn:
            await runner.ledger.ensure_table_exists(conn)
            applied = await runner.apply_pending(conn, None)
            tables = await table_names(conn)

        assert applied == [1, 2]
        assert "Gadget" in tables


class TestMigrationLedger:
    """Tests for the ledger table."""

    @pytest.mark.asyncio
    async def test_schema(self, temp_db):
        ledger = MigrationLedger()
        async with open_connection(temp_db) as conn:
            await ledger.ensure_table_exists(conn)
            columns = await column_names(conn, "Migration")

        assert columns == ["Id", "Number", "Description", "AppliedAt"]

    @pytest.mark.asyncio
    async def test_ensure_table_is_idempotent(self, temp_db):
        ledger = MigrationLedger()
        async with open_connection(temp_db) as conn:
            await ledger.ensure_table_exists(conn)
            await ledger.ensure_table_exists(conn)
            assert await ledger.table_exists(conn)

    @pytest.mark.asyncio
    async def test_empty_ledger_has_no_max(self, temp_db):
        ledger = MigrationLedger()
        async with open_connection(temp_db) as conn:
            await ledger.ensure_table_exists(conn)
            assert await ledger.max_applied_number(conn) is None
            assert await ledger.history(conn) == []

    @pytest.mark.asyncio
    async def test_applied_at_defaults_to_creation_time(self, temp_db):
        ledger = MigrationLedger()
        async with open_connection(temp_db) as conn:
            await ledger.ensure_table_exists(conn)
            await conn.execute(
                "INSERT INTO Migration (Number, Description) VALUES (?, ?)", (1, "manual")
            )
            records = await ledger.history(conn)

        assert records[0].number == 1
        assert records[0].applied_at


class TestMigrationRunner:
    """Tests for ordering, selection and atomic application."""

    @pytest.fixture
    def runner(self):
        return MigrationRunner(widget_migrations())

    def test_pending_selection(self, runner):
        assert [m.number for m in runner.pending(None)] == [1, 2]
        assert [m.number for m in runner.pending(1)] == [2]
        assert runner.pending(2) == []

    @pytest.mark.asyncio
    async def test_apply_pending_records_each_migration(self, runner, temp_db):
        async with open_connection(temp_db) as conn:
            await runner.ledger.ensure_table_exists(conn)
            applied = await runner.apply_pending(conn, None)
            records = await runner.ledger.history(conn)
            columns = await column_names(conn, "Widget")

        assert applied == [1, 2]
        assert [(r.number, r.description) for r in records] == [
            (1, "create Widget table"),
            (2, "add Color column to Widget"),
        ]
        assert all(r.applied_at.endswith("Z") for r in records)
        assert "Color" in columns

    @pytest.mark.asyncio
    async def test_apply_logs_display_names(self, runner, temp_db, caplog):
        async with open_connection(temp_db) as conn:
            await runner.ledger.ensure_table_exists(conn)
            with caplog.at_level(logging.INFO):
                await runner.apply_pending(conn, None)

        assert "Migration 001 (create Widget table) applied successfully" in caplog.text
        assert "Migration 002 (add Color column to Widget) applied successfully" in caplog.text

    @pytest.mark.asyncio
    async def test_apply_pending_is_idempotent(self, runner, temp_db):
        async with open_connection(temp_db) as conn:
            await runner.ledger.ensure_table_exists(conn)
            await runner.apply_pending(conn, None)
            max_number = await runner.ledger.max_applied_number(conn)
            applied_again = await runner.apply_pending(conn, max_number)
            records = await runner.ledger.history(conn)

        assert applied_again == []
        assert len(records) == 2

    @pytest.mark.asyncio
    async def test_failing_migration_rolls_back(self, temp_db):
        registry = MigrationRegistry(widget_migrations()[:1])

        @registry.migration(2, "half-done change")
        async def half_done(connection, transaction):
            await transaction.execute("CREATE TABLE Partial (PartialId INTEGER PRIMARY KEY)")
            await transaction.execute("ALTER TABLE Widget ADD COLUMN Color TEXT")
            raise RuntimeError("boom")

        runner = MigrationRunner(registry)
        async with open_connection(temp_db) as conn:
            await runner.ledger.ensure_table_exists(conn)
            with pytest.raises(RuntimeError, match="boom"):
                await runner.apply_pending(conn, None)

            max_number = await runner.ledger.max_applied_number(conn)
            tables = await table_names(conn)
            columns = await column_names(conn, "Widget")

        assert max_number == 1
        assert "Partial" not in tables
        assert "Color" not in columns

    @pytest.mark.asyncio
    async def test_failure_stops_later_migrations(self, temp_db):
        registry = MigrationRegistry()
        registry.sql(1, "broken", "CREATE TABLE")
        registry.sql(2, "fine", "CREATE TABLE Fine (FineId INTEGER PRIMARY KEY)")

        runner = MigrationRunner(registry)
        async with open_connection(temp_db) as conn:
            await runner.ledger.ensure_table_exists(conn)
            with pytest.raises(sqlite3.OperationalError):
                await runner.apply_pending(conn, None)
            tables = await table_names(conn)
            records = await runner.ledger.history(conn)

        assert "Fine" not in tables
        assert records == []

    @pytest.mark.asyncio
    async def test_already_applied_number_aborts_migration(self, runner, temp_db):
        migration_2 = runner.discover_migrations()[1]

        async with open_connection(temp_db) as conn:
            await runner.ledger.ensure_table_exists(conn)
            await runner.apply_migration(conn, runner.discover_migrations()[0])
            await conn.execute(
                "INSERT INTO Migration (Number, Description) VALUES (?, ?)",
                (2, "applied elsewhere"),
            )

            with pytest.raises(MigrationAlreadyApplied) as exc_info:
                await runner.apply_migration(conn, migration_2)

            columns = await column_names(conn, "Widget")
            records = await runner.ledger.history(conn)

        assert exc_info.value.number == 2
        assert "Color" not in columns
        assert [r.description for r in records] == ["create Widget table", "applied elsewhere"]

    @pytest.mark.asyncio
    async def test_cancellation_rolls_back(self, temp_db):
        started = asyncio.Event()
        registry = MigrationRegistry()

        @registry.migration(1, "slow change")
        async def slow_change(connection, transaction):
            await transaction.execute("CREATE TABLE Slow (SlowId INTEGER PRIMARY KEY)")
            started.set()
            await asyncio.Event().wait()

        runner = MigrationRunner(registry)
        async with open_connection(temp_db) as conn:
            await runner.ledger.ensure_table_exists(conn)
            task = asyncio.create_task(runner.apply_pending(conn, None))
            await started.wait()
            task.cancel()
            with pytest.raises(asyncio.CancelledError):
                await task

            tables = await table_names(conn)
            max_number = await runner.ledger.max_applied_number(conn)

        assert "Slow" not in tables
        assert max_number is None
