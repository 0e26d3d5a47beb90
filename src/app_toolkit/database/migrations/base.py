"""
Migration definitions and registration.

A migration is a numbered, self-contained schema change. Numbers are assigned
by the author, never change once published, and need not be contiguous.

Migrations are registered explicitly, either through a MigrationRegistry or by
loading an explicitly named package of modules named {number}_{name}.py, e.g.
001_create_widget.py. Each such module must define:
- NUMBER: int
- DESCRIPTION: str
- async apply(connection, transaction) -> None
"""

import importlib
import logging
import pkgutil
import re
from collections.abc import Awaitable, Callable, Iterable, Iterator
from dataclasses import dataclass

import aiosqlite

from ...errors import InvalidArgument
from ..transactions import Transaction

logger = logging.getLogger(__name__)

ApplyFunc = Callable[[aiosqlite.Connection, Transaction], Awaitable[None]]

MODULE_PATTERN = re.compile(r"^(\d+)_\w+$")


@dataclass(frozen=True)
class Migration:
    """Represents a database migration."""

    number: int
    description: str
    upgrade: ApplyFunc

    def __post_init__(self) -> None:
        if isinstance(self.number, bool) or not isinstance(self.number, int):
            raise InvalidArgument(f"Migration number must be an int, got {self.number!r}")
        if self.number < 0:
            raise InvalidArgument(f"Migration number must be non-negative, got {self.number}")
        if not isinstance(self.description, str) or not self.description.strip():
            raise InvalidArgument(f"Migration {self.number} needs a description")

    async def apply(self, connection: aiosqlite.Connection, transaction: Transaction) -> None:
        """Perform the schema change inside the given transaction."""
        await self.upgrade(connection, transaction)

    @property
    def display_name(self) -> str:
        """Human-readable name for logs."""
        return f"{self.number:03d} ({self.description})"


def sql_migration(number: int, description: str, *statements: str) -> Migration:
    """
    Build a migration from plain SQL statements.

    Statements are executed one at a time through the transaction. Do not pass
    a multi-statement script: executescript() would commit the open
    transaction.
    """
    if not statements:
        raise InvalidArgument(f"Migration {number} has no statements")

    async def upgrade(connection: aiosqlite.Connection, transaction: Transaction) -> None:
        for statement in statements:
            await transaction.execute(statement)

    return Migration(number=number, description=description, upgrade=upgrade)


class MigrationRegistry:
    """
    Explicit, ordered-on-demand collection of migrations.

    Registration does not check for duplicate numbers; that is a discovery-time
    error raised by the runner so that every duplicate is reported at once,
    before any schema change.
    """

    def __init__(self, migrations: Iterable[Migration] = ()):
        self._migrations: list[Migration] = list(migrations)

    def register(self, migration: Migration) -> Migration:
        """Add a migration to the registry."""
        self._migrations.append(migration)
        return migration

    def migration(self, number: int, description: str) -> Callable[[ApplyFunc], Migration]:
        """Decorator registering an async apply function as a migration.

        Example:
            @registry.migration(1, "create Widget table")
            async def create_widget(connection, transaction):
                await transaction.execute("CREATE TABLE Widget (...)")
        """

        def decorator(func: ApplyFunc) -> Migration:
            return self.register(Migration(number=number, description=description, upgrade=func))

        return decorator

    def sql(self, number: int, description: str, *statements: str) -> Migration:
        """Register a plain-SQL migration."""
        return self.register(sql_migration(number, description, *statements))

    def __iter__(self) -> Iterator[Migration]:
        return iter(self._migrations)

    def __len__(self) -> int:
        return len(self._migrations)


def load_migrations(package: str) -> list[Migration]:
    """
    Load all migrations from the modules of an explicitly named package.

    Modules that do not follow the {number}_{name} pattern are ignored;
    modules missing NUMBER, DESCRIPTION or apply are skipped with a warning.
    """
    pkg = importlib.import_module(package)
    migrations = []

    for module_info in sorted(pkgutil.iter_modules(pkg.__path__), key=lambda m: m.name):
        if not MODULE_PATTERN.match(module_info.name):
            continue

        full_module = f"{package}.{module_info.name}"
        try:
            module = importlib.import_module(full_module)
            migrations.append(
                Migration(
                    number=module.NUMBER,
                    description=module.DESCRIPTION,
                    upgrade=module.apply,
                )
            )
        except AttributeError as e:
            logger.warning(f"Failed to load migration {full_module}: {e}")

    return migrations
