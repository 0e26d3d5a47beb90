"""
CLI main entry point.
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

from ..config import Config, create_default_config, load_config
from ..database import DatabaseInitializer, SQLiteDataAccess, load_migrations
from ..errors import StoreError


def setup_logging(verbose: bool = False, level_name: str = "INFO") -> None:
    """Configure logging."""
    level = logging.DEBUG if verbose else getattr(logging, level_name.upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def create_cli() -> argparse.ArgumentParser:
    """Create CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="app-toolkit",
        description="Create, migrate and inspect an application's SQLite store",
    )

    parser.add_argument(
        "-c",
        "--config",
        type=Path,
        default=Path("config.yaml"),
        help="Path to config file (default: config.yaml)",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )
    parser.add_argument(
        "--migrations",
        type=str,
        default=None,
        help="Importable package holding NNN_name.py migration modules",
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    subparsers.add_parser("init", help="Create the store or apply pending migrations")
    subparsers.add_parser("status", help="Show store path and applied migrations")

    query_parser = subparsers.add_parser("query", help="Run a raw SQL query and print rows")
    query_parser.add_argument("sql", type=str, help="SQL text to execute")

    subparsers.add_parser("init-config", help="Write a default config file")

    return parser


def build_initializer(config: Config, migrations_package: str | None) -> DatabaseInitializer:
    """Initializer for the configured store and migration package."""
    migrations = load_migrations(migrations_package) if migrations_package else []
    return DatabaseInitializer(migrations, config=config.store)


def cmd_init(config: Config, migrations_package: str | None) -> int:
    """Create or migrate the store."""
    try:
        initializer = build_initializer(config, migrations_package)
    except (ImportError, StoreError) as e:
        print(f"❌ Failed to load migrations: {e}")
        return 1
    result = asyncio.run(initializer.initialize())

    if not result.ok:
        print(f"❌ Initialization failed: {result.message}")
        return 1

    path = initializer.resolve_store_path().value
    if result.value:
        print(f"✓ Applied migrations {result.value} to {path}")
    else:
        print(f"✓ Store is up to date: {path}")
    return 0


def cmd_status(config: Config, migrations_package: str | None) -> int:
    """Show store status."""
    try:
        initializer = build_initializer(config, migrations_package)
        known = initializer.runner.discover_migrations()
    except (ImportError, StoreError) as e:
        print(f"❌ Failed to load migrations: {e}")
        return 1

    path_result = initializer.resolve_store_path()
    if not path_result.ok:
        print(f"❌ {path_result.message}")
        return 1

    history = asyncio.run(initializer.history())
    if not history.ok:
        print(f"❌ {history.message}")
        return 1

    applied_numbers = {record.number for record in history.value}
    pending = [m for m in known if m.number not in applied_numbers]

    print("\n📊 Store Status")
    print("=" * 40)
    print(f"  Store path:          {path_result.value}")
    print(f"  Exists:              {path_result.value.exists()}")
    print(f"  Applied migrations:  {len(history.value)}")
    for record in history.value:
        print(f"    {record.number:>5}  {record.applied_at}  {record.description}")
    print(f"  Pending migrations:  {len(pending)}")
    for migration in pending:
        print(f"    {migration.display_name}")
    print()

    return 0


def cmd_query(config: Config, sql: str) -> int:
    """Run a raw query against the store."""
    initializer = DatabaseInitializer([], config=config.store)
    path_result = initializer.resolve_store_path()
    if not path_result.ok:
        print(f"❌ {path_result.message}")
        return 1
    if not path_result.value.exists():
        print(f"❌ Store does not exist: {path_result.value} (run 'init' first)")
        return 1

    access = SQLiteDataAccess(path_result.value, config=config.store)
    result = asyncio.run(access.read_raw(sql))
    if not result.ok:
        print(f"❌ Query failed ({result.status.display_name}): {result.message}")
        print(json.dumps(result.to_dict(), indent=2, default=str))
        return 1

    print(json.dumps(result.value, indent=2, default=str))
    return 0


def cmd_init_config(config_path: Path) -> int:
    """Write a default config file."""
    if config_path.exists():
        print(f"❌ Config already exists: {config_path}")
        return 1
    create_default_config(config_path)
    print(f"✓ Wrote default config to {config_path}")
    return 0


def main(args: list[str] | None = None) -> int:
    """Main entry point."""
    parser = create_cli()
    parsed = parser.parse_args(args)

    if not parsed.command:
        parser.print_help()
        return 1

    if parsed.command == "init-config":
        setup_logging(parsed.verbose)
        return cmd_init_config(parsed.config)

    # Load config
    try:
        config = load_config(parsed.config)
    except Exception as e:
        print(f"❌ Failed to load config: {e}")
        return 1

    setup_logging(parsed.verbose, config.log_level)

    # Route to command
    if parsed.command == "init":
        return cmd_init(config, parsed.migrations)
    elif parsed.command == "status":
        return cmd_status(config, parsed.migrations)
    elif parsed.command == "query":
        return cmd_query(config, parsed.sql)
    else:
        parser.print_help()
        return 1


if __name__ == "__main__":
    sys.exit(main())
