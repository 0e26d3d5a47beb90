"""
Test fixtures.

- Widget: a record type bound to the Widget table by convention
- widget_migrations(): migration 1 creates Widget, migration 2 adds Color
- sample_migrations: a package of NNN_name.py migration modules
"""

from dataclasses import dataclass
from pathlib import Path

from app_toolkit.database import Migration, sql_migration

FIXTURES_DIR = Path(__file__).parent

CREATE_WIDGET = """
    CREATE TABLE Widget (
        WidgetId INTEGER PRIMARY KEY AUTOINCREMENT,
        Name TEXT NOT NULL UNIQUE,
        Weight REAL
    )
"""

ADD_COLOR = "ALTER TABLE Widget ADD COLUMN Color TEXT"


@dataclass
class Widget:
    """Record type bound to the Widget table."""

    Name: str
    Weight: float | None = None
    Color: str | None = None
    WidgetId: int | None = None


def widget_migrations() -> list[Migration]:
    return [
        sql_migration(1, "create Widget table", CREATE_WIDGET),
        sql_migration(2, "add Color column to Widget", ADD_COLOR),
    ]
