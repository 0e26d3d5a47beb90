"""Test fixtures and utilities."""

from pathlib import Path

import pytest
from fixtures import widget_migrations

from app_toolkit.database import MigrationRegistry
from app_toolkit.filesystem import AppFileSystem


@pytest.fixture
def temp_db(tmp_path) -> Path:
    """Temporary database path for testing."""
    return tmp_path / "test_state.db"


@pytest.fixture
def data_root(tmp_path) -> Path:
    """Parent directory for application directories."""
    return tmp_path / "appdata"


@pytest.fixture
def file_system(data_root) -> AppFileSystem:
    """Path provider rooted in a temporary directory (app name: widgets)."""
    return AppFileSystem(app_name="widgets", data_root=data_root)


@pytest.fixture
def store_path(data_root) -> Path:
    """Where the initializer puts the store for the file_system fixture."""
    return data_root / "widgets" / "widgets.db"


@pytest.fixture
def registry() -> MigrationRegistry:
    """Registry holding the Widget migrations."""
    return MigrationRegistry(widget_migrations())
