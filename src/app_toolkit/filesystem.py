"""
Application file system access.

Resolves (and creates) the application-local data directory that holds the
store file, and offers a small delete helper.
"""

import logging
import os
import stat
import sys
from pathlib import Path

from .errors import NotFoundError, PathResolutionError, WriteError
from .results import Result


def default_data_root() -> Path:
    """Platform directory under which application directories are created."""
    if sys.platform == "win32" and os.environ.get("LOCALAPPDATA"):
        return Path(os.environ["LOCALAPPDATA"])
    xdg = os.environ.get("XDG_DATA_HOME")
    if xdg:
        return Path(xdg)
    return Path.home() / ".local" / "share"


def default_app_name() -> str:
    """Name of the running program, without extension."""
    name = Path(sys.argv[0]).stem if sys.argv and sys.argv[0] else ""
    return name or "app_toolkit"


class AppFileSystem:
    """
    Utility for interacting with the operating system's files and directories.

    The application directory is {data_root}/{app_name}; it is created on
    first access.
    """

    def __init__(
        self,
        app_name: str | None = None,
        data_root: Path | str | None = None,
        logger: logging.Logger | None = None,
    ):
        self.app_name = app_name or default_app_name()
        self.data_root = Path(data_root) if data_root is not None else None
        self.logger = logger or logging.getLogger(__name__)

    def get_app_directory_path(self) -> Result[Path]:
        """Return the application directory, creating it if absent."""
        try:
            root = self.data_root if self.data_root is not None else default_data_root()
            app_directory = root / self.app_name
            app_directory.mkdir(parents=True, exist_ok=True)
            return Result.success(app_directory)
        except OSError as e:
            self.logger.error(f"Failed to get or create application directory: {e}")
            error = PathResolutionError(f"Cannot create application directory: {e}")
            error.__cause__ = e
            return Result.failure(error)

    def delete_file(self, file_path: Path | str) -> Result[bool]:
        """
        Delete a file, clearing a read-only attribute first if needed.

        Returns:
            Success(True) when deleted, a NOT_FOUND failure when the file does
            not exist, an INTERNAL_ERROR failure when deletion fails.
        """
        path = Path(file_path)
        if not path.exists():
            self.logger.warning(f"Nothing to delete: {path} does not exist")
            return Result.failure(NotFoundError(f"File does not exist: {path}"), value=False)

        try:
            mode = path.stat().st_mode
            if not mode & stat.S_IWRITE:
                path.chmod(mode | stat.S_IWRITE)
                self.logger.info(f"Removed read-only attribute from file: {path}")
            path.unlink()
            return Result.success(True)
        except OSError as e:
            self.logger.error(f"Failed to delete file {path}: {e}")
            error = WriteError(f"Cannot delete {path}: {e}")
            error.__cause__ = e
            return Result.failure(error, value=False)
