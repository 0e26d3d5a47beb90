"""
Store error taxonomy.

All errors raised by the store derive from StoreError and carry a kind and a
status code so they can travel inside a Result.
"""

from enum import Enum

from .results import StatusCode


class ErrorKind(str, Enum):
    """What category of failure occurred."""

    PATH_RESOLUTION = "PATH_RESOLUTION"
    INITIALIZATION = "INITIALIZATION"
    DUPLICATE_MIGRATION_NUMBER = "DUPLICATE_MIGRATION_NUMBER"
    MIGRATION_ALREADY_APPLIED = "MIGRATION_ALREADY_APPLIED"
    WRITE = "WRITE"
    READ = "READ"
    INVALID_ARGUMENT = "INVALID_ARGUMENT"
    NOT_FOUND = "NOT_FOUND"


class StoreError(Exception):
    """Base exception for store errors."""

    kind: ErrorKind
    status: StatusCode = StatusCode.INTERNAL_ERROR


class PathResolutionError(StoreError):
    """The application directory could not be determined or created."""

    kind = ErrorKind.PATH_RESOLUTION


class InitializationError(StoreError):
    """Creating or migrating the store failed."""

    kind = ErrorKind.INITIALIZATION

    def __init__(self, message: str, cause: BaseException | None = None):
        self.cause = cause
        detail = f"{message}: {cause}" if cause is not None else message
        super().__init__(detail)


class DuplicateMigrationNumber(StoreError):
    """Two registered migrations share the same number."""

    kind = ErrorKind.DUPLICATE_MIGRATION_NUMBER
    status = StatusCode.CONFLICT

    def __init__(self, number: int, descriptions: list[str] | None = None):
        self.number = number
        self.descriptions = descriptions or []
        names = ", ".join(repr(d) for d in self.descriptions)
        suffix = f" ({names})" if names else ""
        super().__init__(f"Migration number {number} is registered more than once{suffix}")


class MigrationAlreadyApplied(StoreError):
    """The ledger already records this migration number."""

    kind = ErrorKind.MIGRATION_ALREADY_APPLIED
    status = StatusCode.CONFLICT

    def __init__(self, number: int):
        self.number = number
        super().__init__(f"Migration number {number} has already been applied")


class WriteError(StoreError):
    """A write statement failed (constraint violation, I/O, ...)."""

    kind = ErrorKind.WRITE


class ReadError(StoreError):
    """A read statement failed."""

    kind = ErrorKind.READ


class InvalidArgument(StoreError, ValueError):
    """A caller passed an unusable argument."""

    kind = ErrorKind.INVALID_ARGUMENT
    status = StatusCode.BAD_REQUEST


class NotFoundError(StoreError):
    """Something expected to exist does not."""

    kind = ErrorKind.NOT_FOUND
    status = StatusCode.NOT_FOUND
