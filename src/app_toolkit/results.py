"""
Process results.

Every public operation of the store returns a Result instead of raising for
expected failures. A Result either carries a value (success) or a StoreError
(failure); the error's kind tells callers what went wrong.
"""

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Generic, TypeVar

if TYPE_CHECKING:
    from .errors import ErrorKind, StoreError

T = TypeVar("T")


class StatusCode(int, Enum):
    """General status codes for in-process operations (HTTP-inspired)."""

    OK = 200
    CREATED = 201
    BAD_REQUEST = 400
    NOT_FOUND = 404
    CONFLICT = 409
    INTERNAL_ERROR = 500

    @property
    def display_name(self) -> str:
        """Human-readable phrase, e.g. 'Bad Request'."""
        return self.name.replace("_", " ").title()

    @property
    def is_success(self) -> bool:
        return 200 <= self.value <= 299


@dataclass(frozen=True)
class Result(Generic[T]):
    """Outcome of an operation: a value, or an error."""

    value: T | None = None
    error: "StoreError | None" = None
    status: StatusCode = StatusCode.OK

    @property
    def ok(self) -> bool:
        """True when no error occurred and the status is 2xx."""
        return self.error is None and self.status.is_success

    @property
    def kind(self) -> "ErrorKind | None":
        return self.error.kind if self.error is not None else None

    @property
    def message(self) -> str:
        return str(self.error) if self.error is not None else ""

    def unwrap(self) -> T:
        """Return the value, or raise the carried error."""
        if self.error is not None:
            raise self.error
        return self.value  # type: ignore[return-value]

    def to_dict(self) -> dict:
        """Serializable summary (used by the CLI)."""
        return {
            "status_code": int(self.status),
            "status_phrase": self.status.display_name,
            "error_kind": self.kind.value if self.kind else None,
            "error_message": self.message or None,
            "value": self.value,
        }

    @classmethod
    def success(cls, value: T, status: StatusCode = StatusCode.OK) -> "Result[T]":
        return cls(value=value, error=None, status=status)

    @classmethod
    def failure(cls, error: "StoreError", value: T | None = None) -> "Result[T]":
        return cls(value=value, error=error, status=error.status)
