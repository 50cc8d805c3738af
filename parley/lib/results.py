"""Typed operation results for the messaging and social graph layer.

Every rule failure (bad input, missing record, missing permission) is
returned to the caller as a :class:`Result` rather than raised, so the outer
layer decides how to present it. Infrastructure errors are not wrapped and
propagate normally.

Usage:
    result = await gateway.send_message(sender_id, recipient_id, body)
    if not result.ok:
        return error_response(result.error)
    message, conversation = result.value
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Generic, TypeVar

T = TypeVar("T")


class ErrorKind(str, Enum):
    VALIDATION = "validation"
    PERMISSION = "permission"
    SELF_REFERENCE = "self_reference"
    NOT_FOUND = "not_found"
    AUTHORIZATION = "authorization"


@dataclass(frozen=True)
class ServiceError:
    kind: ErrorKind
    message: str


class ResultError(Exception):
    """Raised by :meth:`Result.unwrap` when the result holds an error."""

    def __init__(self, error: ServiceError) -> None:
        super().__init__(error.message)
        self.error = error

    @property
    def kind(self) -> ErrorKind:
        return self.error.kind


@dataclass(frozen=True)
class Result(Generic[T]):
    """Either a success value or a :class:`ServiceError`."""

    value: T | None = None
    error: ServiceError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def reason(self) -> str | None:
        """The error message, or None on success."""
        return self.error.message if self.error else None

    @property
    def kind(self) -> ErrorKind | None:
        return self.error.kind if self.error else None

    def unwrap(self) -> T:
        if self.error is not None:
            raise ResultError(self.error)
        return self.value  # type: ignore[return-value]

    @classmethod
    def success(cls, value: T | None = None) -> Result[T]:
        return cls(value=value)

    @classmethod
    def failure(cls, kind: ErrorKind, message: str) -> Result[T]:
        return cls(error=ServiceError(kind=kind, message=message))
