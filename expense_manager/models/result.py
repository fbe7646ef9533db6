"""Operation outcomes returned by the service layer.

Every public service operation returns an `OperationResult`: either a value or
an `OperationError`, never both. Reads served from the fallback dataset keep
their value and carry the store failure in `advisory`.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Generic, Optional, TypeVar

T = TypeVar("T")


class ErrorKind(str, Enum):
    VALIDATION = "validation"
    INVALID_STATE_TRANSITION = "invalid_state_transition"
    NOT_FOUND = "not_found"
    STORE_UNAVAILABLE = "store_unavailable"


@dataclass(frozen=True)
class OperationError:
    kind: ErrorKind
    message: str


@dataclass(frozen=True)
class OperationResult(Generic[T]):
    value: Optional[T] = None
    error: Optional[OperationError] = None
    advisory: Optional[str] = None

    def __post_init__(self) -> None:
        if self.error is not None and self.value is not None:
            raise ValueError("OperationResult cannot carry both a value and an error")

    @property
    def success(self) -> bool:
        return self.error is None

    @classmethod
    def ok(cls, value: Optional[T] = None, advisory: Optional[str] = None) -> "OperationResult[T]":
        return cls(value=value, advisory=advisory)

    @classmethod
    def fail(cls, kind: ErrorKind, message: str) -> "OperationResult[T]":
        return cls(error=OperationError(kind, message))
