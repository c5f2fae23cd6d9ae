"""Typed success / failure result for top-level operations."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, TypeVar

from kstools.core.exceptions import ErrorKind, KeystoreToolsError

T = TypeVar("T")


@dataclass(frozen=True)
class Result(Generic[T]):
    """
    Outcome of an operation that reports failure instead of raising.

    Exactly one of ``value`` or ``error`` is set.
    """

    value: T | None = None
    error: KeystoreToolsError | None = None

    @classmethod
    def success(cls, value: T) -> "Result[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, error: KeystoreToolsError) -> "Result[T]":
        return cls(error=error)

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def kind(self) -> ErrorKind | None:
        """Error category, or None on success."""
        return self.error.kind if self.error is not None else None

    @property
    def message(self) -> str | None:
        return str(self.error) if self.error is not None else None

    def unwrap(self) -> T:
        """Return the value or re-raise the stored error."""
        if self.error is not None:
            raise self.error
        return self.value
