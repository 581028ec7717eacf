"""Explicit result type returned by the ledger facade."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, TypeVar

from currency_server.ledger.errors import ErrorKind, LedgerError

T = TypeVar("T")


@dataclass(frozen=True, slots=True)
class LedgerResult(Generic[T]):
    """Outcome of one ledger operation: a value or a typed error, never both.

    Example::

        result = ledger.pay("alice", "bob", 25)
        if result.ok:
            print(result.value.new_sender_balance)
        elif result.error.kind is ErrorKind.INSUFFICIENT_FUNDS:
            ...
    """

    value: T | None = None
    error: LedgerError | None = None

    @classmethod
    def success(cls, value: T) -> LedgerResult[T]:
        return cls(value=value)

    @classmethod
    def failure(cls, error: LedgerError) -> LedgerResult[T]:
        return cls(error=error)

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def kind(self) -> ErrorKind | None:
        """Error kind, or ``None`` on success."""
        return self.error.kind if self.error is not None else None

    def unwrap(self) -> T:
        """Return the value, raising the carried error on failure."""
        if self.error is not None:
            raise self.error
        return self.value  # type: ignore[return-value]
