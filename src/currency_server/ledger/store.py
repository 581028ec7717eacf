"""Abstract transactional store the ledger operations are written against.

A backend supplies two things:

- a :class:`LedgerStore` with the non-transactional capabilities (account
  upsert, reads, the leaderboard, the mob-limit tracker, history), and
- a :class:`LedgerTransaction` handed out by :meth:`LedgerStore.transaction`,
  exposing the capability set the operations need for an atomic unit:
  ``lock_and_read``, ``write``, ``append``, ``read_claim``, ``upsert_claim``,
  ``commit`` and ``rollback``.

Locking contract
----------------
``transaction(lock_ids)`` acquires exclusive access to every account id in
``lock_ids`` before yielding, in sorted id order, waiting at most the
backend's lock timeout. Failure to acquire raises
:class:`~currency_server.ledger.errors.TransientError` and leaves nothing
held. Backends may lock more coarsely (SQLite locks the whole database) but
never less.

The context manager commits when the block exits cleanly and rolls back when
it raises; operations call ``commit``/``rollback`` only through it.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterable
from contextlib import AbstractContextManager
from datetime import date, datetime

from currency_server.ledger.types import Account, TransactionRecord


class LedgerTransaction(ABC):
    """One atomic unit of work against the store."""

    @abstractmethod
    def lock_and_read(self, account_id: str) -> int | None:
        """Return the locked account's balance, or ``None`` if it does not exist."""

    @abstractmethod
    def write(self, account_id: str, balance: int) -> None:
        """Set the balance of an account previously returned by ``lock_and_read``."""

    @abstractmethod
    def append(self, record: TransactionRecord) -> None:
        """Append a record to the transaction log."""

    @abstractmethod
    def read_claim(self, claim_key: str) -> datetime | None:
        """Return the last daily-claim instant for ``claim_key``."""

    @abstractmethod
    def upsert_claim(self, claim_key: str, claimed_at: datetime) -> None:
        """Record a successful daily claim."""

    @abstractmethod
    def commit(self) -> None:
        """Make every change in this unit visible."""

    @abstractmethod
    def rollback(self) -> None:
        """Discard every change in this unit."""


class LedgerStore(ABC):
    """Persistence backend for the ledger."""

    name = "abstract"

    @abstractmethod
    def transaction(self, lock_ids: Iterable[str]) -> AbstractContextManager[LedgerTransaction]:
        """Open an atomic unit holding locks on ``lock_ids``."""

    @abstractmethod
    def upsert_account(self, account_id: str, name: str) -> Account:
        """Create the account with a zero balance, or update its display name."""

    @abstractmethod
    def get_account(self, account_id: str) -> Account | None:
        """Return the account row or ``None``."""

    def get_balance(self, account_id: str) -> int | None:
        """Return the committed balance or ``None`` for an unknown account."""
        account = self.get_account(account_id)
        return account.balance if account is not None else None

    @abstractmethod
    def top_accounts(self, limit: int) -> list[Account]:
        """Return up to ``limit`` accounts by balance descending, ties by name."""

    @abstractmethod
    def mark_mob_limit(self, account_id: str, day: date) -> None:
        """Upsert ``day`` as the date the account reached its mob limit."""

    @abstractmethod
    def check_mob_limit(self, account_id: str, day: date) -> bool:
        """Return ``True`` when the stored date for the account equals ``day``."""

    @abstractmethod
    def list_transactions(self, account_id: str, limit: int) -> list[TransactionRecord]:
        """Return the account's most recent records, newest first."""

    def close(self) -> None:
        """Release backend resources. Default is a no-op."""
