"""In-process backend adapter for the ledger store.

Used for tests and for running the server without a database file
(``database.backend = memory``). State is lost when the process exits.

Each account has its own ``threading.Lock``; a transaction acquires the locks
for its account ids in sorted order against one shared deadline, so two
opposite-direction payments cannot deadlock. Lock entries are reference
counted and dropped once no transaction holds or waits on them.

Writes are buffered inside the transaction and applied in one step on commit,
which makes rollback a matter of dropping the buffer.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import date, datetime

from currency_server.ledger.errors import TransientError
from currency_server.ledger.store import LedgerStore, LedgerTransaction
from currency_server.ledger.types import Account, TransactionRecord

logger = logging.getLogger(__name__)


@dataclass
class _Row:
    name: str
    balance: int


@dataclass
class _RowLock:
    lock: threading.Lock = field(default_factory=threading.Lock)
    users: int = 0


class MemoryLedgerTransaction(LedgerTransaction):
    """Buffered unit of work; nothing is visible until :meth:`commit`."""

    def __init__(self, store: MemoryLedgerStore, lock_ids: list[str]) -> None:
        self._store = store
        self._lock_ids = frozenset(lock_ids)
        self._balances: dict[str, int] = {}
        self._records: list[TransactionRecord] = []
        self._claims: dict[str, datetime] = {}
        self._closed = False

    def _require_lock(self, account_id: str) -> None:
        if account_id not in self._lock_ids:
            raise ValueError(f"account {account_id!r} was not locked by this transaction")

    def lock_and_read(self, account_id: str) -> int | None:
        self._require_lock(account_id)
        if account_id in self._balances:
            return self._balances[account_id]
        return self._store._committed_balance(account_id)

    def write(self, account_id: str, balance: int) -> None:
        self._require_lock(account_id)
        if self._store._committed_balance(account_id) is None:
            raise ValueError(f"account {account_id!r} vanished inside its own transaction")
        self._balances[account_id] = balance

    def append(self, record: TransactionRecord) -> None:
        self._records.append(record)

    def read_claim(self, claim_key: str) -> datetime | None:
        if claim_key in self._claims:
            return self._claims[claim_key]
        return self._store._committed_claim(claim_key)

    def upsert_claim(self, claim_key: str, claimed_at: datetime) -> None:
        self._claims[claim_key] = claimed_at

    def commit(self) -> None:
        if self._closed:
            return
        self._store._apply(self._balances, self._records, self._claims)
        self._closed = True

    def rollback(self) -> None:
        self._balances.clear()
        self._records.clear()
        self._claims.clear()
        self._closed = True


class MemoryLedgerStore(LedgerStore):
    """Dict-backed ledger store with per-account row locks."""

    name = "memory"

    def __init__(self, lock_timeout: float = 5.0) -> None:
        self.lock_timeout = lock_timeout
        self._rows: dict[str, _Row] = {}
        self._log: list[TransactionRecord] = []
        self._claims: dict[str, datetime] = {}
        self._mob_limits: dict[str, date] = {}
        self._row_locks: dict[str, _RowLock] = {}
        # Guards the dicts above; held only for short, non-blocking sections.
        self._state_lock = threading.Lock()

    # ── Internals used by MemoryLedgerTransaction ─────────────────────────────

    def _checkout_lock(self, account_id: str) -> threading.Lock:
        with self._state_lock:
            entry = self._row_locks.get(account_id)
            if entry is None:
                entry = self._row_locks[account_id] = _RowLock()
            entry.users += 1
            return entry.lock

    def _return_lock(self, account_id: str) -> None:
        with self._state_lock:
            entry = self._row_locks[account_id]
            entry.users -= 1
            if entry.users == 0:
                del self._row_locks[account_id]

    def _committed_balance(self, account_id: str) -> int | None:
        with self._state_lock:
            row = self._rows.get(account_id)
            return row.balance if row is not None else None

    def _committed_claim(self, claim_key: str) -> datetime | None:
        with self._state_lock:
            return self._claims.get(claim_key)

    def _apply(
        self,
        balances: dict[str, int],
        records: list[TransactionRecord],
        claims: dict[str, datetime],
    ) -> None:
        with self._state_lock:
            for account_id, balance in balances.items():
                self._rows[account_id].balance = balance
            self._log.extend(records)
            self._claims.update(claims)

    # ── LedgerStore ───────────────────────────────────────────────────────────

    @contextmanager
    def transaction(self, lock_ids: Iterable[str]) -> Iterator[LedgerTransaction]:
        ids = sorted(set(lock_ids))
        deadline = time.monotonic() + self.lock_timeout
        checked_out: list[str] = []
        held: list[threading.Lock] = []
        try:
            for account_id in ids:
                lock = self._checkout_lock(account_id)
                checked_out.append(account_id)
                if not lock.acquire(timeout=max(deadline - time.monotonic(), 0)):
                    logger.warning("Lock wait exceeded for accounts %s", ids)
                    raise TransientError()
                held.append(lock)

            tx = MemoryLedgerTransaction(self, ids)
            try:
                yield tx
                tx.commit()
            except Exception:
                tx.rollback()
                raise
        finally:
            for lock in reversed(held):
                lock.release()
            for account_id in checked_out:
                self._return_lock(account_id)

    def upsert_account(self, account_id: str, name: str) -> Account:
        with self._state_lock:
            row = self._rows.get(account_id)
            if row is None:
                row = self._rows[account_id] = _Row(name=name, balance=0)
            else:
                row.name = name
            return Account(id=account_id, name=row.name, balance=row.balance)

    def get_account(self, account_id: str) -> Account | None:
        with self._state_lock:
            row = self._rows.get(account_id)
            if row is None:
                return None
            return Account(id=account_id, name=row.name, balance=row.balance)

    def top_accounts(self, limit: int) -> list[Account]:
        with self._state_lock:
            accounts = [
                Account(id=account_id, name=row.name, balance=row.balance)
                for account_id, row in self._rows.items()
            ]
        accounts.sort(key=lambda account: (-account.balance, account.name))
        return accounts[:limit]

    def mark_mob_limit(self, account_id: str, day: date) -> None:
        with self._state_lock:
            self._mob_limits[account_id] = day

    def check_mob_limit(self, account_id: str, day: date) -> bool:
        with self._state_lock:
            return self._mob_limits.get(account_id) == day

    def list_transactions(self, account_id: str, limit: int) -> list[TransactionRecord]:
        with self._state_lock:
            matching = [
                record
                for record in reversed(self._log)
                if account_id in (record.account_id, record.counterparty_id)
            ]
        return matching[:limit]
