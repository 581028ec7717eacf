"""SQLite backend adapter for the ledger store.

SQLite has no row-level locks. A ledger transaction therefore opens with
``BEGIN IMMEDIATE``, which takes the database's reserved lock: every other
writer waits (up to ``busy_timeout``) until this one commits or rolls back.
That is coarser than the per-account contract in :mod:`.store` requires, which
is allowed. With WAL journaling enabled by the schema, plain balance reads are
not blocked by an in-flight writer.

Lock waits that exceed the timeout surface as
:class:`~currency_server.ledger.errors.TransientError`; every other SQLite
failure is mapped to the typed ``DatabaseError`` family.
"""

from __future__ import annotations

import logging
import sqlite3
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from datetime import date, datetime

from currency_server.db.connection import connection_scope, get_connection, is_lock_error
from currency_server.db.errors import raise_read_error, raise_write_error
from currency_server.ledger.errors import TransientError
from currency_server.ledger.store import LedgerStore, LedgerTransaction
from currency_server.ledger.types import Account, TransactionAction, TransactionRecord

logger = logging.getLogger(__name__)


def _row_to_record(row: sqlite3.Row) -> TransactionRecord:
    return TransactionRecord(
        account_id=row["account_id"],
        action=TransactionAction(row["action"]),
        amount=int(row["amount"]),
        counterparty_id=row["counterparty_id"],
        denomination=row["denomination"],
        count=row["count"],
        balance_after=int(row["balance_after"]),
        timestamp=datetime.fromisoformat(row["timestamp"]),
    )


class SQLiteLedgerTransaction(LedgerTransaction):
    """Atomic unit bound to one connection inside ``BEGIN IMMEDIATE``."""

    def __init__(self, connection: sqlite3.Connection, lock_ids: list[str]) -> None:
        self._conn = connection
        self._lock_ids = frozenset(lock_ids)

    def _require_lock(self, account_id: str) -> None:
        if account_id not in self._lock_ids:
            raise ValueError(f"account {account_id!r} was not locked by this transaction")

    def lock_and_read(self, account_id: str) -> int | None:
        self._require_lock(account_id)
        row = self._conn.execute(
            "SELECT balance FROM accounts WHERE id = ?", (account_id,)
        ).fetchone()
        return int(row["balance"]) if row else None

    def write(self, account_id: str, balance: int) -> None:
        self._require_lock(account_id)
        cursor = self._conn.execute(
            "UPDATE accounts SET balance = ?, updated_at = CURRENT_TIMESTAMP WHERE id = ?",
            (balance, account_id),
        )
        if cursor.rowcount != 1:
            raise ValueError(f"account {account_id!r} vanished inside its own transaction")

    def append(self, record: TransactionRecord) -> None:
        self._conn.execute(
            """
            INSERT INTO currency_transactions (
                account_id, action, amount, counterparty_id,
                denomination, count, balance_after, timestamp
            )
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                record.account_id,
                record.action.value,
                record.amount,
                record.counterparty_id,
                record.denomination,
                record.count,
                record.balance_after,
                record.timestamp.isoformat(),
            ),
        )

    def read_claim(self, claim_key: str) -> datetime | None:
        row = self._conn.execute(
            "SELECT last_claim_at FROM daily_rewards WHERE claim_key = ?", (claim_key,)
        ).fetchone()
        return datetime.fromisoformat(row["last_claim_at"]) if row else None

    def upsert_claim(self, claim_key: str, claimed_at: datetime) -> None:
        self._conn.execute(
            """
            INSERT INTO daily_rewards (claim_key, last_claim_at)
            VALUES (?, ?)
            ON CONFLICT(claim_key) DO UPDATE SET last_claim_at = excluded.last_claim_at
            """,
            (claim_key, claimed_at.isoformat()),
        )

    def commit(self) -> None:
        self._conn.execute("COMMIT")

    def rollback(self) -> None:
        if self._conn.in_transaction:
            try:
                self._conn.execute("ROLLBACK")
            except sqlite3.Error:
                # Preserve the original exception while best-effort rolling back.
                logger.debug("Rollback failed", exc_info=True)


class SQLiteLedgerStore(LedgerStore):
    """Ledger store backed by the configured SQLite database file."""

    name = "sqlite"

    @contextmanager
    def transaction(self, lock_ids: Iterable[str]) -> Iterator[LedgerTransaction]:
        ids = sorted(set(lock_ids))
        try:
            conn = get_connection()
        except sqlite3.Error as exc:
            raise_write_error("ledger.open_transaction", exc)

        tx = SQLiteLedgerTransaction(conn, ids)
        try:
            conn.execute("BEGIN IMMEDIATE")
            yield tx
            tx.commit()
        except Exception as exc:
            tx.rollback()
            if isinstance(exc, sqlite3.Error):
                if is_lock_error(exc):
                    logger.warning("Lock wait exceeded for accounts %s", ids)
                    raise TransientError() from exc
                raise_write_error("ledger.transaction", exc, details=f"accounts={ids}")
            raise
        finally:
            conn.close()

    def upsert_account(self, account_id: str, name: str) -> Account:
        try:
            with connection_scope(write=True) as conn:
                conn.execute(
                    """
                    INSERT INTO accounts (id, name, balance)
                    VALUES (?, ?, 0)
                    ON CONFLICT(id) DO UPDATE SET
                        name = excluded.name,
                        updated_at = CURRENT_TIMESTAMP
                    """,
                    (account_id, name),
                )
                row = conn.execute(
                    "SELECT id, name, balance FROM accounts WHERE id = ?", (account_id,)
                ).fetchone()
            return Account(id=row["id"], name=row["name"], balance=int(row["balance"]))
        except Exception as exc:
            if is_lock_error(exc):
                raise TransientError() from exc
            raise_write_error("accounts.upsert_account", exc, details=f"id={account_id!r}")

    def get_account(self, account_id: str) -> Account | None:
        try:
            with connection_scope() as conn:
                row = conn.execute(
                    "SELECT id, name, balance FROM accounts WHERE id = ? LIMIT 1", (account_id,)
                ).fetchone()
        except Exception as exc:
            raise_read_error("accounts.get_account", exc, details=f"id={account_id!r}")
        if row is None:
            return None
        return Account(id=row["id"], name=row["name"], balance=int(row["balance"]))

    def top_accounts(self, limit: int) -> list[Account]:
        try:
            with connection_scope() as conn:
                rows = conn.execute(
                    "SELECT id, name, balance FROM accounts ORDER BY balance DESC, name ASC LIMIT ?",
                    (limit,),
                ).fetchall()
        except Exception as exc:
            raise_read_error("accounts.top_accounts", exc, details=f"limit={limit}")
        return [Account(id=r["id"], name=r["name"], balance=int(r["balance"])) for r in rows]

    def mark_mob_limit(self, account_id: str, day: date) -> None:
        try:
            with connection_scope(write=True) as conn:
                conn.execute(
                    """
                    INSERT INTO mob_limit_reached (account_id, date_reached)
                    VALUES (?, ?)
                    ON CONFLICT(account_id) DO UPDATE SET date_reached = excluded.date_reached
                    """,
                    (account_id, day.isoformat()),
                )
        except Exception as exc:
            if is_lock_error(exc):
                raise TransientError() from exc
            raise_write_error("mob_limit.mark_reached", exc, details=f"id={account_id!r}")

    def check_mob_limit(self, account_id: str, day: date) -> bool:
        try:
            with connection_scope() as conn:
                row = conn.execute(
                    """
                    SELECT 1 FROM mob_limit_reached
                    WHERE account_id = ? AND date_reached = ?
                    LIMIT 1
                    """,
                    (account_id, day.isoformat()),
                ).fetchone()
        except Exception as exc:
            raise_read_error("mob_limit.check_reached", exc, details=f"id={account_id!r}")
        return row is not None

    def list_transactions(self, account_id: str, limit: int) -> list[TransactionRecord]:
        try:
            with connection_scope() as conn:
                rows = conn.execute(
                    """
                    SELECT account_id, action, amount, counterparty_id,
                           denomination, count, balance_after, timestamp
                    FROM currency_transactions
                    WHERE account_id = ? OR counterparty_id = ?
                    ORDER BY id DESC
                    LIMIT ?
                    """,
                    (account_id, account_id, limit),
                ).fetchall()
        except Exception as exc:
            raise_read_error("transactions.list_transactions", exc, details=f"id={account_id!r}")
        return [_row_to_record(row) for row in rows]
