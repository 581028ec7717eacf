"""Ledger facade used by the API and CLI.

:class:`Ledger` binds one explicitly supplied store to the economy settings
and a clock, validates inputs, runs the canonical operations from
:mod:`.operations`, logs outcomes, and returns a :class:`LedgerResult` for
every call. It holds no module-level state; construct one per application.

Infrastructure failures (``DatabaseError``) are not ledger outcomes and
propagate as exceptions.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any, TypeVar

from currency_server.config import DatabaseSettings, LedgerSettings, ServerConfig
from currency_server.ledger import operations
from currency_server.ledger.daily import ResetSchedule
from currency_server.ledger.errors import (
    LedgerError,
    TransientError,
    account_not_found,
    invalid_input,
)
from currency_server.ledger.memory_store import MemoryLedgerStore
from currency_server.ledger.result import LedgerResult
from currency_server.ledger.sqlite_store import SQLiteLedgerStore
from currency_server.ledger.store import LedgerStore
from currency_server.ledger.types import (
    Account,
    BalanceReceipt,
    DailyClaimReceipt,
    PayReceipt,
    TransactionRecord,
    WithdrawReceipt,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")
Clock = Callable[[], datetime]

MAX_TOP_LIMIT = 100
MAX_HISTORY_LIMIT = 200
MAX_NAME_LENGTH = 64


def utc_now() -> datetime:
    return datetime.now(UTC)


def build_store(settings: DatabaseSettings) -> LedgerStore:
    """Create the store selected by ``database.backend``.

    The SQLite schema is created on demand so a fresh deployment starts
    without a separate ``init-db`` step.
    """
    if settings.backend == "memory":
        return MemoryLedgerStore(lock_timeout=settings.lock_timeout_seconds)

    from currency_server.db.schema import init_database

    init_database()
    return SQLiteLedgerStore()


class Ledger:
    """Entry point for every ledger operation.

    Args:
        store: Persistence backend adapter.
        settings: Economy constants (reward, reset time, denomination).
        clock: Returns the current timezone-aware instant. Tests pass a
            fixed clock to exercise reset-boundary edge cases.
    """

    def __init__(
        self,
        store: LedgerStore,
        settings: LedgerSettings | None = None,
        *,
        clock: Clock = utc_now,
    ) -> None:
        self.store = store
        self.settings = settings or LedgerSettings()
        self.clock = clock
        self.schedule = ResetSchedule(
            hour=self.settings.reset_hour,
            minute=self.settings.reset_minute,
            timezone=self.settings.timezone,
        )

    @classmethod
    def from_config(cls, cfg: ServerConfig, *, clock: Clock = utc_now) -> Ledger:
        return cls(build_store(cfg.database), cfg.ledger, clock=clock)

    def _run(
        self, operation: str, func: Callable[..., T], *args: Any, **kwargs: Any
    ) -> LedgerResult[T]:
        try:
            value = func(*args, **kwargs)
        except TransientError as exc:
            logger.warning("%s aborted: %s", operation, exc.message)
            return LedgerResult.failure(exc)
        except LedgerError as exc:
            logger.info("%s rejected: %s (%s)", operation, exc.kind.value, exc.message)
            return LedgerResult.failure(exc)
        return LedgerResult.success(value)

    # ── Accounts and reads ────────────────────────────────────────────────────

    def login(self, account_id: str, name: str) -> LedgerResult[Account]:
        """Create the account on first login, otherwise refresh its display name."""

        def _login() -> Account:
            operations.require_account_id(account_id)
            if not isinstance(name, str) or not name.strip():
                raise invalid_input("Missing name.")
            if len(name.strip()) > MAX_NAME_LENGTH:
                raise invalid_input(f"Name must be at most {MAX_NAME_LENGTH} characters.")
            return self.store.upsert_account(account_id, name.strip())

        return self._run("login", _login)

    def get_balance(self, account_id: str) -> LedgerResult[int]:
        def _get_balance() -> int:
            operations.require_account_id(account_id)
            balance = self.store.get_balance(account_id)
            if balance is None:
                raise account_not_found()
            return balance

        return self._run("get_balance", _get_balance)

    def top(self, limit: int | None = None) -> LedgerResult[list[Account]]:
        """Richest accounts, balance descending."""

        def _top() -> list[Account]:
            n = self.settings.top_limit if limit is None else limit
            operations.require_positive_int(n, "limit")
            if n > MAX_TOP_LIMIT:
                raise invalid_input(f"limit must be at most {MAX_TOP_LIMIT}.")
            return self.store.top_accounts(n)

        return self._run("top", _top)

    def history(self, account_id: str, limit: int = 20) -> LedgerResult[list[TransactionRecord]]:
        """Most recent transaction records involving the account, newest first."""

        def _history() -> list[TransactionRecord]:
            operations.require_account_id(account_id)
            operations.require_positive_int(limit, "limit")
            if limit > MAX_HISTORY_LIMIT:
                raise invalid_input(f"limit must be at most {MAX_HISTORY_LIMIT}.")
            return self.store.list_transactions(account_id, limit)

        return self._run("history", _history)

    # ── Balance-mutating operations ───────────────────────────────────────────

    def pay(self, sender_id: str, recipient_id: str, amount: int) -> LedgerResult[PayReceipt]:
        result = self._run(
            "pay", operations.pay, self.store, sender_id, recipient_id, amount, now=self.clock()
        )
        if result.ok:
            logger.info(
                "pay %s -> %s amount=%s sender_balance=%s",
                sender_id,
                recipient_id,
                amount,
                result.value.new_sender_balance,
            )
        return result

    def deposit(self, account_id: str, amount: int) -> LedgerResult[BalanceReceipt]:
        result = self._run(
            "deposit", operations.deposit, self.store, account_id, amount, now=self.clock()
        )
        if result.ok:
            logger.info(
                "deposit %s amount=%s balance=%s", account_id, amount, result.value.new_balance
            )
        return result

    def withdraw(
        self, account_id: str, count: int, denomination: int | None = None
    ) -> LedgerResult[WithdrawReceipt]:
        denom = self.settings.default_denomination if denomination is None else denomination
        result = self._run(
            "withdraw",
            operations.withdraw,
            self.store,
            account_id,
            count,
            denom,
            now=self.clock(),
        )
        if result.ok:
            receipt = result.value
            logger.info(
                "withdraw %s %sx%s=%s balance=%s",
                account_id,
                receipt.count,
                receipt.denomination,
                receipt.withdrawn,
                receipt.new_balance,
            )
        return result

    def claim_daily(self, account_id: str) -> LedgerResult[DailyClaimReceipt]:
        result = self._run(
            "claim_daily",
            operations.claim_daily,
            self.store,
            account_id,
            now=self.clock(),
            schedule=self.schedule,
            reward=self.settings.daily_reward_amount,
        )
        if result.ok:
            logger.info(
                "daily reward %s amount=%s balance=%s",
                account_id,
                result.value.reward,
                result.value.new_balance,
            )
        return result

    # ── Mob-limit tracker ─────────────────────────────────────────────────────

    def mark_mob_limit(self, account_id: str) -> LedgerResult[None]:
        return self._run(
            "mark_mob_limit",
            operations.mark_mob_limit,
            self.store,
            account_id,
            now=self.clock(),
            schedule=self.schedule,
        )

    def check_mob_limit(self, account_id: str) -> LedgerResult[bool]:
        return self._run(
            "check_mob_limit",
            operations.check_mob_limit,
            self.store,
            account_id,
            now=self.clock(),
            schedule=self.schedule,
        )
