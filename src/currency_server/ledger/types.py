"""Value types shared by the ledger engine and its store adapters."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum


class TransactionAction(str, Enum):
    """Kinds of balance-affecting events recorded in the transaction log."""

    PAY = "pay"
    DEPOSIT = "deposit"
    WITHDRAW = "withdraw"
    DAILY = "daily"


@dataclass(frozen=True, slots=True)
class Account:
    """A balance-holding identity.

    Attributes:
        id: Opaque unique identity (the player's game UUID).
        name: Display name, last-write-wins on login.
        balance: Integer balance in the smallest currency unit.
    """

    id: str
    name: str
    balance: int


@dataclass(frozen=True, slots=True)
class TransactionRecord:
    """One immutable entry of the transaction log.

    ``counterparty_id`` is only set for ``pay`` (the recipient leg);
    ``denomination`` and ``count`` only for ``withdraw``.
    """

    account_id: str
    action: TransactionAction
    amount: int
    balance_after: int
    timestamp: datetime
    counterparty_id: str | None = None
    denomination: int | None = None
    count: int | None = None

    def to_dict(self) -> dict:
        """Return a JSON-friendly mapping of the record."""
        return {
            "account_id": self.account_id,
            "action": self.action.value,
            "amount": self.amount,
            "counterparty_id": self.counterparty_id,
            "denomination": self.denomination,
            "count": self.count,
            "balance_after": self.balance_after,
            "timestamp": self.timestamp.isoformat(),
        }


# ── Receipts returned by successful operations ────────────────────────────────


@dataclass(frozen=True, slots=True)
class PayReceipt:
    new_sender_balance: int


@dataclass(frozen=True, slots=True)
class BalanceReceipt:
    new_balance: int


@dataclass(frozen=True, slots=True)
class WithdrawReceipt:
    withdrawn: int
    new_balance: int
    denomination: int
    count: int


@dataclass(frozen=True, slots=True)
class DailyClaimReceipt:
    new_balance: int
    message: str
    next_reset: datetime
    reward: int


@dataclass(frozen=True, slots=True)
class RetryAfter:
    """Remaining wait until the next reset, floor-truncated for display."""

    delta: timedelta

    @property
    def seconds(self) -> int:
        return max(int(self.delta.total_seconds()), 0)

    @property
    def hours(self) -> int:
        return self.seconds // 3600

    @property
    def minutes(self) -> int:
        return self.seconds % 3600 // 60
