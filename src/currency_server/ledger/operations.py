"""Canonical ledger operations.

Each balance-mutating operation is one bounded sequence of reads and writes
inside a single :meth:`LedgerStore.transaction`. Failures are raised as
:class:`~currency_server.ledger.errors.LedgerError`; raising inside the
transaction block rolls back every write made so far, so no caller ever sees
a partial debit, credit, log append or claim upsert.

Conservation: ``pay`` moves exactly ``amount`` from sender to recipient.
``deposit``, ``withdraw`` and ``claim_daily`` are the mint/burn boundaries.

All functions take the store and the current instant explicitly.
"""

from __future__ import annotations

from datetime import UTC, datetime

from currency_server.ledger import errors
from currency_server.ledger.daily import ResetSchedule, claim_state, retry_after
from currency_server.ledger.store import LedgerStore
from currency_server.ledger.types import (
    BalanceReceipt,
    DailyClaimReceipt,
    PayReceipt,
    TransactionAction,
    TransactionRecord,
    WithdrawReceipt,
)

# Largest balance an account may hold; SQLite INTEGER is a signed 64-bit value.
MAX_BALANCE = 2**63 - 1


def _is_int(value: object) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def require_amount(amount: object) -> int:
    """Validate a currency amount: a positive integer within balance range."""
    if not _is_int(amount) or not 0 < amount <= MAX_BALANCE:  # type: ignore[operator]
        raise errors.invalid_amount()
    return amount  # type: ignore[return-value]


def require_positive_int(value: object, field: str) -> int:
    if not _is_int(value) or not 0 < value <= MAX_BALANCE:  # type: ignore[operator]
        raise errors.invalid_input(f"{field} must be a positive whole number.")
    return value  # type: ignore[return-value]


def require_account_id(value: object, field: str = "account id") -> str:
    if not isinstance(value, str) or not value.strip():
        raise errors.invalid_input(f"Missing {field}.")
    return value


def _credit(balance: int, amount: int) -> int:
    new_balance = balance + amount
    if new_balance > MAX_BALANCE:
        raise errors.invalid_amount("Amount would overflow the account balance.")
    return new_balance


def _utc(now: datetime) -> datetime:
    if now.tzinfo is None:
        raise ValueError("now must be timezone-aware")
    return now.astimezone(UTC)


# ── Balance-mutating operations ───────────────────────────────────────────────


def pay(
    store: LedgerStore, sender_id: str, recipient_id: str, amount: int, *, now: datetime
) -> PayReceipt:
    """Move ``amount`` from sender to recipient atomically."""
    amount = require_amount(amount)
    require_account_id(sender_id, "sender id")
    require_account_id(recipient_id, "recipient id")
    if sender_id == recipient_id:
        raise errors.invalid_input("You cannot pay yourself.")

    with store.transaction([sender_id, recipient_id]) as tx:
        sender_balance = tx.lock_and_read(sender_id)
        if sender_balance is None:
            raise errors.sender_not_found()
        if sender_balance < amount:
            raise errors.insufficient_funds()

        new_sender_balance = sender_balance - amount
        tx.write(sender_id, new_sender_balance)

        recipient_balance = tx.lock_and_read(recipient_id)
        if recipient_balance is None:
            # Raising here rolls back the debit above.
            raise errors.recipient_not_found()
        tx.write(recipient_id, _credit(recipient_balance, amount))

        tx.append(
            TransactionRecord(
                account_id=sender_id,
                action=TransactionAction.PAY,
                amount=amount,
                counterparty_id=recipient_id,
                balance_after=new_sender_balance,
                timestamp=_utc(now),
            )
        )

    return PayReceipt(new_sender_balance=new_sender_balance)


def deposit(store: LedgerStore, account_id: str, amount: int, *, now: datetime) -> BalanceReceipt:
    """Mint ``amount`` into an account in exchange for in-game items."""
    amount = require_amount(amount)
    require_account_id(account_id)

    with store.transaction([account_id]) as tx:
        balance = tx.lock_and_read(account_id)
        if balance is None:
            raise errors.account_not_found()
        new_balance = _credit(balance, amount)
        tx.write(account_id, new_balance)
        tx.append(
            TransactionRecord(
                account_id=account_id,
                action=TransactionAction.DEPOSIT,
                amount=amount,
                balance_after=new_balance,
                timestamp=_utc(now),
            )
        )

    return BalanceReceipt(new_balance=new_balance)


def withdraw(
    store: LedgerStore,
    account_id: str,
    count: int,
    denomination: int,
    *,
    now: datetime,
) -> WithdrawReceipt:
    """Burn ``count * denomination`` so the caller can issue physical bills."""
    count = require_positive_int(count, "count")
    denomination = require_positive_int(denomination, "denomination")
    require_account_id(account_id)
    amount = count * denomination
    if amount > MAX_BALANCE:
        raise errors.invalid_input("Withdrawal amount is too large.")

    with store.transaction([account_id]) as tx:
        balance = tx.lock_and_read(account_id)
        if balance is None:
            raise errors.account_not_found()
        if balance < amount:
            raise errors.insufficient_funds()
        new_balance = balance - amount
        tx.write(account_id, new_balance)
        tx.append(
            TransactionRecord(
                account_id=account_id,
                action=TransactionAction.WITHDRAW,
                amount=amount,
                denomination=denomination,
                count=count,
                balance_after=new_balance,
                timestamp=_utc(now),
            )
        )

    return WithdrawReceipt(
        withdrawn=amount, new_balance=new_balance, denomination=denomination, count=count
    )


def claim_daily(
    store: LedgerStore,
    account_id: str,
    *,
    now: datetime,
    schedule: ResetSchedule,
    reward: int,
) -> DailyClaimReceipt:
    """Credit the daily reward once per reset period.

    The claim tracker is keyed by account id. A denied claim raises
    :class:`~currency_server.ledger.errors.AlreadyClaimedError` with the time
    left until the next reset and mutates nothing.
    """
    require_account_id(account_id)
    reward = require_amount(reward)

    with store.transaction([account_id]) as tx:
        balance = tx.lock_and_read(account_id)
        if balance is None:
            raise errors.account_not_found()

        state = claim_state(tx.read_claim(account_id), now, schedule)
        if not state.allows_claim:
            raise errors.AlreadyClaimedError(retry_after(now, schedule))

        new_balance = _credit(balance, reward)
        tx.write(account_id, new_balance)
        tx.upsert_claim(account_id, _utc(now))
        tx.append(
            TransactionRecord(
                account_id=account_id,
                action=TransactionAction.DAILY,
                amount=reward,
                balance_after=new_balance,
                timestamp=_utc(now),
            )
        )

    return DailyClaimReceipt(
        new_balance=new_balance,
        message=(
            f"You claimed your daily reward of ${reward:,}!\n"
            f"\N{MONEY BAG} New Balance: ${new_balance:,}"
        ),
        next_reset=schedule.next_reset(now),
        reward=reward,
    )


# ── Mob-limit tracker ─────────────────────────────────────────────────────────


def mark_mob_limit(
    store: LedgerStore, account_id: str, *, now: datetime, schedule: ResetSchedule
) -> None:
    """Record that the account hit its mob-drop limit today. Idempotent."""
    require_account_id(account_id)
    store.mark_mob_limit(account_id, schedule.local_date(now))


def check_mob_limit(
    store: LedgerStore, account_id: str, *, now: datetime, schedule: ResetSchedule
) -> bool:
    require_account_id(account_id)
    return store.check_mob_limit(account_id, schedule.local_date(now))
