"""Behavioral tests for the balance-mutating ledger operations.

Every test runs against both store backends through the parametrized
``ledger`` fixture, so the memory and SQLite adapters are held to the same
contract.
"""

import pytest

from currency_server.ledger import ErrorKind, TransactionAction
from currency_server.ledger.operations import MAX_BALANCE
from tests.constants import ALICE, BOB, CAROL, MISSING


def _balances(ledger, *account_ids):
    return [ledger.get_balance(account_id).unwrap() for account_id in account_ids]


# ============================================================================
# PAY
# ============================================================================


@pytest.mark.unit
def test_pay_moves_exact_amount(ledger, fund):
    """A successful pay debits the sender and credits the recipient by the same amount."""
    fund(ledger, ALICE, 100)
    fund(ledger, BOB, 20)

    result = ledger.pay(ALICE, BOB, 30)

    assert result.ok
    assert result.value.new_sender_balance == 70
    assert _balances(ledger, ALICE, BOB) == [70, 50]


@pytest.mark.unit
def test_pay_insufficient_funds_changes_nothing(ledger, fund):
    """A=100 paying 150 fails with InsufficientFunds and leaves both balances intact."""
    fund(ledger, ALICE, 100)
    fund(ledger, BOB, 0)

    result = ledger.pay(ALICE, BOB, 150)

    assert result.kind is ErrorKind.INSUFFICIENT_FUNDS
    assert result.error.message == "Insufficient funds"
    assert _balances(ledger, ALICE, BOB) == [100, 0]


@pytest.mark.unit
def test_pay_entire_balance_leaves_zero(ledger, fund):
    """Paying exactly the full balance is allowed and leaves the sender at zero."""
    fund(ledger, ALICE, 100)
    fund(ledger, BOB)

    assert ledger.pay(ALICE, BOB, 100).ok
    assert _balances(ledger, ALICE, BOB) == [0, 100]


@pytest.mark.unit
def test_pay_to_missing_recipient_rolls_back_debit(ledger, fund):
    """The sender is debited before the recipient is read; a missing recipient undoes it."""
    fund(ledger, ALICE, 100)

    result = ledger.pay(ALICE, MISSING, 40)

    assert result.kind is ErrorKind.RECIPIENT_NOT_FOUND
    assert result.error.message == "Recipient not found"
    assert ledger.get_balance(ALICE).unwrap() == 100
    assert ledger.history(ALICE, 10).unwrap()[0].action is TransactionAction.DEPOSIT


@pytest.mark.unit
def test_pay_that_would_overflow_recipient_rolls_back_debit(ledger, fund):
    """A credit past MAX_BALANCE aborts the pay after the debit was written."""
    fund(ledger, ALICE, 100)
    fund(ledger, BOB, MAX_BALANCE - 5)

    result = ledger.pay(ALICE, BOB, 10)

    assert result.kind is ErrorKind.INVALID_AMOUNT
    assert _balances(ledger, ALICE, BOB) == [100, MAX_BALANCE - 5]
    assert [r.action for r in ledger.history(ALICE, 10).unwrap()] == [TransactionAction.DEPOSIT]
    assert [r.action for r in ledger.history(BOB, 10).unwrap()] == [TransactionAction.DEPOSIT]


@pytest.mark.unit
def test_pay_from_missing_sender(ledger, fund):
    """An unknown sender is reported as SenderNotFound."""
    fund(ledger, BOB, 10)

    result = ledger.pay(MISSING, BOB, 5)

    assert result.kind is ErrorKind.SENDER_NOT_FOUND
    assert ledger.get_balance(BOB).unwrap() == 10


@pytest.mark.unit
def test_pay_to_self_is_rejected(ledger, fund):
    """Paying yourself is invalid input and records nothing."""
    fund(ledger, ALICE, 100)

    result = ledger.pay(ALICE, ALICE, 10)

    assert result.kind is ErrorKind.INVALID_INPUT
    assert len(ledger.history(ALICE, 10).unwrap()) == 1


@pytest.mark.unit
@pytest.mark.parametrize("amount", [0, -5, 1.5, 10.0, True, "10", None, MAX_BALANCE + 1])
def test_pay_rejects_non_positive_or_non_integer_amounts(ledger, fund, amount):
    """Amounts must be positive ints: floats, bools, strings and zero are rejected."""
    fund(ledger, ALICE, 100)
    fund(ledger, BOB)

    result = ledger.pay(ALICE, BOB, amount)

    assert result.kind is ErrorKind.INVALID_AMOUNT
    assert _balances(ledger, ALICE, BOB) == [100, 0]


@pytest.mark.unit
def test_pay_records_one_entry_visible_to_both_parties(ledger, fund):
    """The pay record carries the counterparty and shows up in both histories."""
    fund(ledger, ALICE, 100)
    fund(ledger, BOB)

    ledger.pay(ALICE, BOB, 25)

    alice_latest = ledger.history(ALICE, 1).unwrap()[0]
    bob_latest = ledger.history(BOB, 1).unwrap()[0]
    assert alice_latest == bob_latest
    assert alice_latest.action is TransactionAction.PAY
    assert alice_latest.account_id == ALICE
    assert alice_latest.counterparty_id == BOB
    assert alice_latest.amount == 25
    assert alice_latest.balance_after == 75


@pytest.mark.unit
def test_pay_sequence_conserves_total(ledger, fund):
    """Total currency is unchanged by any mix of successful and failed pays."""
    fund(ledger, ALICE, 500)
    fund(ledger, BOB, 300)
    fund(ledger, CAROL, 200)
    total = 1000

    moves = [
        (ALICE, BOB, 120),
        (BOB, CAROL, 1000),  # insufficient
        (CAROL, ALICE, 200),
        (BOB, MISSING, 10),  # unknown recipient
        (BOB, ALICE, 0),  # invalid amount
        (ALICE, CAROL, 580),
        (CAROL, BOB, 1),
    ]
    for sender, recipient, amount in moves:
        ledger.pay(sender, recipient, amount)
        balances = _balances(ledger, ALICE, BOB, CAROL)
        assert sum(balances) == total
        assert all(balance >= 0 for balance in balances)


# ============================================================================
# DEPOSIT
# ============================================================================


@pytest.mark.unit
def test_deposit_credits_and_records(ledger, fund):
    """A=100, deposit 50 gives 150 and a deposit record with balance_after=150."""
    fund(ledger, ALICE, 100)

    result = ledger.deposit(ALICE, 50)

    assert result.ok
    assert result.value.new_balance == 150
    latest = ledger.history(ALICE, 1).unwrap()[0]
    assert latest.action is TransactionAction.DEPOSIT
    assert latest.amount == 50
    assert latest.balance_after == 150


@pytest.mark.unit
def test_deposit_to_missing_account(ledger):
    """Depositing to an unknown account reports AccountNotFound."""
    result = ledger.deposit(MISSING, 50)

    assert result.kind is ErrorKind.ACCOUNT_NOT_FOUND
    assert result.error.message == "Player not found"


@pytest.mark.unit
@pytest.mark.parametrize("amount", [0, -1, 2.5, False])
def test_deposit_rejects_invalid_amounts(ledger, fund, amount):
    """Deposit shares the strict positive-integer amount rule."""
    fund(ledger, ALICE, 10)

    assert ledger.deposit(ALICE, amount).kind is ErrorKind.INVALID_AMOUNT
    assert ledger.get_balance(ALICE).unwrap() == 10


@pytest.mark.unit
def test_deposit_that_would_overflow_is_rejected(ledger, fund):
    """A credit past the 64-bit balance ceiling is refused without a write."""
    fund(ledger, ALICE, MAX_BALANCE)

    result = ledger.deposit(ALICE, 1)

    assert result.kind is ErrorKind.INVALID_AMOUNT
    assert ledger.get_balance(ALICE).unwrap() == MAX_BALANCE


# ============================================================================
# WITHDRAW
# ============================================================================


@pytest.mark.unit
def test_withdraw_burns_count_times_denomination(ledger, fund):
    """Withdrawing 2x500 from 1200 removes 1000 and leaves 200."""
    fund(ledger, ALICE, 1200)

    result = ledger.withdraw(ALICE, 2, 500)

    assert result.ok
    assert result.value.withdrawn == 1000
    assert result.value.new_balance == 200
    assert result.value.denomination == 500
    assert result.value.count == 2
    latest = ledger.history(ALICE, 1).unwrap()[0]
    assert latest.action is TransactionAction.WITHDRAW
    assert (latest.count, latest.denomination, latest.amount) == (2, 500, 1000)


@pytest.mark.unit
def test_withdraw_more_than_balance_is_insufficient(ledger, fund):
    """Withdrawing 3x500 from 1200 fails and the balance stays 1200."""
    fund(ledger, ALICE, 1200)

    result = ledger.withdraw(ALICE, 3, 500)

    assert result.kind is ErrorKind.INSUFFICIENT_FUNDS
    assert ledger.get_balance(ALICE).unwrap() == 1200


@pytest.mark.unit
def test_withdraw_uses_default_denomination(ledger, fund):
    """Omitting the denomination falls back to the configured default of 1000."""
    fund(ledger, ALICE, 1200)

    result = ledger.withdraw(ALICE, 1)

    assert result.value.denomination == 1000
    assert result.value.new_balance == 200


@pytest.mark.unit
@pytest.mark.parametrize(
    ("count", "denomination"),
    [(0, 500), (-1, 500), (1.5, 500), (True, 500), (2, 0), (2, 99.9)],
)
def test_withdraw_rejects_invalid_count_or_denomination(ledger, fund, count, denomination):
    """Count and denomination must both be positive integers."""
    fund(ledger, ALICE, 5000)

    result = ledger.withdraw(ALICE, count, denomination)

    assert result.kind is ErrorKind.INVALID_INPUT
    assert ledger.get_balance(ALICE).unwrap() == 5000


@pytest.mark.unit
def test_withdraw_from_missing_account(ledger):
    """Withdrawing from an unknown account reports AccountNotFound."""
    assert ledger.withdraw(MISSING, 1, 100).kind is ErrorKind.ACCOUNT_NOT_FOUND


# ============================================================================
# READS AND ACCOUNTS
# ============================================================================


@pytest.mark.unit
def test_get_balance_is_idempotent(ledger, fund):
    """Reading a balance repeatedly returns the same value and writes nothing."""
    fund(ledger, ALICE, 42)

    first = ledger.get_balance(ALICE).unwrap()
    second = ledger.get_balance(ALICE).unwrap()

    assert first == second == 42
    assert len(ledger.history(ALICE, 10).unwrap()) == 1


@pytest.mark.unit
def test_get_balance_for_missing_account(ledger):
    """Balance lookups for unknown accounts report AccountNotFound."""
    assert ledger.get_balance(MISSING).kind is ErrorKind.ACCOUNT_NOT_FOUND


@pytest.mark.unit
def test_login_creates_account_with_zero_balance(ledger):
    """First login creates the account at zero."""
    account = ledger.login(ALICE, "alice").unwrap()

    assert account.id == ALICE
    assert account.name == "alice"
    assert account.balance == 0


@pytest.mark.unit
def test_login_updates_name_and_keeps_balance(ledger, fund):
    """A repeat login renames the account but never touches its balance."""
    fund(ledger, ALICE, 75, name="alice")

    account = ledger.login(ALICE, "  Alice2  ").unwrap()

    assert account.name == "Alice2"
    assert account.balance == 75


@pytest.mark.unit
@pytest.mark.parametrize(("account_id", "name"), [("", "alice"), (ALICE, ""), (ALICE, "x" * 65)])
def test_login_rejects_bad_identity(ledger, account_id, name):
    """Empty ids, empty names and overlong names are invalid input."""
    assert ledger.login(account_id, name).kind is ErrorKind.INVALID_INPUT


@pytest.mark.unit
def test_top_orders_by_balance_then_name(ledger, fund):
    """The leaderboard is balance descending with ties broken by name."""
    fund(ledger, ALICE, 50, name="zed")
    fund(ledger, BOB, 50, name="amy")
    fund(ledger, CAROL, 900, name="carol")

    top = ledger.top(2).unwrap()

    assert [(a.name, a.balance) for a in top] == [("carol", 900), ("amy", 50)]


@pytest.mark.unit
def test_top_defaults_to_configured_limit(ledger, fund):
    """Without a limit the configured top_limit (10) applies."""
    for i in range(12):
        fund(ledger, f"acct-{i:02d}", i + 1)

    assert len(ledger.top().unwrap()) == 10


@pytest.mark.unit
@pytest.mark.parametrize("limit", [0, -1, 101, 2.0])
def test_top_rejects_out_of_range_limits(ledger, limit):
    """Limits outside 1..100 are invalid input."""
    assert ledger.top(limit).kind is ErrorKind.INVALID_INPUT


@pytest.mark.unit
def test_history_is_newest_first_and_limited(ledger, fund):
    """History returns the most recent records first, capped at the limit."""
    fund(ledger, ALICE, 10)
    ledger.deposit(ALICE, 20)
    ledger.deposit(ALICE, 30)

    records = ledger.history(ALICE, 2).unwrap()

    assert [r.amount for r in records] == [30, 20]


@pytest.mark.unit
def test_history_rejects_oversized_limit(ledger, fund):
    """History limits are bounded."""
    fund(ledger, ALICE)

    assert ledger.history(ALICE, 201).kind is ErrorKind.INVALID_INPUT
    assert ledger.history(ALICE, 0).kind is ErrorKind.INVALID_INPUT


# ============================================================================
# MOB LIMIT
# ============================================================================


@pytest.mark.unit
def test_mob_limit_is_per_local_day(ledger, fund, clock):
    """Marking sets today's flag; it is idempotent and clears on the next local date."""
    fund(ledger, ALICE)
    clock.set_local(2025, 1, 15, 23, 50)

    assert ledger.check_mob_limit(ALICE).unwrap() is False
    assert ledger.mark_mob_limit(ALICE).ok
    assert ledger.mark_mob_limit(ALICE).ok
    assert ledger.check_mob_limit(ALICE).unwrap() is True
    assert ledger.check_mob_limit(BOB).unwrap() is False

    clock.set_local(2025, 1, 16, 0, 5)
    assert ledger.check_mob_limit(ALICE).unwrap() is False


@pytest.mark.unit
def test_mob_limit_requires_account_id(ledger):
    """An empty account id is invalid input."""
    assert ledger.mark_mob_limit("").kind is ErrorKind.INVALID_INPUT
    assert ledger.check_mob_limit("  ").kind is ErrorKind.INVALID_INPUT
