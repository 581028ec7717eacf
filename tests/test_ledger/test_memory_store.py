"""Focused tests for the in-process ledger store adapter."""

from datetime import UTC, date, datetime

import pytest

from currency_server.ledger import (
    ErrorKind,
    MemoryLedgerStore,
    TransactionAction,
    TransactionRecord,
    TransientError,
)
from tests.constants import ALICE, BOB


@pytest.fixture
def store() -> MemoryLedgerStore:
    store = MemoryLedgerStore(lock_timeout=0.2)
    store.upsert_account(ALICE, "alice")
    store.upsert_account(BOB, "bob")
    return store


def _record(account_id: str, amount: int) -> TransactionRecord:
    return TransactionRecord(
        account_id=account_id,
        action=TransactionAction.DEPOSIT,
        amount=amount,
        balance_after=amount,
        timestamp=datetime(2025, 1, 15, tzinfo=UTC),
    )


@pytest.mark.unit
def test_writes_are_invisible_until_commit(store):
    """Buffered balances are only published when the transaction block exits."""
    with store.transaction([ALICE]) as tx:
        tx.write(ALICE, 500)
        assert tx.lock_and_read(ALICE) == 500
        assert store.get_balance(ALICE) == 0

    assert store.get_balance(ALICE) == 500


@pytest.mark.unit
def test_exception_discards_every_buffered_write(store):
    """Raising inside the block drops balances, records and claims together."""
    with pytest.raises(RuntimeError):
        with store.transaction([ALICE]) as tx:
            tx.write(ALICE, 500)
            tx.append(_record(ALICE, 500))
            tx.upsert_claim(ALICE, datetime(2025, 1, 15, tzinfo=UTC))
            raise RuntimeError("abort")

    assert store.get_balance(ALICE) == 0
    assert store.list_transactions(ALICE, 10) == []
    with store.transaction([ALICE]) as tx:
        assert tx.read_claim(ALICE) is None


@pytest.mark.unit
def test_unlocked_accounts_cannot_be_touched(store):
    """Reads and writes outside the locked id set are programming errors."""
    with pytest.raises(ValueError):
        with store.transaction([ALICE]) as tx:
            tx.write(BOB, 10)


@pytest.mark.unit
def test_lock_for_missing_account_reads_none(store):
    """Locking an unknown id succeeds and reads as absent."""
    with store.transaction(["nobody"]) as tx:
        assert tx.lock_and_read("nobody") is None


@pytest.mark.unit
def test_top_accounts_and_limits(store):
    """Leaderboard rows come back richest first and respect the limit."""
    with store.transaction([ALICE, BOB]) as tx:
        tx.write(ALICE, 10)
        tx.write(BOB, 20)

    assert [a.id for a in store.top_accounts(5)] == [BOB, ALICE]
    assert [a.id for a in store.top_accounts(1)] == [BOB]


@pytest.mark.unit
def test_mob_limit_matches_exact_day(store):
    """A mark only counts for the day it was recorded."""
    store.mark_mob_limit(ALICE, date(2025, 1, 15))

    assert store.check_mob_limit(ALICE, date(2025, 1, 15))
    assert not store.check_mob_limit(ALICE, date(2025, 1, 16))


@pytest.mark.unit
def test_close_is_a_no_op(store):
    """Closing the memory store keeps its state readable."""
    store.close()
    assert store.get_account(ALICE).name == "alice"


@pytest.mark.unit
def test_failed_operations_on_unknown_ids_leave_no_lock_entries(memory_ledger, fund):
    """Pays and deposits against ids with no account do not grow the lock map."""
    fund(memory_ledger, ALICE, 5)

    for i in range(50):
        assert memory_ledger.pay(ALICE, f"ghost-{i}", 1).kind is ErrorKind.RECIPIENT_NOT_FOUND
        assert memory_ledger.deposit(f"nobody-{i}", 1).kind is ErrorKind.ACCOUNT_NOT_FOUND

    assert memory_ledger.store._row_locks == {}
    assert memory_ledger.get_balance(ALICE).value == 5


@pytest.mark.unit
def test_lock_entry_lives_only_while_in_use(store):
    """A held lock still blocks a second transaction; its entry goes away afterwards."""
    with store.transaction([ALICE]):
        assert set(store._row_locks) == {ALICE}
        with pytest.raises(TransientError):
            with store.transaction([ALICE, BOB]):
                pass
        assert set(store._row_locks) == {ALICE}
        assert store._row_locks[ALICE].users == 1

    assert store._row_locks == {}
