"""Concurrency tests: opposite-direction payments and bounded lock waits."""

import sqlite3
import threading
from concurrent.futures import ThreadPoolExecutor

import pytest

from currency_server.config import config
from currency_server.ledger import ErrorKind
from tests.constants import ALICE, BOB


def _run_crossing_pays(ledger, rounds: int) -> list:
    barrier = threading.Barrier(4)

    def worker(sender: str, recipient: str) -> list:
        barrier.wait()
        return [ledger.pay(sender, recipient, 1) for _ in range(rounds)]

    with ThreadPoolExecutor(max_workers=4) as pool:
        futures = [
            pool.submit(worker, ALICE, BOB),
            pool.submit(worker, BOB, ALICE),
            pool.submit(worker, ALICE, BOB),
            pool.submit(worker, BOB, ALICE),
        ]
        return [result for future in futures for result in future.result()]


@pytest.mark.slow
def test_crossing_pays_do_not_deadlock_or_lose_updates(ledger, fund):
    """Concurrent A->B and B->A pays all commit and balances net out exactly."""
    fund(ledger, ALICE, 1000)
    fund(ledger, BOB, 1000)

    results = _run_crossing_pays(ledger, rounds=25)

    assert all(result.ok for result in results), [r.error for r in results if not r.ok]
    assert ledger.get_balance(ALICE).unwrap() == 1000
    assert ledger.get_balance(BOB).unwrap() == 1000
    assert len(ledger.history(ALICE, 200).unwrap()) == 1 + 100


@pytest.mark.slow
def test_concurrent_withdrawals_never_overdraw(ledger, fund):
    """Racing withdrawals against one account never drive it negative."""
    fund(ledger, ALICE, 10)

    with ThreadPoolExecutor(max_workers=8) as pool:
        results = list(pool.map(lambda _: ledger.withdraw(ALICE, 1, 1), range(25)))

    assert sum(1 for r in results if r.ok) == 10
    assert all(r.kind is ErrorKind.INSUFFICIENT_FUNDS for r in results if not r.ok)
    assert ledger.get_balance(ALICE).unwrap() == 0


@pytest.mark.unit
def test_memory_lock_timeout_surfaces_transient_error(memory_ledger, fund):
    """A pay that cannot get its row locks in time aborts with LockTimeout."""
    fund(memory_ledger, ALICE, 100)
    fund(memory_ledger, BOB)

    with memory_ledger.store.transaction([BOB]):
        result = memory_ledger.pay(ALICE, BOB, 10)

    assert result.kind is ErrorKind.LOCK_TIMEOUT
    assert result.error.retryable is True
    assert memory_ledger.get_balance(ALICE).unwrap() == 100
    assert memory_ledger.get_balance(BOB).unwrap() == 0
    assert memory_ledger.pay(ALICE, BOB, 10).ok


@pytest.mark.db
def test_sqlite_lock_timeout_surfaces_transient_error(sqlite_ledger, fund, temp_db_path, monkeypatch):
    """A writer holding the database lock makes ledger writes time out cleanly."""
    fund(sqlite_ledger, ALICE, 100)
    monkeypatch.setattr(config.database, "lock_timeout_seconds", 0.1)

    blocker = sqlite3.connect(str(temp_db_path), isolation_level=None)
    try:
        blocker.execute("BEGIN IMMEDIATE")
        result = sqlite_ledger.deposit(ALICE, 10)
    finally:
        blocker.execute("ROLLBACK")
        blocker.close()

    assert result.kind is ErrorKind.LOCK_TIMEOUT
    assert sqlite_ledger.get_balance(ALICE).unwrap() == 100
    assert sqlite_ledger.deposit(ALICE, 10).unwrap().new_balance == 110
