"""Ledger package — the transactional currency engine.

Every balance mutation in the server goes through this package. Balances are
the source of truth; the transaction log records each change in the same
atomic unit that makes it.

Public surface
--------------
- :class:`Ledger`           — facade returning :class:`LedgerResult` for every operation.
- :class:`LedgerStore`      — abstract transactional store; adapters:
  :class:`SQLiteLedgerStore`, :class:`MemoryLedgerStore`.
- :class:`ErrorKind` and the :class:`LedgerError` family — typed failures.
- :class:`ResetSchedule`    — daily-claim reset boundary.

Usage example
-------------
::

    from currency_server.ledger import ErrorKind, Ledger, MemoryLedgerStore

    ledger = Ledger(MemoryLedgerStore())
    ledger.login("uuid-alice", "alice")
    ledger.deposit("uuid-alice", 500)

    result = ledger.pay("uuid-alice", "uuid-bob", 100)
    if result.kind is ErrorKind.RECIPIENT_NOT_FOUND:
        ...
"""

from currency_server.ledger.daily import ClaimState, ResetSchedule
from currency_server.ledger.errors import (
    AlreadyClaimedError,
    BusinessRuleError,
    ErrorKind,
    LedgerError,
    NotFoundError,
    TransientError,
    ValidationError,
)
from currency_server.ledger.memory_store import MemoryLedgerStore
from currency_server.ledger.result import LedgerResult
from currency_server.ledger.service import Ledger, build_store
from currency_server.ledger.sqlite_store import SQLiteLedgerStore
from currency_server.ledger.store import LedgerStore, LedgerTransaction
from currency_server.ledger.types import (
    Account,
    BalanceReceipt,
    DailyClaimReceipt,
    PayReceipt,
    TransactionAction,
    TransactionRecord,
    WithdrawReceipt,
)

__all__ = [
    "Account",
    "AlreadyClaimedError",
    "BalanceReceipt",
    "BusinessRuleError",
    "ClaimState",
    "DailyClaimReceipt",
    "ErrorKind",
    "Ledger",
    "LedgerError",
    "LedgerResult",
    "LedgerStore",
    "LedgerTransaction",
    "MemoryLedgerStore",
    "NotFoundError",
    "PayReceipt",
    "ResetSchedule",
    "SQLiteLedgerStore",
    "TransactionAction",
    "TransactionRecord",
    "TransientError",
    "ValidationError",
    "WithdrawReceipt",
    "build_store",
]
