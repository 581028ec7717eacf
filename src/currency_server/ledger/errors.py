"""Ledger error taxonomy.

Every failure a ledger operation can report belongs to one of four families:

- :class:`ValidationError`   — malformed or out-of-range input, nothing touched.
- :class:`NotFoundError`     — a referenced account does not exist.
- :class:`BusinessRuleError` — the request is well formed but not allowed
  right now (insufficient funds, daily reward already claimed).
- :class:`TransientError`    — lock contention; the operation aborted cleanly
  and may be retried.

Each error carries an :class:`ErrorKind` so callers branch on the kind rather
than matching message text. Operations raise these inside a store transaction
(which rolls the transaction back); :class:`~currency_server.ledger.service.Ledger`
catches them and returns a :class:`~currency_server.ledger.result.LedgerResult`.
"""

from __future__ import annotations

from enum import Enum

from currency_server.ledger.types import RetryAfter


class ErrorKind(str, Enum):
    """Stable, machine-readable failure identifiers."""

    INVALID_AMOUNT = "InvalidAmount"
    INVALID_INPUT = "InvalidInput"
    SENDER_NOT_FOUND = "SenderNotFound"
    RECIPIENT_NOT_FOUND = "RecipientNotFound"
    ACCOUNT_NOT_FOUND = "AccountNotFound"
    INSUFFICIENT_FUNDS = "InsufficientFunds"
    ALREADY_CLAIMED = "AlreadyClaimed"
    LOCK_TIMEOUT = "LockTimeout"


class LedgerError(Exception):
    """Base class for every ledger operation failure.

    Attributes:
        kind: The specific failure kind.
        message: Human-readable description, safe to show to players.
    """

    retryable = False

    def __init__(self, kind: ErrorKind, message: str) -> None:
        super().__init__(message)
        self.kind = kind
        self.message = message

    def to_dict(self) -> dict:
        return {"error": self.message, "kind": self.kind.value}


class ValidationError(LedgerError):
    """Caller supplied malformed input."""


class NotFoundError(LedgerError):
    """A referenced account is absent."""


class BusinessRuleError(LedgerError):
    """A well-formed request violates a ledger rule."""


class AlreadyClaimedError(BusinessRuleError):
    """Daily reward was already claimed in the current reset period."""

    def __init__(self, retry_after: RetryAfter) -> None:
        super().__init__(
            ErrorKind.ALREADY_CLAIMED,
            "You already claimed your daily reward. "
            f"Next reset in {retry_after.hours}h {retry_after.minutes}m.",
        )
        self.retry_after = retry_after

    def to_dict(self) -> dict:
        payload = super().to_dict()
        payload["retry_after_seconds"] = self.retry_after.seconds
        return payload


class TransientError(LedgerError):
    """Locks could not be acquired in time; nothing was committed.

    Safe to retry for reads, pay, deposit and withdraw. A daily claim must
    re-check current state instead of being retried blindly.
    """

    retryable = True

    def __init__(self, message: str = "Ledger is busy, try again shortly.") -> None:
        super().__init__(ErrorKind.LOCK_TIMEOUT, message)


# ── Constructors for the common cases ─────────────────────────────────────────


def invalid_amount(message: str = "Amount must be a positive whole number.") -> ValidationError:
    return ValidationError(ErrorKind.INVALID_AMOUNT, message)


def invalid_input(message: str) -> ValidationError:
    return ValidationError(ErrorKind.INVALID_INPUT, message)


def sender_not_found() -> NotFoundError:
    return NotFoundError(ErrorKind.SENDER_NOT_FOUND, "Sender not found")


def recipient_not_found() -> NotFoundError:
    return NotFoundError(ErrorKind.RECIPIENT_NOT_FOUND, "Recipient not found")


def account_not_found() -> NotFoundError:
    return NotFoundError(ErrorKind.ACCOUNT_NOT_FOUND, "Player not found")


def insufficient_funds() -> BusinessRuleError:
    return BusinessRuleError(ErrorKind.INSUFFICIENT_FUNDS, "Insufficient funds")
