"""Shared helpers for API route modules."""

from typing import TypeVar

from fastapi import HTTPException

from currency_server.ledger import AlreadyClaimedError, ErrorKind, LedgerResult

T = TypeVar("T")

STATUS_BY_KIND: dict[ErrorKind, int] = {
    ErrorKind.INVALID_AMOUNT: 400,
    ErrorKind.INVALID_INPUT: 400,
    ErrorKind.INSUFFICIENT_FUNDS: 400,
    ErrorKind.SENDER_NOT_FOUND: 404,
    ErrorKind.RECIPIENT_NOT_FOUND: 404,
    ErrorKind.ACCOUNT_NOT_FOUND: 404,
    ErrorKind.ALREADY_CLAIMED: 429,
    ErrorKind.LOCK_TIMEOUT: 503,
}

# Seconds a client should wait after a lock timeout.
LOCK_TIMEOUT_RETRY_AFTER = 1


def unwrap_or_raise(result: LedgerResult[T]) -> T:
    """
    Return the success value or raise the matching ``HTTPException``.

    The error body is ``{"detail": {"error": ..., "kind": ...}}``; daily-claim
    denials add ``retry_after_seconds``. Lock timeouts and daily-claim denials
    carry a ``Retry-After`` header.
    """
    if result.ok:
        return result.unwrap()

    error = result.error
    headers: dict[str, str] | None = None
    if isinstance(error, AlreadyClaimedError):
        headers = {"Retry-After": str(error.retry_after.seconds)}
    elif error.kind is ErrorKind.LOCK_TIMEOUT:
        headers = {"Retry-After": str(LOCK_TIMEOUT_RETRY_AFTER)}

    raise HTTPException(
        status_code=STATUS_BY_KIND.get(error.kind, 400),
        detail=error.to_dict(),
        headers=headers,
    )
