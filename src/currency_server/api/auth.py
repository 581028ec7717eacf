"""Session management and caller checks.

Login issues an opaque bearer token bound to one account id for
``session.ttl_minutes``. Tokens live in the ``sessions`` table on the SQLite
backend and in process memory on the memory backend; both registries expose
the same interface.

Two FastAPI dependencies guard the currency routes:

- :func:`verify_ip` enforces ``security.allowed_ips`` (empty list allows all).
- :func:`validate_session` resolves ``Authorization: Bearer <token>`` to the
  caller's account id.
"""

from __future__ import annotations

import logging
import threading
import uuid
from abc import ABC, abstractmethod
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

from fastapi import HTTPException, Request

from currency_server.db import sessions_repo
from currency_server.db.connection import is_lock_error
from currency_server.db.errors import DatabaseError
from currency_server.ledger import TransientError

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def _utc_now() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True, slots=True)
class Session:
    token: str
    account_id: str
    expires_at: datetime


class SessionRegistry(ABC):
    """Issues and resolves session tokens."""

    def __init__(self, ttl_minutes: int = 10, *, clock: Clock = _utc_now) -> None:
        self.ttl = timedelta(minutes=ttl_minutes)
        self.clock = clock

    def issue(self, account_id: str) -> Session:
        """Create a new token for an existing account."""
        now = self.clock()
        session = Session(
            token=str(uuid.uuid4()),
            account_id=account_id,
            expires_at=(now + self.ttl).astimezone(UTC),
        )
        self._store(session, now)
        return session

    @abstractmethod
    def _store(self, session: Session, now: datetime) -> None: ...

    @abstractmethod
    def resolve(self, token: str) -> str | None:
        """Return the account id for an unexpired token, else ``None``."""

    @abstractmethod
    def revoke(self, token: str) -> bool:
        """End a session; ``False`` when the token was not known."""

    @abstractmethod
    def active_count(self) -> int: ...


@contextmanager
def _session_write() -> Iterator[None]:
    """Report SQLite lock contention on the sessions table as a transient failure."""
    try:
        yield
    except DatabaseError as exc:
        if is_lock_error(exc.__cause__):
            logger.warning("Lock wait exceeded while writing sessions")
            raise TransientError() from exc
        raise


class SQLiteSessionRegistry(SessionRegistry):
    """Sessions persisted in the ``sessions`` table."""

    def _store(self, session: Session, now: datetime) -> None:
        with _session_write():
            sessions_repo.cleanup_expired_sessions(now=now)
            created = sessions_repo.create_session(
                session.account_id,
                session.token,
                created_at=now,
                expires_at=session.expires_at,
            )
        if not created:
            raise ValueError(f"unknown account {session.account_id!r}")

    def resolve(self, token: str) -> str | None:
        return sessions_repo.get_session_account_id(token, now=self.clock())

    def revoke(self, token: str) -> bool:
        with _session_write():
            return sessions_repo.remove_session(token)

    def active_count(self) -> int:
        return sessions_repo.count_active_sessions(now=self.clock())


class MemorySessionRegistry(SessionRegistry):
    """Sessions held in process memory (session_id -> Session)."""

    def __init__(self, ttl_minutes: int = 10, *, clock: Clock = _utc_now) -> None:
        super().__init__(ttl_minutes, clock=clock)
        self._sessions: dict[str, Session] = {}
        self._lock = threading.Lock()

    def _store(self, session: Session, now: datetime) -> None:
        with self._lock:
            expired = [t for t, s in self._sessions.items() if s.expires_at <= now]
            for token in expired:
                del self._sessions[token]
            self._sessions[session.token] = session

    def resolve(self, token: str) -> str | None:
        with self._lock:
            session = self._sessions.get(token)
        if session is None or session.expires_at <= self.clock():
            return None
        return session.account_id

    def revoke(self, token: str) -> bool:
        with self._lock:
            return self._sessions.pop(token, None) is not None

    def active_count(self) -> int:
        now = self.clock()
        with self._lock:
            return sum(1 for s in self._sessions.values() if s.expires_at > now)


def build_session_registry(backend: str, ttl_minutes: int, *, clock: Clock = _utc_now) -> SessionRegistry:
    if backend == "memory":
        return MemorySessionRegistry(ttl_minutes, clock=clock)
    return SQLiteSessionRegistry(ttl_minutes, clock=clock)


# ============================================================================
# REQUEST DEPENDENCIES
# ============================================================================


def client_ip(request: Request) -> str:
    """Caller address: first ``X-Forwarded-For`` entry, else the socket peer."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        ip = forwarded.split(",")[0].strip()
    else:
        ip = request.client.host if request.client else ""
    return ip.removeprefix("::ffff:")


def verify_ip(request: Request) -> str:
    """Reject callers outside ``security.allowed_ips`` with 403."""
    ip = client_ip(request)
    allowed = request.app.state.allowed_ips
    if allowed and ip not in allowed:
        logger.warning("Blocked request from IP: %s (%s)", ip, request.url.path)
        raise HTTPException(
            status_code=403,
            detail={"error": "Forbidden: Your IP is not allowed.", "kind": "Forbidden"},
        )
    return ip


def bearer_token(request: Request) -> str:
    """Extract the token from ``Authorization: Bearer <token>`` or raise 401."""
    header = request.headers.get("authorization")
    if not header:
        raise HTTPException(
            status_code=401,
            detail={"error": "Missing Authorization header", "kind": "Unauthorized"},
        )
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise HTTPException(
            status_code=401,
            detail={"error": "Invalid Authorization format", "kind": "Unauthorized"},
        )
    return token.strip()


def validate_session(request: Request) -> str:
    """Resolve the bearer token to an account id or raise 401."""
    account_id = request.app.state.sessions.resolve(bearer_token(request))
    if account_id is None:
        raise HTTPException(
            status_code=401,
            detail={"error": "Invalid or expired session", "kind": "Unauthorized"},
        )
    return account_id
