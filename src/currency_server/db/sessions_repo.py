"""Session repository operations for the SQLite backend.

Sessions are opaque bearer tokens issued at login. Each row binds a token to
an account id until ``expires_at``; expired rows are ignored by lookups and
removed by :func:`cleanup_expired_sessions`.

Timestamps are stored as UTC ISO-8601 strings so they compare correctly as
text.
"""

from __future__ import annotations

from datetime import UTC, datetime

from currency_server.db.connection import connection_scope
from currency_server.db.errors import raise_read_error, raise_write_error


def _iso(moment: datetime) -> str:
    return moment.astimezone(UTC).isoformat()


def create_session(account_id: str, session_id: str, *, created_at: datetime, expires_at: datetime) -> bool:
    """Persist a new session token for ``account_id``.

    Returns:
        ``True`` when the row is written, ``False`` when the account is unknown.
    """
    try:
        with connection_scope(write=True) as conn:
            row = conn.execute("SELECT 1 FROM accounts WHERE id = ?", (account_id,)).fetchone()
            if row is None:
                return False
            conn.execute(
                """
                INSERT INTO sessions (session_id, account_id, created_at, expires_at)
                VALUES (?, ?, ?, ?)
                """,
                (session_id, account_id, _iso(created_at), _iso(expires_at)),
            )
        return True
    except Exception as exc:
        raise_write_error(
            "sessions.create_session",
            exc,
            details=f"account_id={account_id!r}",
        )


def get_session_account_id(session_id: str, *, now: datetime) -> str | None:
    """Return the account bound to an unexpired token, else ``None``."""
    try:
        with connection_scope() as conn:
            row = conn.execute(
                "SELECT account_id FROM sessions WHERE session_id = ? AND expires_at > ?",
                (session_id, _iso(now)),
            ).fetchone()
        return str(row["account_id"]) if row else None
    except Exception as exc:
        raise_read_error("sessions.get_session_account_id", exc)


def remove_session(session_id: str) -> bool:
    """Remove one session by its token."""
    try:
        with connection_scope(write=True) as conn:
            cursor = conn.execute("DELETE FROM sessions WHERE session_id = ?", (session_id,))
            return int(cursor.rowcount or 0) > 0
    except Exception as exc:
        raise_write_error("sessions.remove_session", exc)


def cleanup_expired_sessions(*, now: datetime) -> int:
    """Delete expired sessions and return how many were removed."""
    try:
        with connection_scope(write=True) as conn:
            cursor = conn.execute("DELETE FROM sessions WHERE expires_at <= ?", (_iso(now),))
            return int(cursor.rowcount or 0)
    except Exception as exc:
        raise_write_error("sessions.cleanup_expired_sessions", exc)


def count_active_sessions(*, now: datetime) -> int:
    """Return the number of unexpired sessions."""
    try:
        with connection_scope() as conn:
            row = conn.execute(
                "SELECT COUNT(*) AS active FROM sessions WHERE expires_at > ?", (_iso(now),)
            ).fetchone()
        return int(row["active"])
    except Exception as exc:
        raise_read_error("sessions.count_active_sessions", exc)
