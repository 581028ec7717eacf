"""SQLite connection primitives for the currency server DB layer.

This module owns connection creation and low-level SQLite runtime pragmas so
repository and store code can stay focused on queries and transaction intent.

Connections are opened in autocommit mode (``isolation_level=None``) and every
write scope issues an explicit ``BEGIN IMMEDIATE``. That takes SQLite's
reserved lock up front, so a read-then-write sequence inside the scope can
never interleave with another writer.
"""

from __future__ import annotations

import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

_LOCK_MESSAGES = ("database is locked", "database table is locked", "database is busy")


def get_db_path() -> Path:
    """Resolve the absolute SQLite database path from runtime configuration."""
    from currency_server.config import config

    return config.database.absolute_path


def get_lock_timeout() -> float:
    """Return the bounded lock wait, in seconds, from runtime configuration."""
    from currency_server.config import config

    return config.database.lock_timeout_seconds


def configure_connection(connection: sqlite3.Connection) -> sqlite3.Connection:
    """Apply connection-level SQLite pragmas required by the application.

    Notes:
        - ``busy_timeout`` bounds how long a writer waits for the reserved
          lock before SQLite reports ``database is locked``.
        - ``foreign_keys=ON`` keeps the sessions table tied to accounts.
    """
    connection.execute("PRAGMA foreign_keys = ON")
    connection.execute(f"PRAGMA busy_timeout = {int(get_lock_timeout() * 1000)}")
    return connection


def get_connection() -> sqlite3.Connection:
    """Create and configure a new SQLite connection."""
    db_path = get_db_path()
    db_path.parent.mkdir(parents=True, exist_ok=True)
    connection = sqlite3.connect(
        str(db_path),
        timeout=get_lock_timeout(),
        isolation_level=None,
    )
    connection.row_factory = sqlite3.Row
    return configure_connection(connection)


def is_lock_error(exc: BaseException) -> bool:
    """Return ``True`` when ``exc`` is SQLite reporting lock contention."""
    if not isinstance(exc, sqlite3.OperationalError):
        return False
    message = str(exc).lower()
    return any(fragment in message for fragment in _LOCK_MESSAGES)


@contextmanager
def connection_scope(*, write: bool = False) -> Iterator[sqlite3.Connection]:
    """Yield a configured connection with guaranteed cleanup semantics.

    Args:
        write: When True, open a ``BEGIN IMMEDIATE`` transaction, commit on
            success and roll back on exceptions.

    Yields:
        Configured SQLite connection ready for cursor operations.
    """
    connection = get_connection()
    try:
        if write:
            connection.execute("BEGIN IMMEDIATE")
        yield connection
        if write:
            connection.execute("COMMIT")
    except Exception:
        if write and connection.in_transaction:
            try:
                connection.execute("ROLLBACK")
            except sqlite3.Error:
                # Preserve the original exception while best-effort rolling back.
                pass
        raise
    finally:
        connection.close()
