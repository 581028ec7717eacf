"""Schema creation and invariant trigger wiring for the SQLite backend.

The schema layer is isolated from ledger/query code so schema changes are
reviewable without wading through unrelated repository logic.

Tables:
    accounts               one row per player: id, display name, balance
    currency_transactions  append-only transaction log
    daily_rewards          last daily-claim timestamp per claim key
    mob_limit_reached      last date the mob-drop limit was hit, per account
    sessions               bearer tokens issued at login

``accounts.balance`` deliberately carries no CHECK constraint: non-negative
balances are an invariant of the ledger operations, not of the store.
"""

from __future__ import annotations

import logging
import sqlite3

from currency_server.db.connection import get_connection

logger = logging.getLogger(__name__)

TABLE_STATEMENTS = (
    """
    CREATE TABLE IF NOT EXISTS accounts (
        id TEXT PRIMARY KEY,
        name TEXT NOT NULL,
        balance INTEGER NOT NULL DEFAULT 0,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS currency_transactions (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        account_id TEXT NOT NULL,
        action TEXT NOT NULL CHECK (action IN ('pay', 'deposit', 'withdraw', 'daily')),
        amount INTEGER NOT NULL,
        counterparty_id TEXT,
        denomination INTEGER,
        count INTEGER,
        balance_after INTEGER NOT NULL,
        timestamp TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS daily_rewards (
        claim_key TEXT PRIMARY KEY,
        last_claim_at TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS mob_limit_reached (
        account_id TEXT PRIMARY KEY,
        date_reached TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS sessions (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        session_id TEXT UNIQUE NOT NULL,
        account_id TEXT NOT NULL REFERENCES accounts(id),
        created_at TEXT NOT NULL,
        expires_at TEXT NOT NULL
    )
    """,
)

# Hot-path index rationale:
# 1. history lookups match either leg of a record and are ordered newest first.
# 2. the leaderboard sorts the whole accounts table by balance.
# 3. session validation and cleanup filter by account and expiry.
HOT_PATH_INDEX_STATEMENTS = (
    (
        "CREATE INDEX IF NOT EXISTS idx_currency_transactions_account_id "
        "ON currency_transactions(account_id, id DESC)"
    ),
    (
        "CREATE INDEX IF NOT EXISTS idx_currency_transactions_counterparty_id "
        "ON currency_transactions(counterparty_id, id DESC)"
    ),
    "CREATE INDEX IF NOT EXISTS idx_accounts_balance ON accounts(balance DESC, name)",
    "CREATE INDEX IF NOT EXISTS idx_sessions_account_id ON sessions(account_id)",
    "CREATE INDEX IF NOT EXISTS idx_sessions_expires_at ON sessions(expires_at)",
)


def create_transaction_log_triggers(conn: sqlite3.Connection) -> None:
    """Create triggers that make ``currency_transactions`` append-only.

    The triggers protect the log for both Python helper paths and direct SQL
    writes from administrative tooling.
    """
    cursor = conn.cursor()
    cursor.execute("""
        CREATE TRIGGER IF NOT EXISTS currency_transactions_no_update
        BEFORE UPDATE ON currency_transactions
        BEGIN
            SELECT RAISE(ABORT, 'currency_transactions is append-only');
        END;
    """)
    cursor.execute("""
        CREATE TRIGGER IF NOT EXISTS currency_transactions_no_delete
        BEFORE DELETE ON currency_transactions
        BEGIN
            SELECT RAISE(ABORT, 'currency_transactions is append-only');
        END;
    """)


def init_database() -> None:
    """Create all tables, indexes and triggers if they do not exist.

    Safe to call repeatedly. Switches the database to WAL journaling so
    balance reads do not wait behind an in-flight ledger transaction.
    """
    conn = get_connection()
    try:
        conn.execute("PRAGMA journal_mode = WAL")
        conn.execute("BEGIN IMMEDIATE")
        for statement in TABLE_STATEMENTS:
            conn.execute(statement)
        for statement in HOT_PATH_INDEX_STATEMENTS:
            conn.execute(statement)
        create_transaction_log_triggers(conn)
        conn.execute("COMMIT")
    except Exception:
        if conn.in_transaction:
            conn.execute("ROLLBACK")
        raise
    finally:
        conn.close()
    logger.info("Database schema ready")
