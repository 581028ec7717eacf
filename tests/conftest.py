"""
Shared pytest fixtures for the currency server test suite.

This module provides fixtures that are automatically available to all test files:
- Temporary SQLite databases wired through ``use_test_database``
- A controllable clock for reset-boundary tests
- Ledgers on both store backends
- FastAPI TestClient instances built around an injected ledger

Every fixture is function-scoped so tests never share ledger state.
"""

import shutil
import tempfile
from collections.abc import Callable, Generator
from datetime import datetime
from pathlib import Path
from zoneinfo import ZoneInfo

import pytest
from fastapi.testclient import TestClient

from currency_server.api.server import create_app
from currency_server.config import LedgerSettings, ServerConfig, use_test_database
from currency_server.db import schema
from currency_server.ledger import Ledger, MemoryLedgerStore, SQLiteLedgerStore
from tests.constants import ALICE, BOB, BERLIN

# ============================================================================
# DATABASE FIXTURES
# ============================================================================


@pytest.fixture(scope="function")
def temp_db_path() -> Generator[Path, None, None]:
    """
    Create a temporary database file for testing.

    Uses the config system's use_test_database context manager so every
    connection opened during the test points at the temporary file.

    Yields:
        Path to temporary database file
    """
    temp_dir = tempfile.mkdtemp()
    temp_db = Path(temp_dir) / "test_currency.db"

    with use_test_database(temp_db):
        yield temp_db

    shutil.rmtree(temp_dir, ignore_errors=True)


@pytest.fixture(scope="function")
def test_db(temp_db_path: Path) -> Generator[None, None, None]:
    """Initialize a test database with schema but no accounts."""
    schema.init_database()
    yield


# ============================================================================
# CLOCK AND LEDGER FIXTURES
# ============================================================================


class FixedClock:
    """Callable clock that tests move explicitly."""

    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def set_local(self, *args: int) -> None:
        """Set the clock to a wall-clock time in Europe/Berlin."""
        self.now = datetime(*args, tzinfo=ZoneInfo(BERLIN))


@pytest.fixture(scope="function")
def clock() -> FixedClock:
    """Clock fixed at 2025-01-15 12:00 Berlin time."""
    return FixedClock(datetime(2025, 1, 15, 12, 0, tzinfo=ZoneInfo(BERLIN)))


@pytest.fixture(scope="function")
def memory_ledger(clock: FixedClock) -> Ledger:
    """Ledger on the in-process store with a short lock timeout."""
    return Ledger(MemoryLedgerStore(lock_timeout=0.5), LedgerSettings(), clock=clock)


@pytest.fixture(scope="function")
def sqlite_ledger(test_db, clock: FixedClock) -> Ledger:
    """Ledger on a temporary SQLite database."""
    return Ledger(SQLiteLedgerStore(), LedgerSettings(), clock=clock)


@pytest.fixture(scope="function", params=["memory", "sqlite"])
def ledger(request, clock: FixedClock) -> Ledger:
    """Ledger parametrized over both store backends."""
    if request.param == "memory":
        return request.getfixturevalue("memory_ledger")
    return request.getfixturevalue("sqlite_ledger")


@pytest.fixture(scope="function")
def fund() -> Callable[..., None]:
    """
    Return a helper that creates an account and deposits an opening balance.

    Usage:
        fund(ledger, ALICE, 100)
    """

    def _fund(ledger: Ledger, account_id: str, amount: int = 0, name: str | None = None) -> None:
        assert ledger.login(account_id, name or account_id).ok
        if amount:
            assert ledger.deposit(account_id, amount).ok

    return _fund


# ============================================================================
# API FIXTURES
# ============================================================================


@pytest.fixture(scope="function")
def server_config() -> ServerConfig:
    """Default configuration with an open IP allowlist."""
    return ServerConfig()


@pytest.fixture(scope="function")
def test_client(memory_ledger: Ledger, server_config: ServerConfig) -> TestClient:
    """FastAPI TestClient around the memory ledger."""
    app = create_app(memory_ledger, cfg=server_config)
    return TestClient(app)


@pytest.fixture(scope="function")
def login(test_client: TestClient) -> Callable[[str, str], dict[str, str]]:
    """
    Return a helper that logs in and yields the Authorization header.

    Usage:
        headers = login(ALICE, "alice")
        test_client.get("/api/currency/balance", headers=headers)
    """

    def _login(account_id: str, name: str) -> dict[str, str]:
        response = test_client.post(
            "/api/currency/login", json={"uuid": account_id, "name": name}
        )
        assert response.status_code == 200, response.text
        return {"Authorization": f"Bearer {response.json()['token']}"}

    return _login


@pytest.fixture(scope="function")
def funded_accounts(memory_ledger: Ledger, fund) -> dict[str, int]:
    """Alice with 1200 and Bob with 100 on the memory ledger."""
    fund(memory_ledger, ALICE, 1200, name="alice")
    fund(memory_ledger, BOB, 100, name="bob")
    return {ALICE: 1200, BOB: 100}
