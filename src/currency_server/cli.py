"""
Command-line interface for the Currency Server.

Provides CLI commands for server management:
- init-db: Initialize the database schema
- run: Start the API server
- balance: Print one account's balance
- top: Print the leaderboard
- history: Print an account's most recent transactions
- config: Print the effective configuration

Usage:
    currency-server init-db
    currency-server run [--port PORT] [--host HOST]
    currency-server balance <account_id>
    currency-server top [--limit N]
    currency-server history <account_id> [--limit N]
    currency-server config

Every command validates the configuration first and exits non-zero when it
reports problems.
"""

import argparse
import sys

from currency_server.config import config, print_config_summary, validate_config
from currency_server.logging_setup import configure_logging


def _check_config() -> bool:
    problems = validate_config(config)
    for problem in problems:
        print(f"Configuration error: {problem}", file=sys.stderr)
    return not problems


def _build_ledger():
    from currency_server.ledger import Ledger

    return Ledger.from_config(config)


def _print_failure(result) -> int:
    print(f"Error: {result.error.message} ({result.error.kind.value})", file=sys.stderr)
    return 1


def cmd_init_db(args: argparse.Namespace) -> int:
    """
    Initialize the database schema.

    Returns:
        0 on success, 1 on error
    """
    from currency_server.db.schema import init_database

    if config.database.backend == "memory":
        print("Memory backend configured; nothing to initialize.")
        return 0

    try:
        init_database()
        print(f"Database initialized at {config.database.absolute_path}")
        return 0
    except Exception as e:
        print(f"Error initializing database: {e}", file=sys.stderr)
        return 1


def cmd_run(args: argparse.Namespace) -> int:
    """
    Run the API server.

    Configuration Priority:
        1. CLI arguments (--port, --host)
        2. Environment variables (CURRENCY_PORT, CURRENCY_HOST)
        3. config/server.ini, then defaults

    Returns:
        0 on clean shutdown (Ctrl+C), 1 on error during startup
    """
    from currency_server.api.server import start_server

    try:
        start_server(host=getattr(args, "host", None), port=getattr(args, "port", None))
        return 0
    except KeyboardInterrupt:
        print("\nServer stopped.")
        return 0
    except Exception as e:
        print(f"Error starting server: {e}", file=sys.stderr)
        return 1


def cmd_balance(args: argparse.Namespace) -> int:
    """Print the balance of one account."""
    result = _build_ledger().get_balance(args.account_id)
    if not result.ok:
        return _print_failure(result)
    print(f"{args.account_id}: {result.value:,}")
    return 0


def cmd_top(args: argparse.Namespace) -> int:
    """Print the richest accounts."""
    result = _build_ledger().top(args.limit)
    if not result.ok:
        return _print_failure(result)
    if not result.value:
        print("No accounts yet.")
        return 0
    for rank, account in enumerate(result.value, start=1):
        print(f"{rank:>3}. {account.name:<24} {account.balance:>15,}")
    return 0


def cmd_history(args: argparse.Namespace) -> int:
    """Print recent transactions involving one account, newest first."""
    result = _build_ledger().history(args.account_id, args.limit)
    if not result.ok:
        return _print_failure(result)
    if not result.value:
        print("No transactions.")
        return 0
    for record in result.value:
        line = (
            f"{record.timestamp.isoformat()}  {record.action.value:<8} "
            f"{record.amount:>12,}  balance_after={record.balance_after:,}"
        )
        if record.counterparty_id:
            line += f"  {record.account_id} -> {record.counterparty_id}"
        if record.count is not None:
            line += f"  {record.count}x{record.denomination}"
        print(line)
    return 0


def cmd_config(args: argparse.Namespace) -> int:
    """Print the effective configuration."""
    print_config_summary()
    return 0


def main() -> int:
    """Main entry point for the CLI."""
    parser = argparse.ArgumentParser(
        prog="currency-server",
        description="Currency Server - transactional ledger for the game economy",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # init-db command
    init_parser = subparsers.add_parser(
        "init-db",
        help="Initialize the database schema",
        description="Create the ledger tables, indexes and transaction-log triggers.",
    )
    init_parser.set_defaults(func=cmd_init_db)

    # run command
    run_parser = subparsers.add_parser(
        "run",
        help="Run the currency API server",
        description="Start the FastAPI server with uvicorn.",
    )
    run_parser.add_argument(
        "--port",
        "-p",
        type=int,
        help="API server port (default: 5000, or CURRENCY_PORT env var)",
    )
    run_parser.add_argument(
        "--host",
        type=str,
        help="Host to bind the server to (default: 0.0.0.0, or CURRENCY_HOST env var)",
    )
    run_parser.set_defaults(func=cmd_run)

    # balance command
    balance_parser = subparsers.add_parser("balance", help="Show an account balance")
    balance_parser.add_argument("account_id", help="Account id (player UUID)")
    balance_parser.set_defaults(func=cmd_balance)

    # top command
    top_parser = subparsers.add_parser("top", help="Show the richest accounts")
    top_parser.add_argument("--limit", "-n", type=int, default=None, help="Number of rows")
    top_parser.set_defaults(func=cmd_top)

    # history command
    history_parser = subparsers.add_parser("history", help="Show recent transactions")
    history_parser.add_argument("account_id", help="Account id (player UUID)")
    history_parser.add_argument("--limit", "-n", type=int, default=20, help="Number of rows")
    history_parser.set_defaults(func=cmd_history)

    # config command
    config_parser = subparsers.add_parser("config", help="Print the effective configuration")
    config_parser.set_defaults(func=cmd_config)

    args = parser.parse_args()

    if args.command is None:
        parser.print_help()
        return 0

    configure_logging(config.logging)

    if args.command != "config" and not _check_config():
        return 1

    try:
        return args.func(args)
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
