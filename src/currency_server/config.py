"""
Server configuration management.

This module handles loading and accessing server configuration from multiple sources
with a clear priority order:

    1. Environment variables (highest priority) - for containerized deployments
    2. Config file (config/server.ini) - for static deployments
    3. Built-in defaults (lowest priority) - sensible fallbacks

Configuration is loaded once at module import time and cached. The ServerConfig
dataclass provides typed access to all settings.

Usage:
    from currency_server.config import config

    print(config.server.port)
    print(config.ledger.daily_reward_amount)
    print(config.is_production)

Environment Variable Mapping:
    CURRENCY_HOST                 -> server.host
    CURRENCY_PORT                 -> server.port
    CURRENCY_PRODUCTION           -> security.production
    CURRENCY_ALLOWED_IPS          -> security.allowed_ips
    CURRENCY_CORS_ORIGINS         -> security.cors_origins
    CURRENCY_SESSION_TTL_MINUTES  -> session.ttl_minutes
    CURRENCY_DB_BACKEND           -> database.backend
    CURRENCY_DB_PATH              -> database.path
    CURRENCY_LOCK_TIMEOUT_SECONDS -> database.lock_timeout_seconds
    CURRENCY_LOG_LEVEL            -> logging.level
    CURRENCY_LOG_FORMAT           -> logging.format
    CURRENCY_DAILY_REWARD         -> ledger.daily_reward_amount
    CURRENCY_RESET_TIME           -> ledger.reset_hour / ledger.reset_minute ("HH:MM")
    CURRENCY_TIMEZONE             -> ledger.timezone
    CURRENCY_DEFAULT_DENOMINATION -> ledger.default_denomination
"""

import configparser
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Literal
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

# =============================================================================
# PATH CONFIGURATION
# =============================================================================

# Project root directory (contains src/, config/, data/)
PROJECT_ROOT = Path(__file__).parent.parent.parent

# Config file paths
CONFIG_DIR = PROJECT_ROOT / "config"
CONFIG_FILE = CONFIG_DIR / "server.ini"
CONFIG_EXAMPLE = CONFIG_DIR / "server.example.ini"


# =============================================================================
# CONFIGURATION DATACLASSES
# =============================================================================


@dataclass
class ServerSettings:
    """Network server configuration."""

    host: str = "0.0.0.0"  # nosec B104 - intentional for server binding
    port: int = 5000


@dataclass
class SecuritySettings:
    """Security-related configuration.

    ``allowed_ips`` is the caller allowlist for authenticated currency routes.
    An empty list disables the check (development default).
    """

    production: bool = False
    allowed_ips: list[str] = field(default_factory=list)
    cors_origins: list[str] = field(default_factory=list)


@dataclass
class SessionSettings:
    """Session token configuration."""

    ttl_minutes: int = 10


@dataclass
class DatabaseSettings:
    """Persistence backend configuration."""

    backend: Literal["sqlite", "memory"] = "sqlite"
    path: str = "data/currency.db"
    lock_timeout_seconds: float = 5.0

    @property
    def absolute_path(self) -> Path:
        """Get absolute path to database file."""
        p = Path(self.path)
        if p.is_absolute():
            return p
        return PROJECT_ROOT / p


@dataclass
class LoggingSettings:
    """Logging configuration."""

    level: str = "INFO"
    format: Literal["simple", "detailed", "json"] = "detailed"


@dataclass
class LedgerSettings:
    """Economy constants used by the ledger engine."""

    daily_reward_amount: int = 50
    reset_hour: int = 6
    reset_minute: int = 30
    timezone: str = "Europe/Berlin"
    default_denomination: int = 1000
    top_limit: int = 10


@dataclass
class ServerConfig:
    """
    Complete server configuration.

    This is the main configuration object that aggregates all settings sections.
    Access via the module-level `config` singleton.
    """

    server: ServerSettings = field(default_factory=ServerSettings)
    security: SecuritySettings = field(default_factory=SecuritySettings)
    session: SessionSettings = field(default_factory=SessionSettings)
    database: DatabaseSettings = field(default_factory=DatabaseSettings)
    logging: LoggingSettings = field(default_factory=LoggingSettings)
    ledger: LedgerSettings = field(default_factory=LedgerSettings)

    @property
    def is_production(self) -> bool:
        """Convenience property for production mode check."""
        return self.security.production


# =============================================================================
# CONFIGURATION LOADING
# =============================================================================


def _parse_bool(value: str) -> bool:
    """Parse a string value to boolean."""
    return value.lower() in ("true", "yes", "1", "on", "enabled")


def _parse_list(value: str) -> list[str]:
    """Parse a comma-separated string to list, stripping whitespace."""
    if not value or value.strip() == "":
        return []
    return [item.strip() for item in value.split(",") if item.strip()]


def _parse_reset_time(value: str) -> tuple[int, int]:
    """Parse an ``HH:MM`` reset time string."""
    hour_text, _, minute_text = value.strip().partition(":")
    return int(hour_text), int(minute_text or "0")


def _load_from_ini(parser: configparser.ConfigParser, cfg: ServerConfig) -> None:
    """Load configuration from parsed INI file into ServerConfig."""
    # Server section
    if parser.has_section("server"):
        if parser.has_option("server", "host"):
            cfg.server.host = parser.get("server", "host")
        if parser.has_option("server", "port"):
            cfg.server.port = parser.getint("server", "port")

    # Security section
    if parser.has_section("security"):
        if parser.has_option("security", "production"):
            cfg.security.production = _parse_bool(parser.get("security", "production"))
        if parser.has_option("security", "allowed_ips"):
            cfg.security.allowed_ips = _parse_list(parser.get("security", "allowed_ips"))
        if parser.has_option("security", "cors_origins"):
            cfg.security.cors_origins = _parse_list(parser.get("security", "cors_origins"))

    # Session section
    if parser.has_section("session"):
        if parser.has_option("session", "ttl_minutes"):
            cfg.session.ttl_minutes = parser.getint("session", "ttl_minutes")

    # Database section
    if parser.has_section("database"):
        if parser.has_option("database", "backend"):
            val = parser.get("database", "backend").lower()
            if val in ("sqlite", "memory"):
                cfg.database.backend = val  # type: ignore[assignment]
        if parser.has_option("database", "path"):
            cfg.database.path = parser.get("database", "path")
        if parser.has_option("database", "lock_timeout_seconds"):
            cfg.database.lock_timeout_seconds = parser.getfloat(
                "database", "lock_timeout_seconds"
            )

    # Logging section
    if parser.has_section("logging"):
        if parser.has_option("logging", "level"):
            cfg.logging.level = parser.get("logging", "level").upper()
        if parser.has_option("logging", "format"):
            val = parser.get("logging", "format").lower()
            if val in ("simple", "detailed", "json"):
                cfg.logging.format = val  # type: ignore[assignment]

    # Ledger section
    if parser.has_section("ledger"):
        if parser.has_option("ledger", "daily_reward_amount"):
            cfg.ledger.daily_reward_amount = parser.getint("ledger", "daily_reward_amount")
        if parser.has_option("ledger", "reset_time"):
            cfg.ledger.reset_hour, cfg.ledger.reset_minute = _parse_reset_time(
                parser.get("ledger", "reset_time")
            )
        if parser.has_option("ledger", "timezone"):
            cfg.ledger.timezone = parser.get("ledger", "timezone")
        if parser.has_option("ledger", "default_denomination"):
            cfg.ledger.default_denomination = parser.getint("ledger", "default_denomination")
        if parser.has_option("ledger", "top_limit"):
            cfg.ledger.top_limit = parser.getint("ledger", "top_limit")


def _apply_env_overrides(cfg: ServerConfig) -> None:
    """Apply environment variable overrides to configuration."""
    # Server settings
    if env_host := os.getenv("CURRENCY_HOST"):
        cfg.server.host = env_host
    if env_port := os.getenv("CURRENCY_PORT"):
        cfg.server.port = int(env_port)

    # Security settings
    if env_production := os.getenv("CURRENCY_PRODUCTION"):
        cfg.security.production = _parse_bool(env_production)
    if env_ips := os.getenv("CURRENCY_ALLOWED_IPS"):
        cfg.security.allowed_ips = _parse_list(env_ips)
    if env_cors := os.getenv("CURRENCY_CORS_ORIGINS"):
        cfg.security.cors_origins = _parse_list(env_cors)

    # Session settings
    if env_ttl := os.getenv("CURRENCY_SESSION_TTL_MINUTES"):
        cfg.session.ttl_minutes = int(env_ttl)

    # Database settings
    if env_backend := os.getenv("CURRENCY_DB_BACKEND"):
        if env_backend.lower() in ("sqlite", "memory"):
            cfg.database.backend = env_backend.lower()  # type: ignore[assignment]
    if env_db := os.getenv("CURRENCY_DB_PATH"):
        cfg.database.path = env_db
    if env_lock := os.getenv("CURRENCY_LOCK_TIMEOUT_SECONDS"):
        cfg.database.lock_timeout_seconds = float(env_lock)

    # Logging settings
    if env_log := os.getenv("CURRENCY_LOG_LEVEL"):
        cfg.logging.level = env_log.upper()
    if env_log_format := os.getenv("CURRENCY_LOG_FORMAT"):
        if env_log_format.lower() in ("simple", "detailed", "json"):
            cfg.logging.format = env_log_format.lower()  # type: ignore[assignment]

    # Ledger settings
    if env_reward := os.getenv("CURRENCY_DAILY_REWARD"):
        cfg.ledger.daily_reward_amount = int(env_reward)
    if env_reset := os.getenv("CURRENCY_RESET_TIME"):
        cfg.ledger.reset_hour, cfg.ledger.reset_minute = _parse_reset_time(env_reset)
    if env_tz := os.getenv("CURRENCY_TIMEZONE"):
        cfg.ledger.timezone = env_tz
    if env_denom := os.getenv("CURRENCY_DEFAULT_DENOMINATION"):
        cfg.ledger.default_denomination = int(env_denom)


def load_config() -> ServerConfig:
    """
    Load configuration from all sources with proper priority.

    Priority (highest wins):
        1. Environment variables
        2. config/server.ini
        3. config/server.example.ini (fallback for development)
        4. Built-in defaults

    Returns:
        ServerConfig: Fully populated configuration object.
    """
    cfg = ServerConfig()

    # Determine which config file to use
    config_file = None
    if CONFIG_FILE.exists():
        config_file = CONFIG_FILE
    elif CONFIG_EXAMPLE.exists():
        # Use example as fallback for development
        config_file = CONFIG_EXAMPLE

    # Load from INI file if available
    if config_file:
        parser = configparser.ConfigParser()
        parser.read(config_file)
        _load_from_ini(parser, cfg)

    # Apply environment variable overrides (highest priority)
    _apply_env_overrides(cfg)

    return cfg


def reload_config() -> "ServerConfig":
    """
    Reload configuration from disk and environment.

    This updates the module-level `config` singleton. Use sparingly as it
    doesn't update an already-running server's ledger instance.

    Returns:
        ServerConfig: The newly loaded configuration.
    """
    global config
    config = load_config()
    return config


def validate_config(cfg: ServerConfig) -> list[str]:
    """
    Check a configuration for values the server cannot start with.

    Returns:
        A list of human-readable problems. Empty when the configuration is usable.
    """
    problems: list[str] = []

    if not 1 <= cfg.server.port <= 65535:
        problems.append(f"server.port must be between 1 and 65535, got {cfg.server.port}")
    if cfg.session.ttl_minutes <= 0:
        problems.append("session.ttl_minutes must be positive")
    if cfg.database.lock_timeout_seconds <= 0:
        problems.append("database.lock_timeout_seconds must be positive")
    if cfg.ledger.daily_reward_amount <= 0:
        problems.append("ledger.daily_reward_amount must be positive")
    if cfg.ledger.default_denomination <= 0:
        problems.append("ledger.default_denomination must be positive")
    if not 1 <= cfg.ledger.top_limit <= 100:
        problems.append("ledger.top_limit must be between 1 and 100")
    if not 0 <= cfg.ledger.reset_hour <= 23 or not 0 <= cfg.ledger.reset_minute <= 59:
        problems.append(
            f"ledger reset time {cfg.ledger.reset_hour:02d}:{cfg.ledger.reset_minute:02d} "
            "is not a valid time of day"
        )
    try:
        ZoneInfo(cfg.ledger.timezone)
    except (ZoneInfoNotFoundError, ValueError):
        problems.append(f"ledger.timezone {cfg.ledger.timezone!r} is not a known IANA zone")

    if cfg.is_production and not cfg.security.allowed_ips:
        problems.append("security.allowed_ips must be set in production mode")

    return problems


# =============================================================================
# MODULE-LEVEL SINGLETON
# =============================================================================

# Load configuration once at module import time
config = load_config()


# =============================================================================
# UTILITY FUNCTIONS
# =============================================================================


def get_config_status() -> dict:
    """
    Get configuration status for diagnostics.

    Returns a dictionary with configuration source information,
    useful for debugging and the ``config`` CLI command.
    """
    return {
        "config_file_exists": CONFIG_FILE.exists(),
        "config_file_path": str(CONFIG_FILE),
        "using_example": not CONFIG_FILE.exists() and CONFIG_EXAMPLE.exists(),
        "production_mode": config.is_production,
        "allowed_ips_count": len(config.security.allowed_ips),
        "database_backend": config.database.backend,
        "problems": validate_config(config),
    }


def print_config_summary() -> None:
    """Print a summary of current configuration to stdout."""
    status = get_config_status()
    print("\n" + "=" * 60)
    print("SERVER CONFIGURATION")
    print("=" * 60)
    print(f"Config file: {status['config_file_path']}")
    print(f"File exists: {status['config_file_exists']}")
    if status["using_example"]:
        print("WARNING: Using example config (copy to server.ini for production)")
    print("-" * 60)
    print(f"Server:      {config.server.host}:{config.server.port}")
    print(f"Production:  {config.is_production}")
    print(f"Allowed IPs: {config.security.allowed_ips or 'any'}")
    print(f"Backend:     {config.database.backend}")
    print(f"Database:    {config.database.absolute_path}")
    print(f"Log level:   {config.logging.level}")
    print(
        f"Daily reset: {config.ledger.reset_hour:02d}:{config.ledger.reset_minute:02d} "
        f"{config.ledger.timezone} (reward {config.ledger.daily_reward_amount})"
    )
    for problem in status["problems"]:
        print(f"PROBLEM:     {problem}")
    print("=" * 60 + "\n")


# =============================================================================
# TEST HELPERS
# =============================================================================


class use_test_database:
    """
    Context manager for using a temporary test database.

    Usage:
        from currency_server.config import use_test_database

        def test_something(tmp_path):
            with use_test_database(tmp_path / "test.db"):
                schema.init_database()

    Args:
        db_path: Path to the test database file
    """

    def __init__(self, db_path: Path | str):
        self.db_path = Path(db_path)
        self.original_path: str | None = None

    def __enter__(self) -> Path:
        """Set up test database path."""
        self.original_path = config.database.path
        config.database.path = str(self.db_path)
        return self.db_path

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        """Restore original database path."""
        if self.original_path is not None:
            config.database.path = self.original_path
        return None
