"""
Ledger configuration management.

This module handles loading and accessing ledger configuration from multiple
sources with a clear priority order:

    1. Environment variables (highest priority) - for containerized deployments
    2. Config file (config/ledger.ini) - for static deployments
    3. Built-in defaults (lowest priority) - sensible fallbacks

Configuration is loaded once at module import time and cached. The
LedgerConfig dataclass provides typed access to all settings.

Usage:
    from currency_ledger.config import config

    print(config.database.absolute_path)
    print(config.currency.denominations)
    print(config.ledger.lock_timeout_seconds)

Environment Variable Mapping:
    LEDGER_HOST            -> server.host
    LEDGER_PORT            -> server.port
    LEDGER_DB_PATH         -> database.path
    LEDGER_DENOMINATIONS   -> currency.denominations
    LEDGER_DECIMAL_PLACES  -> currency.decimal_places
    LEDGER_LOCK_TIMEOUT    -> ledger.lock_timeout_seconds
    LEDGER_JOURNAL_ENABLED -> ledger.journal_enabled
    LEDGER_JOURNAL_PATH    -> ledger.journal_path
    LEDGER_TOKEN_NAMESPACE -> tokens.namespace
    LEDGER_TOKEN_SECRET    -> tokens.secret
    LEDGER_LOG_LEVEL       -> logging.level
    LEDGER_LOG_FORMAT      -> logging.format
"""

import configparser
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Literal

# =============================================================================
# PATH CONFIGURATION
# =============================================================================

# Project root directory (contains src/, config/, data/)
PROJECT_ROOT = Path(__file__).parent.parent.parent

# Config file paths
CONFIG_DIR = PROJECT_ROOT / "config"
CONFIG_FILE = CONFIG_DIR / "ledger.ini"
CONFIG_EXAMPLE = CONFIG_DIR / "ledger.example.ini"

DEFAULT_DENOMINATIONS: tuple[str, ...] = ("coin", "copper", "silver", "gold")


def _resolve_path(value: str) -> Path:
    p = Path(value)
    if p.is_absolute():
        return p
    return PROJECT_ROOT / p


# =============================================================================
# CONFIGURATION DATACLASSES
# =============================================================================


@dataclass
class ServerSettings:
    """HTTP API binding configuration."""

    host: str = "127.0.0.1"
    port: int = 8100


@dataclass
class DatabaseSettings:
    """Database configuration."""

    path: str = "data/ledger.db"
    busy_timeout_ms: int = 5000

    @property
    def absolute_path(self) -> Path:
        """Get absolute path to database file."""
        return _resolve_path(self.path)


@dataclass
class CurrencySettings:
    """Denomination registry settings.

    The set is closed once the process starts: ``build_ledger`` turns these
    settings into an immutable ``CurrencyConfig`` which is handed to the
    engine and token codec.
    """

    denominations: list[str] = field(default_factory=lambda: list(DEFAULT_DENOMINATIONS))
    decimal_places: int = 2


@dataclass
class LedgerSettings:
    """Engine behaviour settings."""

    lock_timeout_seconds: float = 5.0
    journal_enabled: bool = True
    journal_path: str = "data/journal/transactions.jsonl"

    @property
    def absolute_journal_path(self) -> Path:
        """Get absolute path to the JSONL audit journal."""
        return _resolve_path(self.journal_path)


@dataclass
class TokenSettings:
    """Cash token payload settings."""

    namespace: str = "currency_ledger"
    secret: str | None = None


@dataclass
class LoggingSettings:
    """Logging configuration."""

    level: str = "INFO"
    format: Literal["simple", "detailed", "json"] = "detailed"


@dataclass
class LedgerConfig:
    """
    Complete ledger configuration.

    Aggregates all settings sections. Access via the module-level `config`
    singleton.
    """

    server: ServerSettings = field(default_factory=ServerSettings)
    database: DatabaseSettings = field(default_factory=DatabaseSettings)
    currency: CurrencySettings = field(default_factory=CurrencySettings)
    ledger: LedgerSettings = field(default_factory=LedgerSettings)
    tokens: TokenSettings = field(default_factory=TokenSettings)
    logging: LoggingSettings = field(default_factory=LoggingSettings)


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


def _parse_denominations(value: str) -> list[str]:
    """Parse a comma-separated denomination list, lower-cased."""
    return [item.lower() for item in _parse_list(value)]


def _load_from_ini(parser: configparser.ConfigParser, cfg: LedgerConfig) -> None:
    """Load configuration from parsed INI file into LedgerConfig."""
    # Server section
    if parser.has_section("server"):
        if parser.has_option("server", "host"):
            cfg.server.host = parser.get("server", "host")
        if parser.has_option("server", "port"):
            cfg.server.port = parser.getint("server", "port")

    # Database section
    if parser.has_section("database"):
        if parser.has_option("database", "path"):
            cfg.database.path = parser.get("database", "path")
        if parser.has_option("database", "busy_timeout_ms"):
            cfg.database.busy_timeout_ms = parser.getint("database", "busy_timeout_ms")

    # Currency section
    if parser.has_section("currency"):
        if parser.has_option("currency", "denominations"):
            cfg.currency.denominations = _parse_denominations(
                parser.get("currency", "denominations")
            )
        if parser.has_option("currency", "decimal_places"):
            cfg.currency.decimal_places = parser.getint("currency", "decimal_places")

    # Ledger section
    if parser.has_section("ledger"):
        if parser.has_option("ledger", "lock_timeout_seconds"):
            cfg.ledger.lock_timeout_seconds = parser.getfloat("ledger", "lock_timeout_seconds")
        if parser.has_option("ledger", "journal_enabled"):
            cfg.ledger.journal_enabled = _parse_bool(parser.get("ledger", "journal_enabled"))
        if parser.has_option("ledger", "journal_path"):
            cfg.ledger.journal_path = parser.get("ledger", "journal_path")

    # Tokens section
    if parser.has_section("tokens"):
        if parser.has_option("tokens", "namespace"):
            cfg.tokens.namespace = parser.get("tokens", "namespace")
        if parser.has_option("tokens", "secret"):
            cfg.tokens.secret = parser.get("tokens", "secret") or None

    # Logging section
    if parser.has_section("logging"):
        if parser.has_option("logging", "level"):
            cfg.logging.level = parser.get("logging", "level").upper()
        if parser.has_option("logging", "format"):
            val = parser.get("logging", "format").lower()
            if val in ("simple", "detailed", "json"):
                cfg.logging.format = val  # type: ignore[assignment]


def _apply_env_overrides(cfg: LedgerConfig) -> None:
    """Apply environment variable overrides to configuration."""
    if env_host := os.getenv("LEDGER_HOST"):
        cfg.server.host = env_host
    if env_port := os.getenv("LEDGER_PORT"):
        cfg.server.port = int(env_port)

    if env_db := os.getenv("LEDGER_DB_PATH"):
        cfg.database.path = env_db

    if env_denoms := os.getenv("LEDGER_DENOMINATIONS"):
        cfg.currency.denominations = _parse_denominations(env_denoms)
    if env_places := os.getenv("LEDGER_DECIMAL_PLACES"):
        cfg.currency.decimal_places = int(env_places)

    if env_timeout := os.getenv("LEDGER_LOCK_TIMEOUT"):
        cfg.ledger.lock_timeout_seconds = float(env_timeout)
    if env_journal := os.getenv("LEDGER_JOURNAL_ENABLED"):
        cfg.ledger.journal_enabled = _parse_bool(env_journal)
    if env_journal_path := os.getenv("LEDGER_JOURNAL_PATH"):
        cfg.ledger.journal_path = env_journal_path

    if env_namespace := os.getenv("LEDGER_TOKEN_NAMESPACE"):
        cfg.tokens.namespace = env_namespace
    if env_secret := os.getenv("LEDGER_TOKEN_SECRET"):
        cfg.tokens.secret = env_secret

    if env_log := os.getenv("LEDGER_LOG_LEVEL"):
        cfg.logging.level = env_log.upper()
    if env_log_format := os.getenv("LEDGER_LOG_FORMAT"):
        val = env_log_format.lower()
        if val in ("simple", "detailed", "json"):
            cfg.logging.format = val  # type: ignore[assignment]


def load_config() -> LedgerConfig:
    """
    Load configuration from all sources with proper priority.

    Priority (highest wins):
        1. Environment variables
        2. config/ledger.ini
        3. config/ledger.example.ini (fallback for development)
        4. Built-in defaults

    Returns:
        LedgerConfig: Fully populated configuration object.
    """
    cfg = LedgerConfig()

    config_file = None
    if CONFIG_FILE.exists():
        config_file = CONFIG_FILE
    elif CONFIG_EXAMPLE.exists():
        config_file = CONFIG_EXAMPLE

    if config_file:
        parser = configparser.ConfigParser()
        parser.read(config_file)
        _load_from_ini(parser, cfg)

    _apply_env_overrides(cfg)

    return cfg


def reload_config() -> "LedgerConfig":
    """
    Reload configuration from disk and environment.

    This updates the module-level `config` singleton. Engines already built
    keep the currency registry they were constructed with.

    Returns:
        LedgerConfig: The newly loaded configuration.
    """
    global config
    config = load_config()
    return config


# =============================================================================
# MODULE-LEVEL SINGLETON
# =============================================================================

config = load_config()


# =============================================================================
# UTILITY FUNCTIONS
# =============================================================================


def get_config_status() -> dict:
    """
    Get configuration status for diagnostics.

    Returns a dictionary with configuration source information, used by the
    ``/health`` endpoint and ``currency-ledger verify``.
    """
    return {
        "config_file_exists": CONFIG_FILE.exists(),
        "config_file_path": str(CONFIG_FILE),
        "using_example": not CONFIG_FILE.exists() and CONFIG_EXAMPLE.exists(),
        "database_path": str(config.database.absolute_path),
        "denominations": list(config.currency.denominations),
        "journal_enabled": config.ledger.journal_enabled,
    }


# =============================================================================
# TEST HELPERS
# =============================================================================


class use_test_database:
    """
    Context manager for using a temporary test database.

    Usage:
        from currency_ledger.config import use_test_database

        def test_something(tmp_path):
            with use_test_database(tmp_path / "test.db"):
                ledger = build_ledger()

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
