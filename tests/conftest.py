"""
Shared pytest fixtures for the currency ledger test suite.

This module provides fixtures that are automatically available to all test files:
- Temporary SQLite databases (via the config system's ``use_test_database``)
- A journal path redirected into ``tmp_path``
- Engine, codec and facade instances wired to the temporary database
- A FastAPI TestClient for API tests

Every fixture is function-scoped so tests never share ledger state.
"""

from collections.abc import Generator
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from currency_ledger.config import config, use_test_database
from currency_ledger.currency import CurrencyConfig
from currency_ledger.db.backend import SQLiteBackend
from currency_ledger.engine import LedgerEngine
from currency_ledger.facade import LedgerFacade
from currency_ledger.logging_config import reset_logging
from currency_ledger.tokens import CashTokenCodec
from tests.constants import TEST_DECIMAL_PLACES, TEST_DENOMINATIONS, TEST_NAMESPACE

# ============================================================================
# DATABASE FIXTURES
# ============================================================================


@pytest.fixture(scope="function")
def temp_db_path(tmp_path: Path) -> Generator[Path, None, None]:
    """
    Point the configured database at a fresh file under ``tmp_path``.

    Yields:
        Path to the temporary database file (not yet created)
    """
    with use_test_database(tmp_path / "test_ledger.db") as db_path:
        yield db_path


@pytest.fixture(scope="function")
def journal_path(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """
    Redirect the JSONL journal into ``tmp_path``.

    Patches ``config.ledger.journal_path`` so ledgers built from
    configuration (``build_ledger``, the CLI, the API) never write to the
    real ``data/journal/`` directory.
    """
    path = tmp_path / "journal" / "transactions.jsonl"
    monkeypatch.setattr(config.ledger, "journal_path", str(path))
    monkeypatch.setattr(config.ledger, "journal_enabled", True)
    return path


@pytest.fixture(scope="function")
def test_config(temp_db_path: Path, journal_path: Path, monkeypatch: pytest.MonkeyPatch):
    """
    Configuration pinned to the test denominations and temporary paths.

    Yields the live module-level ``config`` so code that reads it directly
    sees the same values.
    """
    monkeypatch.setattr(config.currency, "denominations", list(TEST_DENOMINATIONS))
    monkeypatch.setattr(config.currency, "decimal_places", TEST_DECIMAL_PLACES)
    monkeypatch.setattr(config.ledger, "lock_timeout_seconds", 2.0)
    monkeypatch.setattr(config.tokens, "namespace", TEST_NAMESPACE)
    monkeypatch.setattr(config.tokens, "secret", None)
    return config


@pytest.fixture(autouse=True)
def _reset_logging() -> Generator[None, None, None]:
    """Undo any handler the CLI installs so caplog keeps working."""
    yield
    reset_logging()


# ============================================================================
# LEDGER FIXTURES
# ============================================================================


@pytest.fixture
def currencies() -> CurrencyConfig:
    """The default four-denomination registry with two decimal places."""
    return CurrencyConfig(TEST_DENOMINATIONS, decimal_places=TEST_DECIMAL_PLACES)


@pytest.fixture(scope="function")
def backend(temp_db_path: Path, currencies: CurrencyConfig) -> SQLiteBackend:
    """SQLite backend on the temporary database with the schema created."""
    sqlite_backend = SQLiteBackend(temp_db_path, currencies)
    sqlite_backend.initialize_schema()
    return sqlite_backend


@pytest.fixture(scope="function")
def engine(backend: SQLiteBackend, currencies: CurrencyConfig, journal_path: Path) -> LedgerEngine:
    """Ledger engine with a short lock timeout and the journal in ``tmp_path``."""
    return LedgerEngine(backend, currencies, lock_timeout=2.0, journal_path=journal_path)


@pytest.fixture
def codec(currencies: CurrencyConfig) -> CashTokenCodec:
    """Unsigned token codec (plain SHA-256 checksum)."""
    return CashTokenCodec(currencies, namespace=TEST_NAMESPACE)


@pytest.fixture
def ledger(engine: LedgerEngine, codec: CashTokenCodec) -> LedgerFacade:
    """Outcome-returning facade over the test engine and codec."""
    return LedgerFacade(engine, codec)


# ============================================================================
# API FIXTURES
# ============================================================================


@pytest.fixture(scope="function")
def test_client(test_config) -> TestClient:
    """
    Create a FastAPI TestClient for API endpoint testing.

    The app builds its ledger from the patched configuration, so requests
    hit a temporary database and journal.

    Example:
        def test_mint(test_client):
            response = test_client.post(
                "/accounts/alice/mint", json={"denomination": "gold", "amount": "5"}
            )
            assert response.status_code == 200
    """
    from currency_ledger.api.server import create_app

    return TestClient(create_app())
