"""SQLite storage backend.

One connection is opened per unit of work and closed when the unit ends,
the same lifetime model the rest of the DB layer uses.  Write units run
inside ``BEGIN IMMEDIATE`` so balance rows and transaction rows commit or
roll back together.
"""

from __future__ import annotations

import logging
import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path

from currency_ledger.currency import CurrencyConfig
from currency_ledger.db.accounts_repo import SQLiteAccountStore
from currency_ledger.db.connection import connection_scope, get_connection
from currency_ledger.db.errors import (
    StorageOperationContext,
    StorageReadError,
    StorageWriteError,
    is_lock_contention,
    raise_read_error,
    raise_write_error,
)
from currency_ledger.db.schema import create_schema
from currency_ledger.db.transactions_repo import SQLiteTransactionLog
from currency_ledger.errors import LedgerError, LockTimeout
from currency_ledger.records import TransactionRecord

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class SQLiteSession:
    """Both stores bound to one connection/transaction."""

    accounts: SQLiteAccountStore
    transactions: SQLiteTransactionLog


class SQLiteBackend:
    """File-backed storage for the ledger.

    Args:
        path: SQLite database file; created on first use.
        currencies: Registry used to initialize accounts and format amounts.
        busy_timeout_ms: How long a writer waits on another process's lock.
    """

    def __init__(
        self,
        path: Path | str,
        currencies: CurrencyConfig,
        *,
        busy_timeout_ms: int = 5000,
    ) -> None:
        self.path = Path(path)
        self.currencies = currencies
        self.busy_timeout_ms = busy_timeout_ms

    def __repr__(self) -> str:
        return f"SQLiteBackend(path={str(self.path)!r})"

    def initialize_schema(self) -> None:
        try:
            with connection_scope(self.path, busy_timeout_ms=self.busy_timeout_ms) as conn:
                create_schema(conn)
        except Exception as exc:
            raise_write_error("schema.create", exc, details=str(self.path))
        logger.info("Ledger schema ready at %s", self.path)

    def _session(self, conn: sqlite3.Connection) -> SQLiteSession:
        return SQLiteSession(
            accounts=SQLiteAccountStore(conn, self.currencies),
            transactions=SQLiteTransactionLog(conn, self.currencies),
        )

    @contextmanager
    def unit_of_work(self) -> Iterator[SQLiteSession]:
        """Yield a write session; commit on success, roll back on any failure.

        Errors raised while opening, committing or rolling back are mapped to
        :exc:`StorageWriteError`, except that an expired busy timeout (another
        process holds the write lock) becomes :exc:`LockTimeout`.  Ledger
        errors raised by the block itself (``InsufficientFunds`` and friends)
        pass through unchanged after the rollback.
        """
        try:
            with connection_scope(
                self.path, write=True, busy_timeout_ms=self.busy_timeout_ms
            ) as conn:
                yield self._session(conn)
        except LedgerError:
            raise
        except (sqlite3.Error, OSError) as exc:
            if is_lock_contention(exc):
                logger.warning("Database %s stayed locked past the busy timeout", self.path)
                raise LockTimeout(
                    f"Timed out after {self.busy_timeout_ms}ms waiting for the "
                    f"database write lock on {self.path}"
                ) from exc
            raise StorageWriteError(
                context=StorageOperationContext(operation="unit_of_work", details=str(self.path)),
                cause=exc,
            ) from exc

    @contextmanager
    def read_session(self) -> Iterator[SQLiteSession]:
        try:
            with connection_scope(self.path, busy_timeout_ms=self.busy_timeout_ms) as conn:
                yield self._session(conn)
        except LedgerError:
            raise
        except (sqlite3.Error, OSError) as exc:
            raise StorageReadError(
                context=StorageOperationContext(operation="read_session", details=str(self.path)),
                cause=exc,
            ) from exc

    def query_by_account(self, account_id: str) -> Iterator[TransactionRecord]:
        """Stream an account's history over a dedicated connection.

        Each call opens a fresh connection, so the result is restartable: a
        new call sees every record committed so far.  The connection is
        closed when the iterator is exhausted or discarded.
        """
        try:
            conn = get_connection(self.path, busy_timeout_ms=self.busy_timeout_ms)
        except Exception as exc:
            raise_read_error("transactions.query_by_account", exc, details=str(self.path))
        try:
            yield from SQLiteTransactionLog(conn, self.currencies).query_by_account(account_id)
        finally:
            conn.close()
