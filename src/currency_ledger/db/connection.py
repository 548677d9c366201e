"""SQLite connection primitives for the ledger DB layer.

This module owns connection creation and low-level SQLite runtime pragmas so
repository code can stay focused on queries and transaction intent.
"""

from __future__ import annotations

import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path


def get_db_path() -> Path:
    """Resolve the absolute SQLite database path from runtime configuration."""
    from currency_ledger.config import config

    return config.database.absolute_path


def configure_connection(
    connection: sqlite3.Connection, *, busy_timeout_ms: int = 5000
) -> sqlite3.Connection:
    """Apply connection-level SQLite pragmas required by the ledger.

    Notes:
        - ``busy_timeout`` makes cross-process writers wait for ``BEGIN
          IMMEDIATE`` instead of failing straight away.
        - WAL lets readers see the last committed state while a writer holds
          the reserved lock.
    """
    connection.execute(f"PRAGMA busy_timeout = {int(busy_timeout_ms)}")
    connection.execute("PRAGMA journal_mode = WAL")
    connection.execute("PRAGMA synchronous = NORMAL")
    return connection


def get_connection(path: Path | str | None = None, *, busy_timeout_ms: int = 5000) -> sqlite3.Connection:
    """Create and configure a new SQLite connection in autocommit mode.

    Transactions are opened explicitly with ``BEGIN IMMEDIATE`` by the write
    scope, so the driver's implicit transaction handling is disabled.
    """
    db_path = Path(path) if path is not None else get_db_path()
    db_path.parent.mkdir(parents=True, exist_ok=True)
    connection = sqlite3.connect(str(db_path), isolation_level=None)
    return configure_connection(connection, busy_timeout_ms=busy_timeout_ms)


@contextmanager
def connection_scope(
    path: Path | str | None = None,
    *,
    write: bool = False,
    busy_timeout_ms: int = 5000,
) -> Iterator[sqlite3.Connection]:
    """Yield a configured connection with guaranteed cleanup semantics.

    Args:
        path: Database file; defaults to the configured path.
        write: When True, wrap the block in ``BEGIN IMMEDIATE`` / ``COMMIT``
            and roll back on exceptions.

    Behavior:
        - Always closes the connection in ``finally``.
        - For write scopes, attempts rollback before re-raising failures.
    """
    connection = get_connection(path, busy_timeout_ms=busy_timeout_ms)
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
