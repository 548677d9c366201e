"""Typed storage exceptions for the DB package.

Repository modules raise these to signal infrastructure failures (SQLite
connection/query errors) instead of leaking ``sqlite3`` exceptions to the
engine.  Both classes derive from :class:`~currency_ledger.errors.StorageUnavailable`
so callers handle every storage failure with a single ``except`` clause.
"""

from __future__ import annotations

import sqlite3
from dataclasses import dataclass
from typing import NoReturn

from currency_ledger.errors import LedgerError, StorageUnavailable

_CONTENTION_MESSAGES = ("database is locked", "database is busy")


@dataclass(slots=True)
class StorageOperationContext:
    """Structured operation metadata carried by storage exceptions.

    Attributes:
        operation: Stable operation identifier (for example
            ``"transactions.append"``).
        details: Optional human-readable context for logs and debugging.
    """

    operation: str
    details: str | None = None


class StorageOperationError(StorageUnavailable):
    """Base exception for repository operation failures.

    Args:
        context: Structured operation metadata.
        cause: Optional underlying exception.
    """

    def __init__(
        self,
        *,
        context: StorageOperationContext,
        cause: Exception | None = None,
    ) -> None:
        message = context.operation
        if context.details:
            message = f"{message}: {context.details}"
        super().__init__(message)
        self.context = context
        self.cause = cause


class StorageReadError(StorageOperationError):
    """Repository read/query failure."""


class StorageWriteError(StorageOperationError):
    """Repository mutation/transaction failure."""


def is_lock_contention(exc: BaseException) -> bool:
    """True when SQLite gave up waiting for another connection's write lock."""
    if not isinstance(exc, sqlite3.OperationalError):
        return False
    message = str(exc).lower()
    return any(text in message for text in _CONTENTION_MESSAGES)


def raise_read_error(operation: str, exc: Exception, *, details: str | None = None) -> NoReturn:
    """Raise a typed read error while preserving chained cause."""
    if isinstance(exc, LedgerError):
        raise exc
    raise StorageReadError(
        context=StorageOperationContext(operation=operation, details=details),
        cause=exc,
    ) from exc


def raise_write_error(operation: str, exc: Exception, *, details: str | None = None) -> NoReturn:
    """Raise a typed write error while preserving chained cause."""
    if isinstance(exc, LedgerError):
        raise exc
    raise StorageWriteError(
        context=StorageOperationContext(operation=operation, details=details),
        cause=exc,
    ) from exc
