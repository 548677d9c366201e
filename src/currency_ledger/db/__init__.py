"""Storage layer: the SQLite backend and the contracts it satisfies."""

from currency_ledger.db.backend import SQLiteBackend, SQLiteSession
from currency_ledger.db.errors import (
    StorageOperationContext,
    StorageReadError,
    StorageWriteError,
)
from currency_ledger.db.types import AccountStore, StorageBackend, StorageSession, TransactionLog

__all__ = [
    "AccountStore",
    "SQLiteBackend",
    "SQLiteSession",
    "StorageBackend",
    "StorageOperationContext",
    "StorageReadError",
    "StorageSession",
    "StorageWriteError",
    "TransactionLog",
]
