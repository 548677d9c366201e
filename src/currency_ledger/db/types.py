"""Storage contracts consumed by the ledger engine.

The engine is agnostic to the storage that backs it: anything satisfying
:class:`StorageBackend` can be plugged in.  The shipped implementation is
:class:`currency_ledger.db.backend.SQLiteBackend`.
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import AbstractContextManager
from decimal import Decimal
from typing import Protocol

from currency_ledger.records import TransactionRecord


class AccountStore(Protocol):
    """Durable mapping of (account_id, denomination) to a balance >= 0."""

    def get_balance(self, account_id: str, denomination: str) -> Decimal:
        """Return the balance, or zero when no row exists."""
        ...

    def set_balance(self, account_id: str, denomination: str, amount: Decimal) -> None:
        """Overwrite the balance; raises ``InvalidAmount`` if ``amount < 0``."""
        ...

    def exists(self, account_id: str) -> bool:
        """True once the account has at least one denomination row."""
        ...

    def initialize(self, account_id: str) -> bool:
        """Create zero rows for every denomination; True if anything was created."""
        ...

    def balances(self, account_id: str) -> dict[str, Decimal]:
        """Balances for every configured denomination."""
        ...


class TransactionLog(Protocol):
    """Durable, append-only sequence of transaction records."""

    def append(self, record: TransactionRecord) -> int:
        """Write ``record`` and return its id."""
        ...

    def query_by_account(self, account_id: str) -> Iterator[TransactionRecord]:
        """Lazily yield records involving ``account_id`` in time order."""
        ...


class StorageSession(Protocol):
    """One atomic unit spanning both stores."""

    accounts: AccountStore
    transactions: TransactionLog


class StorageBackend(Protocol):
    """Factory for storage sessions."""

    def initialize_schema(self) -> None: ...

    def unit_of_work(self) -> AbstractContextManager[StorageSession]:
        """Open a write session: commit on success, roll back on failure."""
        ...

    def read_session(self) -> AbstractContextManager[StorageSession]:
        """Open a read-only session over the last committed state."""
        ...

    def query_by_account(self, account_id: str) -> Iterator[TransactionRecord]:
        """Restartable lazy history query with its own connection lifetime."""
        ...
