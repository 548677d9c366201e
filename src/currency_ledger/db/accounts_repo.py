"""Account balance repository for the SQLite backend.

Balances are stored as canonical decimal text and converted back to
:class:`~decimal.Decimal` on read, so no value ever passes through a float.
"""

from __future__ import annotations

import sqlite3
from decimal import Decimal

from currency_ledger.currency import ZERO, CurrencyConfig
from currency_ledger.db.errors import raise_read_error, raise_write_error
from currency_ledger.errors import InvalidAmount


class SQLiteAccountStore:
    """Account store bound to one open connection.

    The connection's transaction scope is owned by the caller
    (:class:`~currency_ledger.db.backend.SQLiteBackend`); this class never
    commits or rolls back.
    """

    def __init__(self, connection: sqlite3.Connection, currencies: CurrencyConfig) -> None:
        self._conn = connection
        self._currencies = currencies

    def get_balance(self, account_id: str, denomination: str) -> Decimal:
        try:
            cursor = self._conn.cursor()
            cursor.execute(
                """
                SELECT balance FROM account_balances
                WHERE account_id = ? AND denomination = ?
                """,
                (account_id, denomination),
            )
            row = cursor.fetchone()
        except Exception as exc:
            raise_read_error(
                "accounts.get_balance",
                exc,
                details=f"account_id={account_id!r} denomination={denomination!r}",
            )
        return Decimal(row[0]) if row else ZERO

    def set_balance(self, account_id: str, denomination: str, amount: Decimal) -> None:
        if amount < ZERO:
            raise InvalidAmount(f"Balance cannot be negative, got {amount}")
        try:
            self._conn.execute(
                """
                INSERT INTO account_balances (account_id, denomination, balance)
                VALUES (?, ?, ?)
                ON CONFLICT (account_id, denomination)
                DO UPDATE SET balance = excluded.balance, updated_at = CURRENT_TIMESTAMP
                """,
                (account_id, denomination, self._currencies.format_amount(amount)),
            )
        except Exception as exc:
            raise_write_error(
                "accounts.set_balance",
                exc,
                details=f"account_id={account_id!r} denomination={denomination!r}",
            )

    def exists(self, account_id: str) -> bool:
        try:
            cursor = self._conn.cursor()
            cursor.execute(
                "SELECT 1 FROM account_balances WHERE account_id = ? LIMIT 1",
                (account_id,),
            )
            return cursor.fetchone() is not None
        except Exception as exc:
            raise_read_error("accounts.exists", exc, details=f"account_id={account_id!r}")

    def initialize(self, account_id: str) -> bool:
        zero = self._currencies.format_amount(ZERO)
        try:
            cursor = self._conn.cursor()
            created = 0
            for denomination in self._currencies.denominations:
                cursor.execute(
                    """
                    INSERT OR IGNORE INTO account_balances (account_id, denomination, balance)
                    VALUES (?, ?, ?)
                    """,
                    (account_id, denomination, zero),
                )
                created += cursor.rowcount
            return created > 0
        except Exception as exc:
            raise_write_error("accounts.initialize", exc, details=f"account_id={account_id!r}")

    def balances(self, account_id: str) -> dict[str, Decimal]:
        try:
            cursor = self._conn.cursor()
            cursor.execute(
                "SELECT denomination, balance FROM account_balances WHERE account_id = ?",
                (account_id,),
            )
            stored = {row[0]: Decimal(row[1]) for row in cursor.fetchall()}
        except Exception as exc:
            raise_read_error("accounts.balances", exc, details=f"account_id={account_id!r}")
        return {name: stored.get(name, ZERO) for name in self._currencies.denominations}
