"""Transaction log repository for the SQLite backend."""

from __future__ import annotations

import sqlite3
from collections.abc import Iterator
from datetime import UTC, datetime
from decimal import Decimal

from currency_ledger.currency import CurrencyConfig
from currency_ledger.db.errors import raise_read_error, raise_write_error
from currency_ledger.records import TransactionKind, TransactionRecord

# Rows pulled per round-trip when streaming history.
QUERY_BATCH_SIZE = 200

_SELECT_COLUMNS = "id, from_account, to_account, denomination, amount, kind, note, timestamp"


def _row_to_record(row: tuple) -> TransactionRecord:
    return TransactionRecord(
        id=int(row[0]),
        from_party=row[1],
        to_party=row[2],
        denomination=row[3],
        amount=Decimal(row[4]),
        kind=TransactionKind(row[5]),
        note=row[6],
        timestamp=row[7],
    )


class SQLiteTransactionLog:
    """Append-only log bound to one open connection."""

    def __init__(self, connection: sqlite3.Connection, currencies: CurrencyConfig) -> None:
        self._conn = connection
        self._currencies = currencies

    def append(self, record: TransactionRecord) -> int:
        timestamp = record.timestamp or datetime.now(UTC).isoformat()
        try:
            cursor = self._conn.cursor()
            cursor.execute(
                """
                INSERT INTO transactions
                    (from_account, to_account, denomination, amount, kind, note, timestamp)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    record.from_party,
                    record.to_party,
                    record.denomination,
                    self._currencies.format_amount(record.amount),
                    record.kind.value,
                    record.note,
                    timestamp,
                ),
            )
            record_id = cursor.lastrowid
            if record_id is None:
                raise ValueError("Failed to create transaction row.")
            return int(record_id)
        except Exception as exc:
            raise_write_error(
                "transactions.append",
                exc,
                details=f"kind={record.kind.value} from={record.from_party!r} to={record.to_party!r}",
            )

    def get(self, record_id: int) -> TransactionRecord | None:
        try:
            cursor = self._conn.cursor()
            cursor.execute(f"SELECT {_SELECT_COLUMNS} FROM transactions WHERE id = ?", (record_id,))
            row = cursor.fetchone()
        except Exception as exc:
            raise_read_error("transactions.get", exc, details=f"id={record_id}")
        return _row_to_record(row) if row else None

    def query_by_account(
        self, account_id: str, *, batch_size: int = QUERY_BATCH_SIZE
    ) -> Iterator[TransactionRecord]:
        """Yield records where ``account_id`` is either party, oldest first."""
        try:
            cursor = self._conn.cursor()
            cursor.execute(
                f"""
                SELECT {_SELECT_COLUMNS}
                FROM transactions
                WHERE from_account = ? OR to_account = ?
                ORDER BY timestamp ASC, id ASC
                """,
                (account_id, account_id),
            )
            while True:
                rows = cursor.fetchmany(batch_size)
                if not rows:
                    return
                for row in rows:
                    yield _row_to_record(row)
        except Exception as exc:
            raise_read_error(
                "transactions.query_by_account", exc, details=f"account_id={account_id!r}"
            )
