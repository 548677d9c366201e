"""Schema creation and invariant trigger wiring for the SQLite backend.

The schema layer is isolated from query code so schema changes are
reviewable without wading through repository logic.
"""

from __future__ import annotations

import sqlite3

from currency_ledger.records import TransactionKind

_KIND_VALUES = ", ".join(f"'{kind.value}'" for kind in TransactionKind)

TABLE_STATEMENTS = (
    """
    CREATE TABLE IF NOT EXISTS account_balances (
        account_id TEXT NOT NULL,
        denomination TEXT NOT NULL,
        balance TEXT NOT NULL DEFAULT '0' CHECK (CAST(balance AS REAL) >= 0),
        updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        PRIMARY KEY (account_id, denomination)
    )
    """,
    f"""
    CREATE TABLE IF NOT EXISTS transactions (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        from_account TEXT NOT NULL,
        to_account TEXT NOT NULL,
        denomination TEXT NOT NULL,
        amount TEXT NOT NULL CHECK (CAST(amount AS REAL) > 0),
        kind TEXT NOT NULL CHECK (kind IN ({_KIND_VALUES})),
        note TEXT NOT NULL DEFAULT '',
        timestamp TEXT NOT NULL,
        CHECK (kind != 'pay' OR from_account != to_account)
    )
    """,
)

# History displays always filter by one party and order by time.
INDEX_STATEMENTS = (
    "CREATE INDEX IF NOT EXISTS idx_transactions_from ON transactions(from_account, timestamp)",
    "CREATE INDEX IF NOT EXISTS idx_transactions_to ON transactions(to_account, timestamp)",
)


def create_append_only_triggers(conn: sqlite3.Connection) -> None:
    """Create triggers that reject any rewrite of the transaction log.

    These protect the audit trail for both Python helper paths and direct
    SQL writes.
    """
    cursor = conn.cursor()
    cursor.execute("DROP TRIGGER IF EXISTS transactions_no_update")
    cursor.execute("DROP TRIGGER IF EXISTS transactions_no_delete")
    cursor.execute("""
        CREATE TRIGGER transactions_no_update
        BEFORE UPDATE ON transactions
        BEGIN
            SELECT RAISE(ABORT, 'transactions are append-only');
        END
    """)
    cursor.execute("""
        CREATE TRIGGER transactions_no_delete
        BEFORE DELETE ON transactions
        BEGIN
            SELECT RAISE(ABORT, 'transactions are append-only');
        END
    """)


def create_schema(conn: sqlite3.Connection) -> None:
    """Create every ledger table, index and trigger (idempotent)."""
    cursor = conn.cursor()
    for statement in TABLE_STATEMENTS:
        cursor.execute(statement)
    for statement in INDEX_STATEMENTS:
        cursor.execute(statement)
    create_append_only_triggers(conn)
