"""Tests for ``currency_ledger.engine.LedgerEngine``.

Test organisation
-----------------
- :class:`TestCredit`, :class:`TestDebit`, :class:`TestTransfer`: balance
  effects, validation and the records each operation appends.
- :class:`TestAtomicity`: injected storage failures leave no partial state;
  another writer holding the database surfaces as ``LockTimeout``.
- :class:`TestAmountLimits`: amounts and balances beyond the exact decimal
  range are rejected before anything is written.
- :class:`TestJournalMirror`: committed records reach the JSONL journal and
  journal failures never undo a committed operation.
- :class:`TestReconcile`: stored balances against replayed history.
"""

from __future__ import annotations

import json
import sqlite3
from decimal import Decimal
from unittest.mock import patch

import pytest

from currency_ledger.db.backend import SQLiteBackend
from currency_ledger.db.errors import StorageOperationContext, StorageWriteError
from currency_ledger.db.transactions_repo import SQLiteTransactionLog
from currency_ledger.engine import LedgerEngine
from currency_ledger.errors import (
    InsufficientFunds,
    InvalidAmount,
    LockTimeout,
    SelfTransfer,
    UnknownDenomination,
)
from currency_ledger.journal import JournalWriteError
from currency_ledger.records import SYSTEM_PARTY, TransactionKind
from tests.constants import ALICE, BOB, CAROL


def _history(engine, account_id):
    return list(engine.query_by_account(account_id))


@pytest.mark.db
class TestAccounts:
    def test_ensure_account_is_idempotent(self, engine):
        assert engine.ensure_account(ALICE) is True
        assert engine.ensure_account(ALICE) is False
        assert engine.account_exists(ALICE)

    def test_unknown_account_reads_zero(self, engine):
        assert engine.get_balance("nobody", "gold") == Decimal("0")
        assert not engine.account_exists("nobody")

    def test_get_balance_rejects_unknown_denomination(self, engine):
        with pytest.raises(UnknownDenomination):
            engine.get_balance(ALICE, "platinum")

    @pytest.mark.parametrize("account_id", ["", "   ", SYSTEM_PARTY, "token"])
    def test_reserved_or_blank_account_ids_are_rejected(self, engine, account_id):
        with pytest.raises(ValueError):
            engine.credit(account_id, "gold", 1)


@pytest.mark.db
class TestCredit:
    def test_credit_adds_and_appends_mint_record(self, engine):
        record = engine.credit(ALICE, "Gold", "50", note="quest reward")

        assert engine.get_balance(ALICE, "gold") == Decimal("50")
        assert record.kind is TransactionKind.MINT
        assert record.from_party == SYSTEM_PARTY
        assert record.to_party == ALICE
        assert record.denomination == "gold"
        assert record.note == "quest reward"
        assert record.id is not None
        assert _history(engine, ALICE) == [record]

    def test_credit_initializes_account(self, engine):
        engine.credit(ALICE, "gold", 1)

        assert engine.get_balances(ALICE) == {
            "coin": Decimal("0"),
            "copper": Decimal("0"),
            "silver": Decimal("0"),
            "gold": Decimal("1"),
        }

    @pytest.mark.parametrize("amount", [0, -5, "abc", "0.001"])
    def test_credit_rejects_invalid_amount(self, engine, amount):
        with pytest.raises(InvalidAmount):
            engine.credit(ALICE, "gold", amount)

        assert _history(engine, ALICE) == []

    def test_credit_rejects_unknown_denomination(self, engine):
        with pytest.raises(UnknownDenomination):
            engine.credit(ALICE, "platinum", 1)


@pytest.mark.db
class TestDebit:
    def test_plain_debit_appends_no_record(self, engine):
        engine.credit(ALICE, "gold", 10)

        assert engine.debit(ALICE, "gold", 4) is None

        assert engine.get_balance(ALICE, "gold") == Decimal("6")
        assert [r.kind for r in _history(engine, ALICE)] == [TransactionKind.MINT]

    def test_audited_debit_appends_burn_record(self, engine):
        engine.credit(ALICE, "gold", 10)

        record = engine.debit(ALICE, "gold", 4, audit_note="shop purchase")

        assert record is not None
        assert record.kind is TransactionKind.BURN
        assert record.from_party == ALICE
        assert record.to_party == SYSTEM_PARTY
        assert record.note == "shop purchase"
        assert engine.get_balance(ALICE, "gold") == Decimal("6")

    def test_debit_beyond_balance_raises_and_changes_nothing(self, engine):
        engine.credit(ALICE, "gold", 5)

        with pytest.raises(InsufficientFunds) as exc_info:
            engine.debit(ALICE, "gold", "5.01")

        error = exc_info.value
        assert error.code == "insufficient_funds"
        assert error.balance == Decimal("5")
        assert error.requested == Decimal("5.01")
        assert engine.get_balance(ALICE, "gold") == Decimal("5")

    def test_debit_of_uninitialized_account_is_insufficient(self, engine):
        with pytest.raises(InsufficientFunds):
            engine.debit(ALICE, "gold", 1)

    @pytest.mark.parametrize("amount", ["0.01", "1", "12.34", "49.99", "50"])
    def test_credit_then_debit_restores_balance_exactly(self, engine, amount):
        engine.credit(ALICE, "silver", "50")
        before = engine.get_balance(ALICE, "silver")

        for _ in range(3):
            engine.credit(ALICE, "silver", amount)
            engine.debit(ALICE, "silver", amount)

        assert engine.get_balance(ALICE, "silver") == before

    def test_withdraw_rejects_deposit_kinds(self, engine):
        with pytest.raises(ValueError):
            engine.withdraw(ALICE, "gold", 1, kind=TransactionKind.MINT, counterparty=SYSTEM_PARTY)

    def test_deposit_rejects_withdrawal_kinds(self, engine):
        with pytest.raises(ValueError):
            engine.deposit(ALICE, "gold", 1, kind=TransactionKind.BURN, counterparty=SYSTEM_PARTY)


@pytest.mark.db
class TestTransfer:
    def test_rent_scenario(self, engine):
        engine.credit(ALICE, "gold", 50)
        assert engine.get_balance(ALICE, "gold") == Decimal("50")

        record = engine.transfer(ALICE, BOB, "gold", 20, "rent")

        assert engine.get_balance(ALICE, "gold") == Decimal("30")
        assert engine.get_balance(BOB, "gold") == Decimal("20")
        pay_records = [r for r in _history(engine, ALICE) if r.kind is TransactionKind.PAY]
        assert pay_records == [record]
        assert record.from_party == ALICE
        assert record.to_party == BOB
        assert record.amount == Decimal("20")
        assert record.note == "rent"

        with pytest.raises(InsufficientFunds):
            engine.debit(ALICE, "gold", 100)
        assert engine.get_balance(ALICE, "gold") == Decimal("30")

    def test_transfer_initializes_receiver(self, engine):
        engine.credit(ALICE, "gold", 5)

        engine.transfer(ALICE, CAROL, "gold", 5)

        assert engine.account_exists(CAROL)
        assert engine.get_balance(ALICE, "gold") == Decimal("0")

    def test_self_transfer_rejected(self, engine):
        engine.credit(ALICE, "gold", 5)

        with pytest.raises(SelfTransfer):
            engine.transfer(ALICE, ALICE, "gold", 1)

        assert engine.get_balance(ALICE, "gold") == Decimal("5")

    def test_insufficient_transfer_leaves_both_sides_and_log_untouched(self, engine):
        engine.credit(ALICE, "gold", 5)
        engine.credit(BOB, "gold", 1)

        with pytest.raises(InsufficientFunds):
            engine.transfer(ALICE, BOB, "gold", 6)

        assert engine.get_balance(ALICE, "gold") == Decimal("5")
        assert engine.get_balance(BOB, "gold") == Decimal("1")
        assert [r.kind for r in _history(engine, BOB)] == [TransactionKind.MINT]

    def test_transfer_only_touches_its_denomination(self, engine):
        engine.credit(ALICE, "gold", 5)
        engine.credit(ALICE, "silver", 7)

        engine.transfer(ALICE, BOB, "gold", 2)

        assert engine.get_balance(ALICE, "silver") == Decimal("7")
        assert engine.get_balance(BOB, "silver") == Decimal("0")


@pytest.mark.db
class TestAtomicity:
    def _failing_append(self, *args, **kwargs):
        raise StorageWriteError(context=StorageOperationContext(operation="transactions.append"))

    def test_failed_log_append_rolls_back_transfer(self, engine):
        engine.credit(ALICE, "gold", 10)

        with patch.object(SQLiteTransactionLog, "append", self._failing_append):
            with pytest.raises(StorageWriteError):
                engine.transfer(ALICE, BOB, "gold", 4, "rent")

        assert engine.get_balance(ALICE, "gold") == Decimal("10")
        assert engine.get_balance(BOB, "gold") == Decimal("0")
        assert not engine.account_exists(BOB)
        assert len(_history(engine, ALICE)) == 1

    def test_failed_log_append_rolls_back_credit(self, engine):
        with patch.object(SQLiteTransactionLog, "append", self._failing_append):
            with pytest.raises(StorageWriteError) as exc_info:
                engine.credit(ALICE, "gold", 10)

        assert exc_info.value.code == "storage_unavailable"
        assert engine.get_balance(ALICE, "gold") == Decimal("0")
        assert _history(engine, ALICE) == []

    def test_balances_never_negative(self, engine):
        engine.credit(ALICE, "gold", 3)
        for amount in (1, 1, 1, 1):
            try:
                engine.debit(ALICE, "gold", amount)
            except InsufficientFunds:
                pass

        assert engine.get_balance(ALICE, "gold") == Decimal("0")

    def test_database_locked_by_another_writer_is_a_lock_timeout(
        self, temp_db_path, currencies, backend
    ):
        impatient = LedgerEngine(
            SQLiteBackend(temp_db_path, currencies, busy_timeout_ms=50), currencies
        )
        other = sqlite3.connect(str(temp_db_path), isolation_level=None)
        try:
            other.execute("BEGIN IMMEDIATE")
            with pytest.raises(LockTimeout) as exc_info:
                impatient.credit(ALICE, "gold", 10)
            other.execute("ROLLBACK")
        finally:
            other.close()

        assert exc_info.value.code == "lock_timeout"
        assert isinstance(exc_info.value.__cause__, sqlite3.OperationalError)
        assert impatient.get_balance(ALICE, "gold") == Decimal("0")


@pytest.mark.db
class TestAmountLimits:
    def test_oversized_credit_is_invalid_amount(self, engine):
        with pytest.raises(InvalidAmount, match="exceeds the maximum"):
            engine.credit(ALICE, "gold", "1e30")

        assert _history(engine, ALICE) == []

    def test_credit_past_maximum_balance_is_rejected(self, engine):
        ceiling = engine.currencies.max_amount
        engine.credit(ALICE, "gold", ceiling)

        with pytest.raises(InvalidAmount, match="maximum balance"):
            engine.credit(ALICE, "gold", 1)

        assert engine.get_balance(ALICE, "gold") == ceiling
        assert len(_history(engine, ALICE)) == 1

    def test_transfer_past_receiver_maximum_is_rejected(self, engine):
        ceiling = engine.currencies.max_amount
        engine.credit(BOB, "gold", ceiling)
        engine.credit(ALICE, "gold", 5)

        with pytest.raises(InvalidAmount, match="maximum balance"):
            engine.transfer(ALICE, BOB, "gold", 1)

        assert engine.get_balance(ALICE, "gold") == Decimal("5")
        assert engine.get_balance(BOB, "gold") == ceiling
        assert len(_history(engine, ALICE)) == 1

    def test_oversized_transfer_is_invalid_amount(self, engine):
        engine.credit(ALICE, "gold", 5)

        with pytest.raises(InvalidAmount):
            engine.transfer(ALICE, BOB, "gold", "1e30")

        assert engine.get_balance(ALICE, "gold") == Decimal("5")


@pytest.mark.db
class TestJournalMirror:
    def test_committed_records_are_journaled(self, engine, journal_path):
        mint = engine.credit(ALICE, "gold", 10)
        pay = engine.transfer(ALICE, BOB, "gold", 3, "rent")

        lines = [json.loads(line) for line in journal_path.read_text().splitlines()]

        assert [line["record_id"] for line in lines] == [mint.id, pay.id]
        assert lines[1]["kind"] == "pay"
        assert lines[1]["amount"] == "3"
        assert lines[1]["note"] == "rent"

    def test_journal_line_is_written_while_key_is_locked(self, engine):
        written = []

        def _append_while_locked(record, *, path):
            with pytest.raises(LockTimeout):
                with engine._locks.hold([(ALICE, "gold")], timeout=0.05):
                    pass
            written.append(record.id)

        with patch("currency_ledger.engine.append_record", side_effect=_append_while_locked):
            record = engine.credit(ALICE, "gold", 10)

        assert written == [record.id]

    def test_plain_debit_is_not_journaled(self, engine, journal_path):
        engine.credit(ALICE, "gold", 10)
        engine.debit(ALICE, "gold", 1)

        assert len(journal_path.read_text().splitlines()) == 1

    def test_journal_failure_does_not_undo_commit(self, engine, caplog):
        with patch(
            "currency_ledger.engine.append_record",
            side_effect=JournalWriteError("disk full"),
        ):
            with caplog.at_level("WARNING", logger="currency_ledger.engine"):
                record = engine.credit(ALICE, "gold", 10)

        assert record.id is not None
        assert engine.get_balance(ALICE, "gold") == Decimal("10")
        assert "Journal write failed" in caplog.text

    def test_no_journal_when_disabled(self, backend, currencies, journal_path):
        quiet = LedgerEngine(backend, currencies, journal_path=None)
        quiet.credit(ALICE, "gold", 1)

        assert not journal_path.exists()


@pytest.mark.db
class TestReconcile:
    def test_audited_history_reconciles(self, engine):
        engine.credit(ALICE, "gold", 10)
        engine.transfer(ALICE, BOB, "gold", 4)
        engine.debit(ALICE, "gold", 1, audit_note="fee")

        report = engine.reconcile(ALICE)

        assert report.balanced
        assert report.stored["gold"] == Decimal("5")
        assert report.replayed["gold"] == Decimal("5")
        assert engine.reconcile(BOB).balanced

    def test_unaudited_debit_shows_as_discrepancy(self, engine):
        engine.credit(ALICE, "gold", 10)
        engine.debit(ALICE, "gold", 2)

        report = engine.reconcile(ALICE)

        assert not report.balanced
        assert report.discrepancies == {"gold": (Decimal("8"), Decimal("10"))}
