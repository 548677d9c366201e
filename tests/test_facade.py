"""Tests for the outcome-returning ledger facade and ``build_ledger`` wiring."""

from __future__ import annotations

from decimal import Decimal
from unittest.mock import patch

import pytest

from currency_ledger.db.errors import StorageOperationContext, StorageReadError
from currency_ledger.engine import LedgerEngine
from currency_ledger.facade import LedgerFacade, LedgerOutcome, build_ledger
from currency_ledger.records import TransactionKind
from tests.constants import ALICE, BOB


@pytest.mark.unit
def test_outcome_error_code_and_message():
    ok = LedgerOutcome(ok=True, value=3)
    assert ok.error_code is None
    assert ok.message == ""


@pytest.mark.db
class TestLedgerFacade:
    def test_success_outcomes_carry_values(self, ledger):
        assert ledger.ensure_account(ALICE).value is True

        credited = ledger.credit(ALICE, "gold", 50)
        assert credited.ok
        assert credited.value.kind is TransactionKind.MINT

        balance = ledger.get_balance(ALICE, "gold")
        assert balance.ok
        assert balance.value == Decimal("50")

    @pytest.mark.parametrize(
        ("call", "code"),
        [
            (lambda f: f.credit(ALICE, "gold", 0), "invalid_amount"),
            (lambda f: f.credit(ALICE, "platinum", 1), "unknown_denomination"),
            (lambda f: f.debit(ALICE, "gold", 1), "insufficient_funds"),
            (lambda f: f.transfer(ALICE, ALICE, "gold", 1), "self_transfer"),
            (lambda f: f.cash_in(ALICE, {}), "not_a_token"),
            (lambda f: f.cash_in(ALICE, {"currency_ledger:cash": "1"}), "corrupt_token"),
            (lambda f: f.get_balance(ALICE, "platinum"), "unknown_denomination"),
            (lambda f: f.credit(ALICE, "gold", "1e30"), "invalid_amount"),
            (lambda f: f.cash_out(ALICE, "gold", "1e30"), "invalid_amount"),
        ],
    )
    def test_ledger_errors_become_failed_outcomes(self, ledger, call, code):
        outcome = call(ledger)

        assert not outcome.ok
        assert outcome.value is None
        assert outcome.error_code == code
        assert outcome.message

    def test_storage_failure_becomes_failed_outcome(self, ledger):
        error = StorageReadError(context=StorageOperationContext(operation="read_session"))
        with patch.object(LedgerEngine, "get_balances", side_effect=error):
            outcome = ledger.get_balances(ALICE)

        assert outcome.error_code == "storage_unavailable"

    def test_non_ledger_errors_propagate(self, ledger):
        with pytest.raises(ValueError):
            ledger.credit("system", "gold", 1)

    def test_transfer_cash_out_and_history(self, ledger):
        ledger.credit(ALICE, "gold", 20)

        assert ledger.transfer(ALICE, BOB, "gold", 5, "rent").ok
        payload = ledger.cash_out(BOB, "gold", 2).value
        assert ledger.cash_in(ALICE, payload).value == Decimal("2")
        assert ledger.debit(ALICE, "gold", 1, audit_note="fee").value.kind is TransactionKind.BURN

        history = ledger.query_by_account(ALICE).value
        assert [record.kind for record in history] == [
            TransactionKind.MINT,
            TransactionKind.PAY,
            TransactionKind.CASH_IN,
            TransactionKind.BURN,
        ]
        assert ledger.get_balances(BOB).value["gold"] == Decimal("3")
        assert ledger.reconcile(ALICE).value.balanced


@pytest.mark.db
class TestBuildLedger:
    def test_builds_from_configuration(self, test_config, temp_db_path, journal_path):
        ledger = build_ledger()

        assert isinstance(ledger, LedgerFacade)
        assert temp_db_path.exists()
        assert ledger.currencies.denominations == ("coin", "copper", "silver", "gold")
        assert ledger.engine.journal_path == journal_path
        assert ledger.codec.namespace == "currency_ledger"

        ledger.credit(ALICE, "gold", 1)
        assert journal_path.exists()

    def test_journal_disabled(self, test_config, monkeypatch):
        monkeypatch.setattr(test_config.ledger, "journal_enabled", False)

        ledger = build_ledger()

        assert ledger.engine.journal_path is None

    def test_custom_denominations_and_secret(self, test_config, monkeypatch):
        monkeypatch.setattr(test_config.currency, "denominations", ["gem", "shard"])
        monkeypatch.setattr(test_config.currency, "decimal_places", 0)
        monkeypatch.setattr(test_config.tokens, "secret", "k")

        ledger = build_ledger(test_config)

        assert ledger.currencies.denominations == ("gem", "shard")
        assert ledger.credit(ALICE, "gem", "1.5").error_code == "invalid_amount"
        assert ledger.credit(ALICE, "gold", 1).error_code == "unknown_denomination"
        payload = ledger.codec.encode("gem", 2)
        assert ledger.codec.decode(payload) == ("gem", Decimal("2"))
