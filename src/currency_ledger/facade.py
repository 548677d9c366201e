"""App-facing ledger surface.

The engine and codec raise typed :class:`~currency_ledger.errors.LedgerError`
subclasses.  Outer layers (the HTTP routes, the CLI, a game command handler)
usually want a value they can branch on instead, so every operation here
returns a :class:`LedgerOutcome`:

    outcome = ledger.transfer("alice", "bob", "gold", "5")
    if not outcome.ok:
        reply(MESSAGES[outcome.error_code])

Only ledger errors are converted.  Anything else (a programming error, a
``ValueError`` for a reserved account id) propagates unchanged.

:func:`build_ledger` wires a facade from configuration.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Generic, TypeVar

from currency_ledger.config import LedgerConfig
from currency_ledger.currency import CurrencyConfig
from currency_ledger.db.backend import SQLiteBackend
from currency_ledger.engine import LedgerEngine, ReconcileReport
from currency_ledger.errors import LedgerError
from currency_ledger.records import TransactionRecord
from currency_ledger.tokens import CashTokenCodec, TokenPayload

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class LedgerOutcome(Generic[T]):
    """Result of a facade call.

    Attributes:
        ok: True when the operation committed (or the read succeeded).
        value: Operation result on success, else ``None``.
        error: The ledger error on failure, else ``None``.
    """

    ok: bool
    value: T | None = None
    error: LedgerError | None = None

    @property
    def error_code(self) -> str | None:
        """Stable machine-readable code, e.g. ``"insufficient_funds"``."""
        return self.error.code if self.error is not None else None

    @property
    def message(self) -> str:
        return str(self.error) if self.error is not None else ""


def _run(operation: str, call: Callable[[], T]) -> LedgerOutcome[T]:
    try:
        return LedgerOutcome(ok=True, value=call())
    except LedgerError as exc:
        logger.debug("%s failed: %s (%s)", operation, exc.code, exc)
        return LedgerOutcome(ok=False, error=exc)


class LedgerFacade:
    """Outcome-returning wrapper over a :class:`LedgerEngine` and its codec."""

    def __init__(self, engine: LedgerEngine, codec: CashTokenCodec) -> None:
        self.engine = engine
        self.codec = codec

    @property
    def currencies(self) -> CurrencyConfig:
        return self.engine.currencies

    def ensure_account(self, account_id: str) -> LedgerOutcome[bool]:
        return _run("ensure_account", lambda: self.engine.ensure_account(account_id))

    def credit(
        self, account_id: str, denomination: str, amount: Any, *, note: str = ""
    ) -> LedgerOutcome[TransactionRecord]:
        return _run(
            "credit",
            lambda: self.engine.credit(account_id, denomination, amount, note=note),
        )

    def debit(
        self,
        account_id: str,
        denomination: str,
        amount: Any,
        *,
        audit_note: str | None = None,
    ) -> LedgerOutcome[TransactionRecord | None]:
        return _run(
            "debit",
            lambda: self.engine.debit(account_id, denomination, amount, audit_note=audit_note),
        )

    def transfer(
        self,
        from_id: str,
        to_id: str,
        denomination: str,
        amount: Any,
        note: str = "",
    ) -> LedgerOutcome[TransactionRecord]:
        return _run(
            "transfer",
            lambda: self.engine.transfer(from_id, to_id, denomination, amount, note),
        )

    def get_balance(self, account_id: str, denomination: str) -> LedgerOutcome[Decimal]:
        return _run("get_balance", lambda: self.engine.get_balance(account_id, denomination))

    def get_balances(self, account_id: str) -> LedgerOutcome[dict[str, Decimal]]:
        return _run("get_balances", lambda: self.engine.get_balances(account_id))

    def cash_out(
        self, account_id: str, denomination: str, amount: Any
    ) -> LedgerOutcome[TokenPayload]:
        return _run(
            "cash_out",
            lambda: self.codec.cash_out(self.engine, account_id, denomination, amount),
        )

    def cash_in(self, account_id: str, payload: Mapping[str, object]) -> LedgerOutcome[Decimal]:
        return _run("cash_in", lambda: self.codec.cash_in(self.engine, account_id, payload))

    def query_by_account(self, account_id: str) -> LedgerOutcome[list[TransactionRecord]]:
        """Materialized history; use ``engine.query_by_account`` to stream."""
        return _run("query_by_account", lambda: list(self.engine.query_by_account(account_id)))

    def reconcile(self, account_id: str) -> LedgerOutcome[ReconcileReport]:
        return _run("reconcile", lambda: self.engine.reconcile(account_id))


def build_ledger(cfg: LedgerConfig | None = None) -> LedgerFacade:
    """Build a ready-to-use facade from configuration.

    Creates the database schema if needed.  The denomination registry is
    fixed for the lifetime of the returned facade.

    Args:
        cfg: Configuration to use; defaults to the module-level ``config``.
    """
    if cfg is None:
        from currency_ledger.config import config as cfg

    currencies = CurrencyConfig.from_names(
        cfg.currency.denominations, decimal_places=cfg.currency.decimal_places
    )
    backend = SQLiteBackend(
        cfg.database.absolute_path,
        currencies,
        busy_timeout_ms=cfg.database.busy_timeout_ms,
    )
    backend.initialize_schema()

    journal_path = cfg.ledger.absolute_journal_path if cfg.ledger.journal_enabled else None
    engine = LedgerEngine(
        backend,
        currencies,
        lock_timeout=cfg.ledger.lock_timeout_seconds,
        journal_path=journal_path,
    )
    codec = CashTokenCodec(currencies, namespace=cfg.tokens.namespace, secret=cfg.tokens.secret)
    logger.debug(
        "Ledger built: db=%s denominations=%s journal=%s",
        backend.path,
        ",".join(currencies.denominations),
        journal_path,
    )
    return LedgerFacade(engine, codec)
