"""Ledger engine: atomic balance mutations over the account store and log.

Every mutating operation follows the same shape:

1. Validate inputs against the currency registry (``InvalidAmount``,
   ``UnknownDenomination``, ``SelfTransfer``).
2. Acquire the per-key locks for every ``(account_id, denomination)`` the
   operation touches, in sorted order, with a bounded wait (``LockTimeout``).
3. Open one storage unit of work, read balances, check funds
   (``InsufficientFunds``), write balances and append the record.  Any
   failure inside the unit rolls the whole unit back.
4. After commit, and before the key locks are released, mirror the record
   to the JSONL journal (non-fatal).  Journal lines for one account appear
   in record-id order; lines for unrelated accounts may interleave out of id
   order because their locks are independent.

The engine has no threads of its own; it is a blocking API that is safe to
call from many threads at once.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from decimal import Decimal
from pathlib import Path
from typing import cast

from currency_ledger.currency import ZERO, CurrencyConfig
from currency_ledger.db.types import StorageBackend, StorageSession
from currency_ledger.errors import InsufficientFunds, InvalidAmount, SelfTransfer
from currency_ledger.journal import JournalWriteError, append_record
from currency_ledger.locks import KeyLockArena
from currency_ledger.records import (
    RESERVED_PARTIES,
    SYSTEM_PARTY,
    TransactionKind,
    TransactionRecord,
    replay_balances,
)

logger = logging.getLogger(__name__)

_DEPOSIT_KINDS = frozenset({TransactionKind.MINT, TransactionKind.CASH_IN})
_WITHDRAW_KINDS = frozenset({TransactionKind.CASH_OUT, TransactionKind.BURN})


@dataclass(frozen=True)
class ReconcileReport:
    """Stored balances versus balances replayed from the transaction log.

    Attributes:
        account_id: Account that was checked.
        stored: Balances read from the account store.
        replayed: Balances recomputed from the account's records.
        discrepancies: ``{denomination: (stored, replayed)}`` where they differ.
    """

    account_id: str
    stored: dict[str, Decimal]
    replayed: dict[str, Decimal]
    discrepancies: dict[str, tuple[Decimal, Decimal]] = field(default_factory=dict)

    @property
    def balanced(self) -> bool:
        return not self.discrepancies


class LedgerEngine:
    """Atomic credit/debit/transfer operations with per-key serialization.

    Args:
        backend: Storage satisfying :class:`~currency_ledger.db.types.StorageBackend`.
        currencies: The closed denomination registry for this process.
        lock_timeout: Upper bound, in seconds, on waiting for account locks.
        journal_path: When set, committed records are mirrored to this JSONL file.
    """

    def __init__(
        self,
        backend: StorageBackend,
        currencies: CurrencyConfig,
        *,
        lock_timeout: float = 5.0,
        journal_path: Path | None = None,
    ) -> None:
        self._backend = backend
        self.currencies = currencies
        self._locks = KeyLockArena(timeout=lock_timeout)
        self.journal_path = journal_path

    # ── Validation helpers ────────────────────────────────────────────────────

    @staticmethod
    def _account(account_id: object) -> str:
        if not isinstance(account_id, str) or not account_id.strip():
            raise ValueError(f"Account id must be a non-empty string, got {account_id!r}.")
        if account_id in RESERVED_PARTIES:
            raise ValueError(f"Account id {account_id!r} is reserved.")
        return account_id

    @staticmethod
    def _now() -> str:
        return datetime.now(UTC).isoformat()

    def _commit_record(self, session: StorageSession, record: TransactionRecord) -> TransactionRecord:
        stamped = replace(record, timestamp=self._now())
        record_id = session.transactions.append(stamped)
        return replace(stamped, id=record_id)

    def _raised_balance(
        self, account_id: str, denomination: str, balance: Decimal, amount: Decimal
    ) -> Decimal:
        raised = balance + amount
        if not self.currencies.within_limit(raised):
            raise InvalidAmount(
                f"Crediting {amount} {denomination} would take {account_id!r} above "
                f"the maximum balance of {self.currencies.max_amount}"
            )
        return raised

    def _mirror(self, record: TransactionRecord) -> None:
        if self.journal_path is None:
            return
        try:
            append_record(record, path=self.journal_path)
        except JournalWriteError:
            logger.warning(
                "Journal write failed for record %s; ledger state is unaffected.",
                record.id,
                exc_info=True,
            )

    # ── Accounts ──────────────────────────────────────────────────────────────

    def ensure_account(self, account_id: str) -> bool:
        """Initialize every denomination for ``account_id``; idempotent.

        Returns:
            True when rows were created by this call.
        """
        account_id = self._account(account_id)
        with self._backend.unit_of_work() as session:
            created = session.accounts.initialize(account_id)
        if created:
            logger.info("Initialized account %s", account_id)
        return created

    def account_exists(self, account_id: str) -> bool:
        with self._backend.read_session() as session:
            return session.accounts.exists(account_id)

    def get_balance(self, account_id: str, denomination: str) -> Decimal:
        """Pure read; zero for an account or denomination with no row."""
        denomination = self.currencies.denomination(denomination)
        with self._backend.read_session() as session:
            return session.accounts.get_balance(account_id, denomination)

    def get_balances(self, account_id: str) -> dict[str, Decimal]:
        with self._backend.read_session() as session:
            return session.accounts.balances(account_id)

    # ── Mutations ─────────────────────────────────────────────────────────────

    def credit(
        self, account_id: str, denomination: str, amount: object, *, note: str = ""
    ) -> TransactionRecord:
        """Mint ``amount`` into the account and append a ``mint`` record."""
        return self.deposit(
            account_id,
            denomination,
            amount,
            kind=TransactionKind.MINT,
            counterparty=SYSTEM_PARTY,
            note=note,
        )

    def deposit(
        self,
        account_id: str,
        denomination: str,
        amount: object,
        *,
        kind: TransactionKind,
        counterparty: str,
        note: str = "",
    ) -> TransactionRecord:
        """Credit the account and append one ``kind`` record from ``counterparty``.

        The account is initialized in the same unit if it has never been seen.
        """
        if kind not in _DEPOSIT_KINDS:
            raise ValueError(f"{kind.value!r} is not a deposit kind.")
        account_id = self._account(account_id)
        denomination = self.currencies.denomination(denomination)
        amount = self.currencies.positive_amount(amount)
        record = TransactionRecord(
            from_party=counterparty,
            to_party=account_id,
            denomination=denomination,
            amount=amount,
            kind=kind,
            note=note,
        )

        with self._locks.hold([(account_id, denomination)]):
            with self._backend.unit_of_work() as session:
                session.accounts.initialize(account_id)
                balance = session.accounts.get_balance(account_id, denomination)
                raised = self._raised_balance(account_id, denomination, balance, amount)
                session.accounts.set_balance(account_id, denomination, raised)
                committed = self._commit_record(session, record)
            self._mirror(committed)

        logger.info(
            "%s %s %s to %s (record %s)",
            kind.value,
            amount,
            denomination,
            account_id,
            committed.id,
        )
        return committed

    def debit(
        self,
        account_id: str,
        denomination: str,
        amount: object,
        *,
        audit_note: str | None = None,
    ) -> TransactionRecord | None:
        """Remove ``amount`` from the account.

        A plain debit appends no record; it is the building block callers
        compose with their own audit trail.  Pass ``audit_note`` to append a
        ``burn`` record in the same unit.

        Returns:
            The ``burn`` record when one was requested, else ``None``.
        """
        if audit_note is not None:
            return self.withdraw(
                account_id,
                denomination,
                amount,
                kind=TransactionKind.BURN,
                counterparty=SYSTEM_PARTY,
                note=audit_note,
            )
        self._withdraw(account_id, denomination, amount, None)
        return None

    def withdraw(
        self,
        account_id: str,
        denomination: str,
        amount: object,
        *,
        kind: TransactionKind,
        counterparty: str,
        note: str = "",
    ) -> TransactionRecord:
        """Debit the account and append one ``kind`` record to ``counterparty``."""
        if kind not in _WITHDRAW_KINDS:
            raise ValueError(f"{kind.value!r} is not a withdrawal kind.")
        committed = self._withdraw(account_id, denomination, amount, (kind, counterparty, note))
        return cast(TransactionRecord, committed)

    def _withdraw(
        self,
        account_id: str,
        denomination: str,
        amount: object,
        audit: tuple[TransactionKind, str, str] | None,
    ) -> TransactionRecord | None:
        account_id = self._account(account_id)
        denomination = self.currencies.denomination(denomination)
        amount = self.currencies.positive_amount(amount)
        record = None
        if audit is not None:
            kind, counterparty, note = audit
            record = TransactionRecord(
                from_party=account_id,
                to_party=counterparty,
                denomination=denomination,
                amount=amount,
                kind=kind,
                note=note,
            )

        committed = None
        with self._locks.hold([(account_id, denomination)]):
            with self._backend.unit_of_work() as session:
                balance = session.accounts.get_balance(account_id, denomination)
                if balance < amount:
                    raise InsufficientFunds(account_id, denomination, balance, amount)
                session.accounts.set_balance(account_id, denomination, balance - amount)
                if record is not None:
                    committed = self._commit_record(session, record)
            if committed is not None:
                self._mirror(committed)

        if committed is None:
            logger.info("debit %s %s from %s", amount, denomination, account_id)
            return None
        logger.info(
            "%s %s %s from %s (record %s)",
            committed.kind.value,
            amount,
            denomination,
            account_id,
            committed.id,
        )
        return committed

    def transfer(
        self,
        from_id: str,
        to_id: str,
        denomination: str,
        amount: object,
        note: str = "",
    ) -> TransactionRecord:
        """Move ``amount`` between two accounts and append one ``pay`` record.

        Debit, credit and record form a single unit: a failure at any point
        leaves both balances and the log untouched.

        Raises:
            SelfTransfer: ``from_id == to_id``.
            InsufficientFunds: The source balance is below ``amount``.
        """
        from_id = self._account(from_id)
        to_id = self._account(to_id)
        if from_id == to_id:
            raise SelfTransfer(f"Account {from_id!r} cannot pay itself.")
        denomination = self.currencies.denomination(denomination)
        amount = self.currencies.positive_amount(amount)
        record = TransactionRecord(
            from_party=from_id,
            to_party=to_id,
            denomination=denomination,
            amount=amount,
            kind=TransactionKind.PAY,
            note=note,
        )

        with self._locks.hold([(from_id, denomination), (to_id, denomination)]):
            with self._backend.unit_of_work() as session:
                source = session.accounts.get_balance(from_id, denomination)
                if source < amount:
                    raise InsufficientFunds(from_id, denomination, source, amount)
                session.accounts.initialize(to_id)
                target = self._raised_balance(
                    to_id, denomination, session.accounts.get_balance(to_id, denomination), amount
                )
                session.accounts.set_balance(from_id, denomination, source - amount)
                session.accounts.set_balance(to_id, denomination, target)
                committed = self._commit_record(session, record)
            self._mirror(committed)

        logger.info(
            "pay %s %s from %s to %s (record %s)",
            amount,
            denomination,
            from_id,
            to_id,
            committed.id,
        )
        return committed

    # ── History ───────────────────────────────────────────────────────────────

    def query_by_account(self, account_id: str) -> Iterator[TransactionRecord]:
        """Lazy, restartable history for ``account_id``, oldest first."""
        return self._backend.query_by_account(account_id)

    def reconcile(self, account_id: str) -> ReconcileReport:
        """Compare stored balances with a replay of the account's records.

        The account's locks are held for the duration so no in-process
        mutation can land between the two reads.
        """
        keys = [(account_id, name) for name in self.currencies.denominations]
        with self._locks.hold(keys):
            stored = self.get_balances(account_id)
            replayed_all = replay_balances(self.query_by_account(account_id))
        per_denom = replayed_all.get(account_id, {})
        replayed = {name: per_denom.get(name, ZERO) for name in self.currencies.denominations}
        discrepancies = {
            name: (stored[name], replayed[name])
            for name in self.currencies.denominations
            if stored[name] != replayed[name]
        }
        if discrepancies:
            logger.warning("Account %s does not reconcile: %s", account_id, discrepancies)
        return ReconcileReport(
            account_id=account_id,
            stored=stored,
            replayed=replayed,
            discrepancies=discrepancies,
        )
