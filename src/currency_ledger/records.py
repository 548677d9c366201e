"""Transaction record types and balance replay."""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum

# Pseudo-parties used on the side of a record that is not a player account.
SYSTEM_PARTY = "system"
TOKEN_PARTY = "token"
RESERVED_PARTIES = frozenset({SYSTEM_PARTY, TOKEN_PARTY})


class TransactionKind(str, Enum):
    """Kinds of ledger records.

    ``MINT``      system → account (admin grant)
    ``PAY``       account → account
    ``CASH_OUT``  account → token
    ``CASH_IN``   token → account
    ``BURN``      account → system (audited standalone debit)
    """

    MINT = "mint"
    PAY = "pay"
    CASH_OUT = "cash-out"
    CASH_IN = "cash-in"
    BURN = "burn"


@dataclass(frozen=True, slots=True)
class TransactionRecord:
    """An immutable transaction log entry.

    ``id`` and ``timestamp`` are ``None`` on a record that has not yet been
    appended; :meth:`TransactionLog.append` returns the assigned id and
    ``query_by_account`` yields fully populated records.
    """

    from_party: str
    to_party: str
    denomination: str
    amount: Decimal
    kind: TransactionKind
    note: str = ""
    timestamp: str | None = None
    id: int | None = None

    def __post_init__(self) -> None:
        if self.amount <= 0:
            raise ValueError(f"Transaction amount must be positive, got {self.amount}.")
        if self.kind is TransactionKind.PAY and self.from_party == self.to_party:
            raise ValueError("Pay records must reference two different accounts.")

    def involves(self, account_id: str) -> bool:
        return account_id in (self.from_party, self.to_party)

    def to_dict(self) -> dict:
        """JSON-friendly view; amounts are rendered as strings."""
        return {
            "id": self.id,
            "from": self.from_party,
            "to": self.to_party,
            "denomination": self.denomination,
            "amount": str(self.amount),
            "kind": self.kind.value,
            "note": self.note,
            "timestamp": self.timestamp,
        }


def replay_balances(records: Iterable[TransactionRecord]) -> dict[str, dict[str, Decimal]]:
    """Recompute balances per account and denomination from a record stream.

    Pseudo-parties (``system``/``token``) are skipped.  Standalone debits
    that were not audited leave no record, so the replay only matches the
    stored balance when every debit went through a recorded operation.
    """
    balances: dict[str, dict[str, Decimal]] = defaultdict(lambda: defaultdict(Decimal))
    for record in records:
        if record.from_party not in RESERVED_PARTIES:
            balances[record.from_party][record.denomination] -= record.amount
        if record.to_party not in RESERVED_PARTIES:
            balances[record.to_party][record.denomination] += record.amount
    return {account: dict(per_denom) for account, per_denom in balances.items()}
