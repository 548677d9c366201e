"""Typed ledger exceptions.

Every failure the ledger reports to its callers is a subclass of
:class:`LedgerError`.  Each class carries a stable ``code`` string so outer
layers (the facade, the HTTP API, the CLI) can map failures to messages and
status codes without matching on exception text.

Hierarchy::

    LedgerError
    ├── InvalidAmount
    ├── UnknownDenomination
    ├── InsufficientFunds
    ├── SelfTransfer
    ├── TokenError
    │   ├── NotAToken
    │   └── CorruptToken
    ├── LockTimeout
    └── StorageUnavailable        (see currency_ledger.db.errors)
        ├── StorageReadError
        └── StorageWriteError
"""

from __future__ import annotations

from decimal import Decimal


class LedgerError(Exception):
    """Base exception for all ledger failures."""

    code = "ledger_error"


class InvalidAmount(LedgerError):
    """Amount is non-positive, negative where a balance is written, or malformed."""

    code = "invalid_amount"


class UnknownDenomination(LedgerError):
    """Denomination is outside the configured set."""

    code = "unknown_denomination"

    def __init__(self, denomination: object, known: tuple[str, ...] = ()) -> None:
        message = f"Unknown denomination {denomination!r}"
        if known:
            message = f"{message}; expected one of: {', '.join(known)}"
        super().__init__(message)
        self.denomination = denomination


class InsufficientFunds(LedgerError):
    """Debit or transfer exceeds the available balance.

    Attributes:
        account_id: Account that was short.
        denomination: Denomination being debited.
        balance: Balance at the time of the check.
        requested: Amount that was requested.
    """

    code = "insufficient_funds"

    def __init__(
        self,
        account_id: str,
        denomination: str,
        balance: Decimal,
        requested: Decimal,
    ) -> None:
        super().__init__(
            f"Account {account_id!r} has {balance} {denomination}, "
            f"cannot debit {requested}"
        )
        self.account_id = account_id
        self.denomination = denomination
        self.balance = balance
        self.requested = requested


class SelfTransfer(LedgerError):
    """Transfer source and destination are the same account."""

    code = "self_transfer"


class TokenError(LedgerError):
    """Base exception for cash token decode failures."""

    code = "token_error"


class NotAToken(TokenError):
    """Payload does not carry the cash marker."""

    code = "not_a_token"


class CorruptToken(TokenError):
    """Payload carries the marker but is incomplete, invalid, or tampered with."""

    code = "corrupt_token"


class LockTimeout(LedgerError):
    """Per-key lock could not be acquired within the configured bound."""

    code = "lock_timeout"


class StorageUnavailable(LedgerError):
    """Storage backend I/O failure; the operation was rolled back."""

    code = "storage_unavailable"
