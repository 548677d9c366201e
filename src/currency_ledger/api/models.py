"""
Pydantic models for API requests and responses.

Amounts cross the wire as strings (``"12.50"``) so no precision is lost in
JSON number handling.  Requests also accept integers and floats; the ledger
rejects anything with more fractional digits than the configured precision.

Models are organized into two categories:
1. Request models: Data sent FROM the client TO the server
2. Response models: Data sent FROM the server TO the client
"""

from pydantic import BaseModel

from currency_ledger.records import TransactionRecord

AmountInput = str | int | float

# ============================================================================
# REQUEST MODELS (Client → Server)
# ============================================================================


class MintRequest(BaseModel):
    """
    Admin grant into an account.

    Attributes:
        denomination: Denomination name (case-insensitive)
        amount: Positive amount to mint
        note: Free-text reason stored on the record
    """

    denomination: str
    amount: AmountInput
    note: str = ""


class PayRequest(BaseModel):
    """
    Account-to-account transfer.

    Attributes:
        to_account: Receiving account id (initialized if new)
        denomination: Denomination name
        amount: Positive amount to move
        note: Free-text note stored on the ``pay`` record
    """

    to_account: str
    denomination: str
    amount: AmountInput
    note: str = ""


class CashOutRequest(BaseModel):
    """Convert part of a balance into a portable cash token."""

    denomination: str
    amount: AmountInput


class CashInRequest(BaseModel):
    """
    Redeem a cash token payload.

    Attributes:
        payload: The namespaced key/value entries read from the carrier object
    """

    payload: dict[str, str]


# ============================================================================
# RESPONSE MODELS (Server → Client)
# ============================================================================


class AccountResponse(BaseModel):
    """Account initialization result with its current balances."""

    account_id: str
    created: bool
    balances: dict[str, str]


class BalancesResponse(BaseModel):
    account_id: str
    balances: dict[str, str]


class BalanceResponse(BaseModel):
    account_id: str
    denomination: str
    balance: str


class TransactionResponse(BaseModel):
    """One committed transaction record."""

    id: int | None
    from_account: str
    to_account: str
    denomination: str
    amount: str
    kind: str
    note: str
    timestamp: str | None

    @classmethod
    def from_record(cls, record: TransactionRecord) -> "TransactionResponse":
        return cls(
            id=record.id,
            from_account=record.from_party,
            to_account=record.to_party,
            denomination=record.denomination,
            amount=str(record.amount),
            kind=record.kind.value,
            note=record.note,
            timestamp=record.timestamp,
        )


class HistoryResponse(BaseModel):
    account_id: str
    transactions: list[TransactionResponse]


class CashOutResponse(BaseModel):
    """
    Issued cash token.

    Attributes:
        account_id: Debited account
        payload: Entries to attach to the carrier object
    """

    account_id: str
    payload: dict[str, str]


class CashInResponse(BaseModel):
    account_id: str
    denomination: str
    amount: str
