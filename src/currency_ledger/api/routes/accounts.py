"""Account endpoints: balances, history, mint, pay and cash tokens.

Handlers are plain ``def`` functions; FastAPI runs them in its threadpool,
so the blocking ledger calls (lock waits, SQLite I/O) never stall the event
loop.
"""

from itertools import islice

from fastapi import APIRouter, Query

from currency_ledger.api.models import (
    AccountResponse,
    BalanceResponse,
    BalancesResponse,
    CashInRequest,
    CashInResponse,
    CashOutRequest,
    CashOutResponse,
    HistoryResponse,
    MintRequest,
    PayRequest,
    TransactionResponse,
)
from currency_ledger.api.routes.utils import raise_ledger_http_error, unwrap
from currency_ledger.facade import LedgerFacade
from currency_ledger.records import RESERVED_PARTIES


def _check_account(account_id: str) -> str:
    if not account_id.strip() or account_id in RESERVED_PARTIES:
        raise_ledger_http_error("invalid_account", f"Account id {account_id!r} is not allowed.")
    return account_id


def router(ledger: LedgerFacade) -> APIRouter:
    """Build the accounts router bound to one ledger facade."""
    api = APIRouter(prefix="/accounts", tags=["accounts"])
    currencies = ledger.currencies

    def _balances(account_id: str) -> dict[str, str]:
        balances = unwrap(ledger.get_balances(account_id))
        return {name: currencies.format_amount(value) for name, value in balances.items()}

    @api.post("/{account_id}", response_model=AccountResponse)
    def ensure_account(account_id: str):
        """Initialize every denomination for the account; idempotent."""
        _check_account(account_id)
        created = unwrap(ledger.ensure_account(account_id))
        return AccountResponse(
            account_id=account_id, created=created, balances=_balances(account_id)
        )

    @api.get("/{account_id}/balances", response_model=BalancesResponse)
    def get_balances(account_id: str):
        return BalancesResponse(account_id=account_id, balances=_balances(account_id))

    @api.get("/{account_id}/balances/{denomination}", response_model=BalanceResponse)
    def get_balance(account_id: str, denomination: str):
        balance = unwrap(ledger.get_balance(account_id, denomination))
        return BalanceResponse(
            account_id=account_id,
            denomination=currencies.denomination(denomination),
            balance=currencies.format_amount(balance),
        )

    @api.get("/{account_id}/transactions", response_model=HistoryResponse)
    def get_transactions(account_id: str, limit: int | None = Query(default=None, ge=1)):
        """Account history, oldest first; ``limit`` keeps the first N records."""
        records = unwrap(ledger.query_by_account(account_id))
        if limit is not None:
            records = list(islice(records, limit))
        return HistoryResponse(
            account_id=account_id,
            transactions=[TransactionResponse.from_record(record) for record in records],
        )

    @api.post("/{account_id}/mint", response_model=TransactionResponse)
    def mint(account_id: str, request: MintRequest):
        """Admin grant: credit the account from the system party."""
        _check_account(account_id)
        record = unwrap(
            ledger.credit(account_id, request.denomination, request.amount, note=request.note)
        )
        return TransactionResponse.from_record(record)

    @api.post("/{account_id}/pay", response_model=TransactionResponse)
    def pay(account_id: str, request: PayRequest):
        _check_account(account_id)
        _check_account(request.to_account)
        record = unwrap(
            ledger.transfer(
                account_id,
                request.to_account,
                request.denomination,
                request.amount,
                request.note,
            )
        )
        return TransactionResponse.from_record(record)

    @api.post("/{account_id}/cash-out", response_model=CashOutResponse)
    def cash_out(account_id: str, request: CashOutRequest):
        """Debit the account and return a token payload for the carrier object."""
        _check_account(account_id)
        payload = unwrap(ledger.cash_out(account_id, request.denomination, request.amount))
        return CashOutResponse(account_id=account_id, payload=payload.as_dict())

    @api.post("/{account_id}/cash-in", response_model=CashInResponse)
    def cash_in(account_id: str, request: CashInRequest):
        """Redeem a token payload; the caller must consume the carrier on success."""
        _check_account(account_id)
        amount = unwrap(ledger.cash_in(account_id, request.payload))
        denomination = currencies.denomination(request.payload[ledger.codec.denomination_key])
        return CashInResponse(
            account_id=account_id,
            denomination=denomination,
            amount=currencies.format_amount(amount),
        )

    return api
