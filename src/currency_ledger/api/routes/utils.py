"""Shared helpers for API route modules."""

from typing import NoReturn, TypeVar

from fastapi import HTTPException

from currency_ledger.facade import LedgerOutcome

T = TypeVar("T")

# Ledger error code -> HTTP status
ERROR_STATUS: dict[str, int] = {
    "invalid_account": 400,
    "invalid_amount": 400,
    "unknown_denomination": 400,
    "self_transfer": 400,
    "not_a_token": 400,
    "corrupt_token": 400,
    "insufficient_funds": 409,
    "lock_timeout": 503,
    "storage_unavailable": 503,
}


def raise_ledger_http_error(code: str, message: str) -> NoReturn:
    """Raise the HTTPException for a ledger error code.

    Codes not in :data:`ERROR_STATUS` (new subclasses, the generic
    ``ledger_error``) map to 500.
    """
    raise HTTPException(
        status_code=ERROR_STATUS.get(code, 500),
        detail={"error": code, "message": message},
    )


def unwrap(outcome: LedgerOutcome[T]) -> T:
    """Return the outcome's value or raise the matching HTTP error."""
    if not outcome.ok:
        raise_ledger_http_error(outcome.error_code or "ledger_error", outcome.message)
    return outcome.value  # type: ignore[return-value]
