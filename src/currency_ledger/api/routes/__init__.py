"""
Route registration entry point for the FastAPI application.

Exposes ``register_routes(app, ledger)`` and keeps each concern in its own
router module.
"""

from fastapi import FastAPI

from currency_ledger.api.routes import accounts, health
from currency_ledger.facade import LedgerFacade


def register_routes(app: FastAPI, ledger: LedgerFacade) -> None:
    """Register all API routes with the FastAPI app."""
    app.include_router(health.router)
    app.include_router(accounts.router(ledger))
