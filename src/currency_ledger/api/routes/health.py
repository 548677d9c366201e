"""Health and root endpoints.

Provides the root ``/`` endpoint (API identity and version) and the
``/health`` endpoint (liveness check with the active denomination set).

The version string is read from ``currency_ledger.__version__`` which is
resolved at import time via ``importlib.metadata``.
"""

from fastapi import APIRouter

from currency_ledger import __version__
from currency_ledger.config import get_config_status

router = APIRouter()


@router.get("/")
async def root():
    """Root endpoint showing API identity and current version."""
    return {"message": "Currency Ledger API", "version": __version__}


@router.get("/health")
async def health_check():
    """Health check endpoint."""
    status = get_config_status()
    return {
        "status": "ok",
        "denominations": status["denominations"],
        "journal_enabled": status["journal_enabled"],
    }
