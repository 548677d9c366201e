"""HTTP API for the currency ledger (FastAPI)."""
