"""Currency Ledger - multi-denomination wallets for game servers.

Tracks per-account balances across a closed set of denominations, applies
atomic credit/debit/transfer operations, records an append-only transaction
history, and converts balances into portable cash tokens and back.

Version Management
------------------
``__version__`` is read from the installed package metadata at import time.
The single source of truth is the ``version`` field in ``pyproject.toml``.
"""

from __future__ import annotations

from importlib.metadata import PackageNotFoundError, version

# ---------------------------------------------------------------------------
# Package version - read from pyproject.toml via importlib.metadata.
#
# If the package is imported without being installed we fall back to a
# static string so the application can still start.
# ---------------------------------------------------------------------------
try:
    __version__: str = version("currency-ledger")
except PackageNotFoundError:
    __version__ = "0.1.0"
