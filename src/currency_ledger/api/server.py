"""
FastAPI server for the currency ledger.

This module builds the FastAPI application that exposes the ledger over
HTTP. It sets up:
- CORS middleware for cross-origin requests from game frontends and tools
- The ledger facade that every route delegates to
- All API route endpoints for balances, transfers and cash tokens

The server listens on 127.0.0.1:8100 by default; see ``[server]`` in
``config/ledger.ini`` or ``LEDGER_HOST``/``LEDGER_PORT``.
"""

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from currency_ledger import __version__
from currency_ledger.api.routes import register_routes
from currency_ledger.facade import LedgerFacade, build_ledger

logger = logging.getLogger(__name__)


def create_app(ledger: LedgerFacade | None = None) -> FastAPI:
    """
    Create the FastAPI application.

    Args:
        ledger: Facade to serve. Built from the loaded configuration when
            omitted (this also creates the database schema).

    Returns:
        The configured application with all routes registered.
    """
    if ledger is None:
        ledger = build_ledger()

    app = FastAPI(title="Currency Ledger", version=__version__)

    # In production, restrict allow_origins to the frontends that need access.
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.ledger = ledger
    register_routes(app, ledger)
    return app


def start_server(host: str | None = None, port: int | None = None) -> None:
    """
    Run the API with uvicorn until interrupted.

    Args:
        host: Interface to bind; defaults to ``config.server.host``.
        port: Port to bind; defaults to ``config.server.port``.
    """
    import uvicorn

    from currency_ledger.config import config

    host = host or config.server.host
    port = port or config.server.port

    app = create_app()
    logger.info("Starting ledger API on %s:%s", host, port)
    uvicorn.run(app, host=host, port=port, log_config=None)
