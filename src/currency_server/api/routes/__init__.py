"""API route registration."""

from fastapi import FastAPI

from currency_server.api.auth import SessionRegistry
from currency_server.api.routes import currency, health
from currency_server.ledger import Ledger


def register_routes(app: FastAPI, ledger: Ledger, sessions: SessionRegistry) -> None:
    """Register all API routes with the FastAPI app."""
    app.include_router(health.router(ledger, sessions))
    app.include_router(currency.router(ledger, sessions), prefix="/api")
