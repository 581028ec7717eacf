"""Health and root endpoints.

Provides the root ``/`` endpoint (API identity and version) and the
``/health`` endpoint (liveness check with backend name and active session
count). Neither endpoint requires a session.
"""

from fastapi import APIRouter

from currency_server import __version__
from currency_server.api.auth import SessionRegistry
from currency_server.api.models import HealthResponse
from currency_server.ledger import Ledger


def router(ledger: Ledger, sessions: SessionRegistry) -> APIRouter:
    api = APIRouter()

    @api.get("/")
    def root():
        """Root endpoint showing API identity and current version."""
        return {"message": "Currency Server API", "version": __version__}

    @api.get("/health", response_model=HealthResponse)
    def health_check():
        """Health check endpoint."""
        return HealthResponse(
            status="ok",
            backend=ledger.store.name,
            active_sessions=sessions.active_count(),
        )

    return api
