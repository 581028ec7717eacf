"""
FastAPI backend server for the currency ledger.

:func:`create_app` builds the application around one explicitly supplied
:class:`~currency_server.ledger.Ledger` and sets up:
- CORS middleware for ``security.cors_origins``
- The session registry matching the ledger's backend
- Error handlers mapping request validation failures to 400 and
  infrastructure failures (``DatabaseError``) to 500
- All API route endpoints

The server runs on port 5000 by default.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from currency_server import __version__
from currency_server.api.auth import SessionRegistry, build_session_registry
from currency_server.api.routes import register_routes
from currency_server.config import ServerConfig
from currency_server.db.errors import DatabaseError
from currency_server.ledger import ErrorKind, Ledger

logger = logging.getLogger(__name__)


def _validation_message(exc: RequestValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "Invalid request."
    first = errors[0]
    location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = first.get("msg", "Invalid value")
    return f"{location}: {message}" if location else message


def create_app(
    ledger: Ledger | None = None,
    *,
    cfg: ServerConfig | None = None,
    sessions: SessionRegistry | None = None,
) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        ledger: Ledger to serve. Built from ``cfg`` when omitted.
        cfg: Configuration; defaults to the module-level ``config``.
        sessions: Session registry. Defaults to one matching the ledger's
            backend, sharing the ledger's clock.

    Returns:
        Configured FastAPI application.
    """
    if cfg is None:
        from currency_server.config import config as cfg
    if ledger is None:
        ledger = Ledger.from_config(cfg)
    if sessions is None:
        sessions = build_session_registry(
            ledger.store.name, cfg.session.ttl_minutes, clock=ledger.clock
        )

    app = FastAPI(title="Currency Server", version=__version__)
    app.state.ledger = ledger
    app.state.sessions = sessions
    app.state.allowed_ips = list(cfg.security.allowed_ips)

    if cfg.security.cors_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=cfg.security.cors_origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=400,
            content={
                "detail": {
                    "error": _validation_message(exc),
                    "kind": ErrorKind.INVALID_INPUT.value,
                }
            },
        )

    @app.exception_handler(DatabaseError)
    async def database_error_handler(request: Request, exc: DatabaseError):
        logger.error("Database failure on %s: %s", request.url.path, exc)
        return JSONResponse(
            status_code=500,
            content={"detail": {"error": "Internal server error", "kind": "DatabaseError"}},
        )

    register_routes(app, ledger, sessions)
    logger.info("Currency API ready (backend=%s)", ledger.store.name)
    return app


def start_server(host: str | None = None, port: int | None = None) -> None:
    """
    Start the API server with uvicorn.

    Args:
        host: Interface to bind; defaults to ``server.host``.
        port: Port to bind; defaults to ``server.port``.
    """
    import uvicorn

    from currency_server.config import config

    app = create_app(cfg=config)
    uvicorn.run(
        app,
        host=host or config.server.host,
        port=port or config.server.port,
        log_config=None,
    )
