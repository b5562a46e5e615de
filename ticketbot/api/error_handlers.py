"""Error Handlers — global exception handlers for the ticketbot API.

Invariants:
    - TicketBotError → structured JSON with error code, message, severity
    - Exception (catch-all) → never leaks internal details

Design Decisions:
    - Two layers: domain (TicketBotError) and catch-all (Exception); webhook bodies are
      parsed inside the routes, so malformed payloads arrive as InvalidWebhookPayloadError
    - Kept out of main.py so the app module only wires things together
"""

import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from ticketbot.core.errors import TicketBotError, ErrorSeverity

logger = logging.getLogger(__name__)


def register_error_handlers(app: FastAPI) -> None:
    """Register all global error handlers on the FastAPI app."""
    _register_ticketbot_error_handler(app)
    _register_generic_error_handler(app)


def _register_ticketbot_error_handler(app: FastAPI) -> None:

    @app.exception_handler(TicketBotError)
    async def ticketbot_error_handler(request: Request, exc: TicketBotError):
        """Handle all ticketbot domain/infrastructure errors."""
        log = logger.warning if exc.http_status < 500 else logger.error
        log(
            f"TicketBotError: {exc.message}",
            extra={"error_code": exc.code, "path": request.url.path},
        )
        return JSONResponse(
            status_code=exc.http_status, content=exc.to_response(),
        )


def _register_generic_error_handler(app: FastAPI) -> None:

    @app.exception_handler(Exception)
    async def generic_error_handler(request: Request, exc: Exception):
        """Catch-all — never leaks internal details."""
        logger.error(
            f"Unhandled exception on {request.url.path}: {exc}",
            exc_info=True,
        )
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "error": {
                    "code": "INTERNAL_ERROR",
                    "message": "An unexpected error occurred",
                    "category": "internal",
                    "severity": ErrorSeverity.CRITICAL.value,
                },
            },
        )
