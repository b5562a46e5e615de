"""Ticketbot API — FastAPI application entry point.

Invariants:
    - Routes registered explicitly (no auto-discovery)
    - Global error handlers map TicketBotError → structured JSON responses
    - Database and outbound adapters initialized on startup via lifespan, closed on shutdown
    - QR images served from settings.media_dir at /media

Design Decisions:
    - Lifespan over @app.on_event: FastAPI recommended pattern, cleaner cleanup
    - Adapters live on app.state so routes receive them through Depends (api/dependencies.py)
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.staticfiles import StaticFiles

from ticketbot.api.error_handlers import register_error_handlers
from ticketbot.api.routes import health, paystack_webhook, whatsapp_webhook
from ticketbot.config import get_settings
from ticketbot.infrastructure.database import init_db
from ticketbot.infrastructure.observability import setup_logging
from ticketbot.infrastructure.paystack_client import PaystackClient
from ticketbot.infrastructure.qr_images import MEDIA_URL_PREFIX, LocalQrImageStore
from ticketbot.infrastructure.whatsapp_client import WhatsAppClient

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup/shutdown lifecycle."""
    settings = get_settings()
    setup_logging(settings.log_level, settings.log_format)
    manager = init_db(
        settings.database_url,
        pool_size=settings.database_pool_size,
        max_overflow=settings.database_max_overflow,
    )
    whatsapp = WhatsAppClient(
        settings.whatsapp_phone_number_id,
        settings.whatsapp_access_token,
        graph_api_version=settings.whatsapp_graph_api_version,
        timeout_seconds=settings.whatsapp_timeout_seconds,
        max_retries=settings.whatsapp_max_retries,
        base_delay_ms=settings.whatsapp_base_delay_ms,
        max_delay_ms=settings.whatsapp_max_delay_ms,
    )
    paystack = PaystackClient(
        settings.paystack_secret_key,
        base_url=settings.paystack_base_url,
        timeout_seconds=settings.paystack_timeout_seconds,
        max_retries=settings.paystack_max_retries,
        base_delay_ms=settings.paystack_base_delay_ms,
        max_delay_ms=settings.paystack_max_delay_ms,
    )
    app.state.messaging_channel = whatsapp
    app.state.payment_gateway = paystack
    app.state.qr_store = LocalQrImageStore(settings.media_dir, settings.public_base_url)
    logger.info("Ticketbot API started")
    yield
    logger.info("Ticketbot API shutting down")
    await whatsapp.aclose()
    await paystack.aclose()
    await manager.dispose()


app = FastAPI(title="Ticketbot API", version="1.0.0", lifespan=lifespan)

# Routes — explicit registration
app.include_router(health.router)
app.include_router(whatsapp_webhook.router)
app.include_router(paystack_webhook.router)

# QR media (directory is created on first ticket issuance)
settings = get_settings()
app.mount(
    MEDIA_URL_PREFIX,
    StaticFiles(directory=settings.media_dir, check_dir=False),
    name="media",
)

register_error_handlers(app)
