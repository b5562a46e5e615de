"""WhatsApp Webhook — subscription verification and inbound buyer messages.

Invariants:
    - GET answers Meta's hub challenge only for mode=subscribe with the configured verify token
    - POST processes messages sequentially in payload order; non-text messages are skipped
    - POST always acknowledges with {"received": true}; per-message failures are logged only
"""

import logging

from fastapi import APIRouter, Depends, Query, Request, status
from fastapi.responses import PlainTextResponse
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from ticketbot.api.dependencies import get_messaging_channel, get_payment_gateway
from ticketbot.config import Settings, get_settings
from ticketbot.core.errors import InvalidWebhookPayloadError
from ticketbot.core.normalize_message import normalize_inbound
from ticketbot.core.repository_protocols import MessagingChannel, PaymentGateway
from ticketbot.infrastructure.database import get_db
from ticketbot.schemas.whatsapp import WebhookAck, WhatsAppWebhookPayload
from ticketbot.services.conversation import ConversationService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/webhooks/whatsapp", tags=["whatsapp"])


@router.get("", response_class=PlainTextResponse)
async def verify_subscription(
    mode: str | None = Query(None, alias="hub.mode"),
    verify_token: str | None = Query(None, alias="hub.verify_token"),
    challenge: str | None = Query(None, alias="hub.challenge"),
    settings: Settings = Depends(get_settings),
):
    """Meta webhook verification handshake."""
    expected = settings.whatsapp_verify_token
    if mode == "subscribe" and expected and verify_token == expected:
        return PlainTextResponse(challenge or "", status_code=status.HTTP_200_OK)
    logger.warning("WhatsApp webhook verification rejected")
    return PlainTextResponse("Forbidden", status_code=status.HTTP_403_FORBIDDEN)


@router.post("", response_model=WebhookAck)
async def receive_messages(
    request: Request,
    db: AsyncSession = Depends(get_db),
    channel: MessagingChannel = Depends(get_messaging_channel),
    gateway: PaymentGateway = Depends(get_payment_gateway),
    settings: Settings = Depends(get_settings),
):
    """Inbound message notifications from the WhatsApp Cloud API."""
    try:
        payload = WhatsAppWebhookPayload.model_validate(await request.json())
    except (ValueError, ValidationError) as e:
        raise InvalidWebhookPayloadError("whatsapp", str(e)[:200])

    service = ConversationService(db, channel, gateway, settings)
    for message in payload.iter_messages():
        inbound = normalize_inbound(
            message.from_, message.type, message.text_body, message.id,
        )
        if inbound is None:
            logger.debug(f"Skipping non-text message of type {message.type!r}")
            continue
        try:
            await service.handle_message(inbound)
        except Exception:
            await db.rollback()
            logger.exception(
                "Inbound message processing failed",
                extra={"sender": inbound.sender},
            )
    return WebhookAck()
