"""Paystack Webhook — authenticated charge events feeding the payment finalizer.

Invariants:
    - The raw body is authenticated with x-paystack-signature before it is parsed
    - Invalid signature → 401, unparseable body → 400, nothing touched in either case
    - Events for other channels or with incomplete metadata are acknowledged and dropped
"""

import logging

from fastapi import APIRouter, Depends, Header, Request
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from ticketbot.api.dependencies import get_messaging_channel, get_qr_store
from ticketbot.config import Settings, get_settings
from ticketbot.core.errors import InvalidWebhookPayloadError, WebhookSignatureError
from ticketbot.core.repository_protocols import MessagingChannel, QrImageStore
from ticketbot.infrastructure.database import get_db
from ticketbot.infrastructure.paystack_client import SIGNATURE_HEADER, verify_signature
from ticketbot.schemas.paystack import PaystackAck, PaystackEvent
from ticketbot.services.finalize_payment import PaymentFinalizer

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/webhooks/paystack", tags=["paystack"])


@router.post("", response_model=PaystackAck)
async def receive_event(
    request: Request,
    signature: str | None = Header(None, alias=SIGNATURE_HEADER),
    db: AsyncSession = Depends(get_db),
    channel: MessagingChannel = Depends(get_messaging_channel),
    qr_store: QrImageStore = Depends(get_qr_store),
    settings: Settings = Depends(get_settings),
):
    """Gateway callback for charge.success / charge.failed."""
    raw_body = await request.body()
    if not verify_signature(settings.paystack_secret_key, raw_body, signature):
        raise WebhookSignatureError("paystack")

    try:
        event = PaystackEvent.model_validate_json(raw_body)
    except ValidationError as e:
        raise InvalidWebhookPayloadError("paystack", str(e)[:200])

    outcome = await PaymentFinalizer(db, channel, qr_store, settings).handle_event(event)
    logger.info(
        f"Paystack event {event.event!r} handled: {outcome.status}",
        extra={"order_id": outcome.order_id, "reference": event.data.reference},
    )
    return PaystackAck(event=event.event)
