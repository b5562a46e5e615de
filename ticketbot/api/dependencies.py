"""API Dependencies — FastAPI providers for the outbound adapters.

Invariants:
    - Adapters are created once in the lifespan and stored on app.state
    - Tests replace these providers through app.dependency_overrides
"""

from fastapi import Request

from ticketbot.core.repository_protocols import (
    MessagingChannel, PaymentGateway, QrImageStore,
)


def get_messaging_channel(request: Request) -> MessagingChannel:
    return request.app.state.messaging_channel


def get_payment_gateway(request: Request) -> PaymentGateway:
    return request.app.state.payment_gateway


def get_qr_store(request: Request) -> QrImageStore:
    return request.app.state.qr_store
