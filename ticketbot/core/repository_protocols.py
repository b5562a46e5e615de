"""Boundary Protocols — contracts between the conversation core and external services.

Invariants:
    - Core NEVER imports from shell; dependency arrows point inward only
    - Implementations live in infrastructure/ and are injected by services/ or tests
    - Every method is async: implementations do network or file IO
"""

from typing import Protocol

from ticketbot.core.domain_types import TypingState


class MessagingChannel(Protocol):
    """Outbound buyer channel (WhatsApp Cloud API in production)."""
    async def send_text(self, to: str, body: str, preview_url: bool = False) -> None: ...
    async def send_image(self, to: str, image_url: str, caption: str | None = None) -> None: ...
    async def send_typing(self, to: str, state: TypingState) -> None: ...


class PaymentInitialization(Protocol):
    reference: str
    access_code: str | None
    authorization_url: str


class PaymentGateway(Protocol):
    """Transaction initialization (Paystack in production)."""
    async def initialize_transaction(
        self,
        *,
        email: str,
        amount_minor: int,
        currency: str,
        reference: str,
        metadata: dict,
        callback_url: str | None,
    ) -> PaymentInitialization: ...


class QrImageStore(Protocol):
    """Renders a QR payload and returns the public URL of the stored image."""
    async def save_ticket_qr(self, order_id: str, ticket_id: str, payload: str) -> str: ...
    async def discard_order(self, order_id: str) -> None: ...
