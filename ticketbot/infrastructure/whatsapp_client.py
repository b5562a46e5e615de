"""WhatsApp Cloud API Client — outbound text, image, and typing indicator messages.

Invariants:
    - Every call POSTs to https://graph.facebook.com/<version>/<phone-number-id>/messages
      with a bearer token
    - Recipients are sent as digits only (the Cloud API rejects a leading "+")
    - Failures surface as MessagingChannelError after RetryingPoster's retry policy

Design Decisions:
    - transport injectable: tests pass httpx.MockTransport, production uses the default
"""

import logging

import httpx

from ticketbot.core.domain_types import TypingState
from ticketbot.core.errors import ErrorContext, MessagingChannelError
from ticketbot.infrastructure.http_retry import RetryingPoster

logger = logging.getLogger(__name__)

GRAPH_API_HOST = "https://graph.facebook.com"


def _channel_error(
    message: str, error_type: str, context: ErrorContext | None,
) -> MessagingChannelError:
    return MessagingChannelError(message, error_type, context=context)


class WhatsAppClient:
    """Implements core.repository_protocols.MessagingChannel over the Cloud API."""

    def __init__(
        self,
        phone_number_id: str,
        access_token: str,
        graph_api_version: str = "v19.0",
        timeout_seconds: int = 15,
        max_retries: int = 2,
        base_delay_ms: int = 500,
        max_delay_ms: int = 8_000,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.endpoint = (
            f"{GRAPH_API_HOST}/{graph_api_version}/{phone_number_id}/messages"
        )
        self.client = httpx.AsyncClient(
            headers={
                "Authorization": f"Bearer {access_token}",
                "Content-Type": "application/json",
            },
            timeout=timeout_seconds,
            transport=transport,
        )
        self.poster = RetryingPoster(
            self.client,
            _channel_error,
            max_retries=max_retries,
            base_delay_ms=base_delay_ms,
            max_delay_ms=max_delay_ms,
            service_name="WhatsApp",
        )

    async def send_text(self, to: str, body: str, preview_url: bool = False) -> None:
        await self._send(to, {
            "type": "text",
            "text": {"preview_url": preview_url, "body": body},
        })

    async def send_image(
        self, to: str, image_url: str, caption: str | None = None,
    ) -> None:
        image: dict = {"link": image_url}
        if caption:
            image["caption"] = caption
        await self._send(to, {"type": "image", "image": image})

    async def send_typing(self, to: str, state: TypingState) -> None:
        await self._send(to, {
            "type": "action",
            "action": {"typing": state.value},
        })

    async def aclose(self) -> None:
        await self.client.aclose()

    async def _send(self, to: str, message: dict) -> None:
        payload = {
            "messaging_product": "whatsapp",
            "recipient_type": "individual",
            "to": to.lstrip("+"),
            **message,
        }
        await self.poster.post_json(
            self.endpoint, payload, ErrorContext(sender=to),
        )
