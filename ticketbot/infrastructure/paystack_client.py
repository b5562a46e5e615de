"""Paystack Client — transaction initialization and webhook signature verification.

Invariants:
    - amount is a positive integer in minor units (kobo, cents); anything else is rejected
      before any network call
    - A response without status=true and data.authorization_url is a PaymentGatewayError
    - verify_signature compares hex HMAC-SHA512(secret, raw body) in constant time
"""

import hashlib
import hmac
import logging
from dataclasses import dataclass

import httpx

from ticketbot.core.errors import ErrorContext, PaymentGatewayError
from ticketbot.infrastructure.http_retry import RetryingPoster

logger = logging.getLogger(__name__)

SIGNATURE_HEADER = "x-paystack-signature"


@dataclass(frozen=True)
class PaystackInitialization:
    reference: str
    access_code: str | None
    authorization_url: str


def _gateway_error(
    message: str, error_type: str, context: ErrorContext | None,
) -> PaymentGatewayError:
    return PaymentGatewayError(message, error_type, context=context)


def compute_signature(secret_key: str, raw_body: bytes) -> str:
    return hmac.new(secret_key.encode(), raw_body, hashlib.sha512).hexdigest()


def verify_signature(secret_key: str, raw_body: bytes, signature: str | None) -> bool:
    if not signature or not secret_key:
        return False
    expected = compute_signature(secret_key, raw_body)
    return hmac.compare_digest(expected, signature.strip().lower())


class PaystackClient:
    """Implements core.repository_protocols.PaymentGateway over the Paystack REST API."""

    def __init__(
        self,
        secret_key: str,
        base_url: str = "https://api.paystack.co",
        timeout_seconds: int = 20,
        max_retries: int = 1,
        base_delay_ms: int = 500,
        max_delay_ms: int = 4_000,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            headers={
                "Authorization": f"Bearer {secret_key}",
                "Content-Type": "application/json",
            },
            timeout=timeout_seconds,
            transport=transport,
        )
        self.poster = RetryingPoster(
            self.client,
            _gateway_error,
            max_retries=max_retries,
            base_delay_ms=base_delay_ms,
            max_delay_ms=max_delay_ms,
            service_name="Paystack",
        )

    async def initialize_transaction(
        self,
        *,
        email: str,
        amount_minor: int,
        currency: str,
        reference: str,
        metadata: dict,
        callback_url: str | None,
    ) -> PaystackInitialization:
        context = ErrorContext(reference=reference)
        if (
            isinstance(amount_minor, bool)
            or not isinstance(amount_minor, int)
            or amount_minor <= 0
        ):
            raise PaymentGatewayError(
                f"amount must be a positive integer, got {amount_minor!r}",
                "invalid_amount", context=context,
            )

        payload = {
            "email": email,
            "amount": amount_minor,
            "currency": currency,
            "reference": reference,
            "metadata": metadata,
        }
        if callback_url:
            payload["callback_url"] = callback_url

        response = await self.poster.post_json(
            "/transaction/initialize", payload, context,
        )
        try:
            body = response.json()
        except ValueError as e:
            raise PaymentGatewayError(
                f"unparseable response: {e}", "invalid_response", context=context,
            )

        if not isinstance(body, dict):
            body = {}
        data = body.get("data")
        if not isinstance(data, dict):
            data = {}
        if not body.get("status") or not data.get("authorization_url"):
            message = body.get("message")
            raise PaymentGatewayError(
                message or "initialization rejected", "rejected", context=context,
            )

        logger.info(
            "Paystack transaction initialized",
            extra={"reference": data.get("reference") or reference},
        )
        return PaystackInitialization(
            reference=data.get("reference") or reference,
            access_code=data.get("access_code"),
            authorization_url=data["authorization_url"],
        )

    async def aclose(self) -> None:
        await self.client.aclose()
