"""Resilient HTTP Posting — shared retry, backoff, and error mapping for outbound JSON APIs.

Invariants:
    - Rate limits (429): exponential backoff with jitter, respects Retry-After header
    - Transient errors (5xx, connection): retried up to max_retries with exponential backoff
    - Client errors (4xx except 429) and timeouts: immediate failure, no retry
    - Every failure surfaces as the TicketBotError built by the caller's error_factory

Design Decisions:
    - ±25% jitter on every computed backoff delay
    - One poster per adapter: WhatsApp and Paystack differ only in error type and limits
"""

import asyncio
import logging
import random
from typing import Callable

import httpx

from ticketbot.core.errors import ErrorContext, TicketBotError

logger = logging.getLogger(__name__)

ErrorFactory = Callable[[str, str, ErrorContext | None], TicketBotError]


class RetryingPoster:
    """POSTs JSON through an httpx.AsyncClient with retry and error mapping."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        error_factory: ErrorFactory,
        *,
        max_retries: int = 2,
        base_delay_ms: int = 500,
        max_delay_ms: int = 8_000,
        service_name: str = "http",
    ):
        self.client = client
        self.error_factory = error_factory
        self.max_retries = max_retries
        self.base_delay_ms = base_delay_ms
        self.max_delay_ms = max_delay_ms
        self.service_name = service_name

    async def post_json(
        self, url: str, payload: dict, context: ErrorContext | None = None,
    ) -> httpx.Response:
        """POST payload; return the 2xx response or raise the mapped error."""
        for attempt in range(self.max_retries + 1):
            try:
                response = await self.client.post(url, json=payload)
            except httpx.TimeoutException:
                raise self.error_factory(
                    f"{self.service_name} timeout", "timeout", context,
                )
            except httpx.TransportError as e:
                await self._retry_or_raise(
                    f"connection error: {e}", "connection_error",
                    attempt, None, context,
                )
                continue

            if response.is_success:
                logger.debug(
                    f"{self.service_name} call succeeded",
                    extra={"attempt": attempt + 1},
                )
                return response
            if response.status_code == 429:
                await self._retry_or_raise(
                    "rate limit exceeded", "rate_limit",
                    attempt, self._extract_retry_after(response), context,
                )
                continue
            if response.status_code >= 500:
                await self._retry_or_raise(
                    f"server error {response.status_code}: {response.text[:200]}",
                    "server_error", attempt, None, context,
                )
                continue
            raise self.error_factory(
                f"HTTP {response.status_code}: {response.text[:500]}",
                "client_error", context,
            )

        # max_retries < 0 leaves the loop without a request
        raise self.error_factory("no attempt made", "configuration", context)

    async def _retry_or_raise(
        self,
        message: str,
        error_type: str,
        attempt: int,
        retry_after_ms: int | None,
        context: ErrorContext | None,
    ) -> None:
        if attempt >= self.max_retries:
            raise self.error_factory(
                f"{message} (after {self.max_retries} retries)", error_type, context,
            )
        delay = retry_after_ms or self._backoff(attempt)
        logger.warning(
            f"{self.service_name} {error_type}, retry after {delay}ms",
            extra={"attempt": attempt + 1},
        )
        await asyncio.sleep(delay / 1000)

    def _backoff(self, attempt: int) -> int:
        """Exponential backoff with ±25% jitter."""
        delay = min(self.max_delay_ms, (2 ** attempt) * self.base_delay_ms)
        return int(delay * random.uniform(0.75, 1.25))  # nosec B311

    def _extract_retry_after(self, response: httpx.Response) -> int | None:
        """Retry-After header in milliseconds, when it is a plain number of seconds."""
        val = response.headers.get("retry-after")
        if val and val.strip().isdigit():
            return int(val) * 1000
        return None
