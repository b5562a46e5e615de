"""Retrying poster — retry policy and error mapping against httpx.MockTransport."""

import httpx
import pytest

from ticketbot.core.errors import MessagingChannelError
from ticketbot.infrastructure import http_retry
from ticketbot.infrastructure.http_retry import RetryingPoster


def _error(message, error_type, context):
    return MessagingChannelError(message, error_type, context=context)


def _poster(handler, max_retries: int = 2) -> RetryingPoster:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return RetryingPoster(
        client, _error, max_retries=max_retries, base_delay_ms=0, service_name="test",
    )


@pytest.fixture
def sleeps(monkeypatch) -> list[float]:
    recorded: list[float] = []

    async def _sleep(seconds):
        recorded.append(seconds)

    monkeypatch.setattr(http_retry.asyncio, "sleep", _sleep)
    return recorded


async def test_server_errors_are_retried_until_success(sleeps):
    statuses = iter([500, 503, 200])

    def handler(request):
        return httpx.Response(next(statuses), json={"ok": True})

    response = await _poster(handler).post_json("https://api.test/x", {"a": 1})

    assert response.status_code == 200
    assert len(sleeps) == 2


async def test_server_errors_exhaust_retries(sleeps):
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(502, text="bad gateway")

    with pytest.raises(MessagingChannelError) as exc_info:
        await _poster(handler, max_retries=1).post_json("https://api.test/x", {})

    assert exc_info.value.channel_error_type == "server_error"
    assert len(calls) == 2


async def test_rate_limit_honours_retry_after(sleeps):
    statuses = iter([429, 200])

    def handler(request):
        status = next(statuses)
        headers = {"retry-after": "3"} if status == 429 else {}
        return httpx.Response(status, headers=headers, json={})

    await _poster(handler).post_json("https://api.test/x", {})

    assert sleeps == [3.0]


async def test_client_errors_are_not_retried(sleeps):
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(400, json={"error": "bad"})

    with pytest.raises(MessagingChannelError) as exc_info:
        await _poster(handler).post_json("https://api.test/x", {})

    assert exc_info.value.channel_error_type == "client_error"
    assert len(calls) == 1
    assert sleeps == []


async def test_timeout_fails_immediately(sleeps):
    def handler(request):
        raise httpx.ReadTimeout("slow", request=request)

    with pytest.raises(MessagingChannelError) as exc_info:
        await _poster(handler).post_json("https://api.test/x", {})

    assert exc_info.value.channel_error_type == "timeout"
    assert sleeps == []


async def test_connection_errors_are_retried(sleeps):
    attempts = []

    def handler(request):
        attempts.append(request)
        if len(attempts) == 1:
            raise httpx.ConnectError("refused", request=request)
        return httpx.Response(200, json={})

    response = await _poster(handler).post_json("https://api.test/x", {})

    assert response.status_code == 200
    assert len(attempts) == 2
