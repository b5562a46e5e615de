"""Paystack webhook — signature gate, payload parsing, and fulfillment over HTTP."""

import uuid

from sqlalchemy import func, select

from ticketbot.infrastructure.paystack_client import compute_signature
from ticketbot.models.order import Order
from ticketbot.models.ticket import Ticket
from tests.fakes import BUYER, SECRET_KEY, charge_event, signed_body

URL = "/api/v1/webhooks/paystack"


async def _post(client, payload: dict, secret: str | None = None):
    body, signature = signed_body(payload, secret or SECRET_KEY)
    return await client.post(
        URL, content=body,
        headers={"content-type": "application/json", "x-paystack-signature": signature},
    )


async def _checkout(client):
    wa = "/api/v1/webhooks/whatsapp"
    for body in ("buy-event-abc123", "1", "3", "a@b.com"):
        await client.post(wa, json={"entry": [{"changes": [{"value": {"messages": [
            {"from": BUYER.lstrip("+"), "id": body, "type": "text", "text": {"body": body}},
        ]}}]}]})


async def _ticket_count(db) -> int:
    db.expire_all()
    return (await db.execute(select(func.count()).select_from(Ticket))).scalar_one()


async def test_bad_signature_is_rejected(client, catalog, gateway, test_db):
    await _checkout(client)
    metadata = gateway.calls[-1]["metadata"]

    response = await _post(client, charge_event(metadata), secret="sk_wrong")

    assert response.status_code == 401
    assert await _ticket_count(test_db) == 0


async def test_missing_signature_is_rejected(client):
    response = await client.post(URL, json=charge_event({"orderId": "x"}))
    assert response.status_code == 401
    error = response.json()["error"]
    assert error["code"] == "INVALID_SIGNATURE"
    assert error["category"] == "authentication"


async def test_signed_garbage_is_rejected(client):
    body = b"{not json"
    signature = compute_signature(SECRET_KEY, body)

    response = await client.post(
        URL, content=body, headers={"x-paystack-signature": signature},
    )
    assert response.status_code == 400


async def test_charge_success_issues_tickets(client, catalog, gateway, channel, test_db):
    await _checkout(client)
    metadata = gateway.calls[-1]["metadata"]
    channel.clear()

    response = await _post(client, charge_event(metadata))

    assert response.status_code == 200
    assert response.json() == {"received": True, "event": "charge.success"}
    assert await _ticket_count(test_db) == 3
    order = (await test_db.execute(
        select(Order).where(Order.id == uuid.UUID(metadata["orderId"])),
    )).scalar_one()
    assert order.status == "paid"
    assert any("Payment confirmed" in text for text in channel.texts)
    assert len(channel.images) == 3


async def test_replayed_event_is_acknowledged_without_new_tickets(
    client, catalog, gateway, test_db,
):
    await _checkout(client)
    payload = charge_event(gateway.calls[-1]["metadata"])

    first = await _post(client, payload)
    second = await _post(client, payload)

    assert first.status_code == second.status_code == 200
    assert await _ticket_count(test_db) == 3


async def test_foreign_channel_event_is_acknowledged_and_dropped(client, catalog, test_db):
    metadata = {
        "orderId": str(uuid.uuid4()), "sessionId": str(uuid.uuid4()), "eventId": "abc123",
        "ticketTypeId": "regular", "quantity": 1, "buyerPhone": BUYER, "channel": "web",
    }
    response = await _post(client, charge_event(metadata))

    assert response.status_code == 200
    assert await _ticket_count(test_db) == 0
