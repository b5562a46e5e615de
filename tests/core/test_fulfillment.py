"""Fulfillment Rules — event classification, metadata validation, receipts."""

from decimal import Decimal

import pytest

from ticketbot.core.domain_types import OutboundImage, OutboundText, TicketOption
from ticketbot.core.fulfillment import (
    FinalizeRequest, MetadataRejection, build_receipt, charged_amount,
    classify_event, complete_session, to_minor_units, validate_payment_metadata,
)
from ticketbot.core.session_state import AwaitingPayment, Checkout, Initial, Offer

METADATA = {
    "orderId": "order-1",
    "sessionId": "session-1",
    "eventId": "abc123",
    "ticketTypeId": "regular",
    "ticketTypeName": "Regular",
    "quantity": "3",
    "buyerPhone": "2348012345678",
    "channel": "whatsapp",
}


@pytest.mark.parametrize("event,status,expected", [
    ("charge.success", "success", "success"),
    ("charge.success", None, "success"),
    ("charge.failed", "failed", "failure"),
    ("charge.success", "abandoned", "failure"),
    ("charge.success", "reversed", "ignored"),
    ("transfer.success", "success", "ignored"),
    ("subscription.create", None, "ignored"),
])
def test_classify_event(event, status, expected):
    assert classify_event(event, status) == expected


def test_validate_metadata_builds_request():
    request = validate_payment_metadata(
        METADATA, "whatsapp", reference="WHT-order-1", amount_minor=1_500_000, currency="NGN",
    )
    assert isinstance(request, FinalizeRequest)
    assert request.quantity == 3
    assert request.buyer_phone == "+2348012345678"
    assert request.ticket_type_name == "Regular"
    assert request.amount_minor == 1_500_000


@pytest.mark.parametrize("key", [
    "orderId", "sessionId", "eventId", "ticketTypeId", "quantity", "buyerPhone", "channel",
])
def test_validate_metadata_requires_every_field(key):
    metadata = {k: v for k, v in METADATA.items() if k != key}
    rejection = validate_payment_metadata(metadata, "whatsapp")
    assert isinstance(rejection, MetadataRejection)
    assert key in rejection.missing


def test_validate_metadata_rejects_foreign_channel():
    rejection = validate_payment_metadata({**METADATA, "channel": "web"}, "whatsapp")
    assert rejection == MetadataRejection("foreign_channel")


@pytest.mark.parametrize("quantity", ["0", "-2", "lots"])
def test_validate_metadata_rejects_bad_quantity(quantity):
    rejection = validate_payment_metadata({**METADATA, "quantity": quantity}, "whatsapp")
    assert rejection.reason == "invalid_quantity"


def test_validate_metadata_rejects_non_dict():
    assert isinstance(validate_payment_metadata(None, "whatsapp"), MetadataRejection)


def test_charged_amount_prefers_gateway_amount():
    request = validate_payment_metadata(
        METADATA, "whatsapp", amount_minor=1_500_050, currency="NGN",
    )
    assert charged_amount(request, Decimal("1"), "USD", "NGN") == (Decimal("15000.5"), "NGN")


def test_charged_amount_falls_back_to_order():
    request = validate_payment_metadata(METADATA, "whatsapp")
    assert charged_amount(request, Decimal("15000"), "GHS", "NGN") == (Decimal("15000"), "GHS")
    assert charged_amount(request, Decimal("15000"), None, "NGN")[1] == "NGN"


@pytest.mark.parametrize("amount,minor", [
    (Decimal("15000"), 1_500_000),
    (Decimal("99.995"), 10_000),
    (Decimal("0.01"), 1),
])
def test_to_minor_units(amount, minor):
    assert to_minor_units(amount) == minor


def test_receipt_has_one_image_per_qr_url():
    messages = build_receipt(
        event_title="Lagos Jazz Night", ticket_name="Regular", quantity=3,
        total_paid=Decimal("15000"), currency="NGN",
        ticket_codes=["AAAA2222", "BBBB3333", "CCCC4444"],
        qr_urls=["https://q/1.png", None, "https://q/3.png"],
    )
    assert isinstance(messages[0], OutboundText)
    assert "Total Paid: ₦15,000" in messages[0].body
    assert "• BBBB3333" in messages[0].body
    assert messages[1:] == [
        OutboundImage("https://q/1.png", "Ticket code: AAAA2222"),
        OutboundImage("https://q/3.png", "Ticket code: CCCC4444"),
    ]


def test_complete_session_keeps_purchase_details():
    regular = TicketOption("regular", "Regular", Decimal("5000"), 10)
    previous = AwaitingPayment(
        offer=Offer("abc123", "Lagos Jazz Night", "NGN", (regular,)),
        choice=regular, quantity=3, unit_price=Decimal("5000"), total=Decimal("15000"),
        checkout=Checkout("a@b.com", "order-1", "WHT-order-1", None, None),
    )
    request = validate_payment_metadata(METADATA, "whatsapp")
    completed = complete_session(
        previous, order_id="order-1", reference="WHT-order-1", request=request,
        ticket_codes=["AAAA2222"], qr_urls=["https://q/1.png"],
    )
    assert completed.event_title == "Lagos Jazz Night"
    assert completed.buyer_email == "a@b.com"
    assert completed.ticket_codes == ("AAAA2222",)


def test_complete_session_from_unrelated_stage():
    request = validate_payment_metadata(METADATA, "whatsapp")
    completed = complete_session(
        Initial(), order_id="order-1", reference=None, request=request,
        ticket_codes=[], qr_urls=[],
    )
    assert completed.event_title is None
    assert completed.quantity == 3
