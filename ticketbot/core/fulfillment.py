"""Fulfillment Rules — pure checks and builders used by the payment finalizer.

Invariants:
    - validate_payment_metadata accepts an event only when every required field is present
      and the channel marker matches; anything else is a MetadataRejection (log-and-drop)
    - Charged amount comes from the gateway event (minor units / 100) when present,
      otherwise from the order's stored total
    - build_receipt yields one text plus one image per ticket that has a QR URL
    - complete_session keeps whatever purchase details the prior state still holds
"""

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

from ticketbot.core import format_messages as fmt
from ticketbot.core.domain_types import OutboundImage, OutboundMessage, OutboundText
from ticketbot.core.normalize_message import normalize_phone
from ticketbot.core.session_state import AwaitingPayment, Completed, StageState

REQUIRED_METADATA_FIELDS = (
    "orderId", "sessionId", "eventId", "ticketTypeId",
    "quantity", "buyerPhone", "channel",
)
SUCCESS_EVENT = "charge.success"
FAILURE_EVENTS = frozenset({"charge.failed"})
FAILURE_STATUSES = frozenset({"failed", "abandoned"})


@dataclass(frozen=True)
class FinalizeRequest:
    """A gateway event that belongs to this channel and names everything we need."""
    order_id: str
    session_id: str
    event_id: str
    ticket_type_id: str
    ticket_type_name: str | None
    quantity: int
    buyer_phone: str
    reference: str | None
    amount_minor: int | None
    currency: str | None


@dataclass(frozen=True)
class MetadataRejection:
    reason: str
    missing: tuple[str, ...] = ()


def classify_event(event_name: str | None, status: str | None) -> str:
    """Return "success", "failure" or "ignored" for a gateway event."""
    if event_name == SUCCESS_EVENT and (status in (None, "", "success")):
        return "success"
    if event_name in FAILURE_EVENTS or (status or "").lower() in FAILURE_STATUSES:
        return "failure"
    return "ignored"


def validate_payment_metadata(
    metadata: dict | None,
    channel_marker: str,
    *,
    reference: str | None = None,
    amount_minor: int | None = None,
    currency: str | None = None,
) -> FinalizeRequest | MetadataRejection:
    if not isinstance(metadata, dict):
        return MetadataRejection("metadata_missing", REQUIRED_METADATA_FIELDS)

    missing = tuple(
        key for key in REQUIRED_METADATA_FIELDS if metadata.get(key) in (None, "")
    )
    if missing:
        return MetadataRejection("metadata_incomplete", missing)
    if metadata["channel"] != channel_marker:
        return MetadataRejection("foreign_channel")

    try:
        quantity = int(metadata["quantity"])
    except (TypeError, ValueError):
        return MetadataRejection("invalid_quantity", ("quantity",))
    if quantity <= 0:
        return MetadataRejection("invalid_quantity", ("quantity",))

    buyer_phone = normalize_phone(str(metadata["buyerPhone"]))
    if not buyer_phone:
        return MetadataRejection("invalid_buyer_phone", ("buyerPhone",))

    return FinalizeRequest(
        order_id=str(metadata["orderId"]),
        session_id=str(metadata["sessionId"]),
        event_id=str(metadata["eventId"]),
        ticket_type_id=str(metadata["ticketTypeId"]),
        ticket_type_name=metadata.get("ticketTypeName"),
        quantity=quantity,
        buyer_phone=buyer_phone,
        reference=reference,
        amount_minor=amount_minor,
        currency=currency,
    )


def charged_amount(
    request: FinalizeRequest, order_total: Decimal, order_currency: str | None,
    default_currency: str,
) -> tuple[Decimal, str]:
    if request.amount_minor is not None:
        total = Decimal(request.amount_minor) / Decimal(100)
    else:
        total = Decimal(order_total)
    currency = request.currency or order_currency or default_currency
    return total, currency


def to_minor_units(amount: Decimal) -> int:
    """Major → minor currency units (kobo, cents), rounded half-up."""
    return int((Decimal(amount) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def build_receipt(
    *,
    event_title: str,
    ticket_name: str,
    quantity: int,
    total_paid: Decimal,
    currency: str,
    ticket_codes: list[str],
    qr_urls: list[str | None],
) -> list[OutboundMessage]:
    messages: list[OutboundMessage] = [
        OutboundText(fmt.receipt_message(
            event_title, ticket_name, quantity, total_paid, currency, ticket_codes,
        )),
    ]
    for code, url in zip(ticket_codes, qr_urls):
        if url:
            messages.append(OutboundImage(url, fmt.ticket_image_caption(code)))
    return messages


def complete_session(
    previous: StageState,
    *,
    order_id: str,
    reference: str | None,
    request: FinalizeRequest,
    ticket_codes: list[str],
    qr_urls: list[str | None],
) -> Completed:
    event_title = None
    buyer_email = None
    if isinstance(previous, AwaitingPayment):
        event_title = previous.offer.event_title
        buyer_email = previous.checkout.buyer_email
    return Completed(
        order_id=order_id,
        payment_reference=reference,
        event_id=request.event_id,
        event_title=event_title,
        ticket_type_id=request.ticket_type_id,
        quantity=request.quantity,
        buyer_email=buyer_email,
        ticket_codes=tuple(ticket_codes),
        qr_urls=tuple(qr_urls),
    )
