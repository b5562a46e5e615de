"""Conversation Session State — one frozen dataclass per stage, mapped to/from the durable row.

Invariants:
    - Each stage type carries exactly the fields that exist in that stage (no optional soup)
    - StageState is a closed union; every match over it ends in assert_never
    - state_to_record / state_from_record are inverses for well-formed rows
    - A row missing a field its stage requires raises SessionExpiredError, never a partial state
    - Restarting yields Initial(): every selection column maps back to None
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import ClassVar, assert_never
from uuid import UUID

from ticketbot.core.domain_types import DEFAULT_CURRENCY, Stage, TicketOption
from ticketbot.core.errors import SessionExpiredError


# ─── Building blocks ─────────────────────────────────────────────

@dataclass(frozen=True)
class Offer:
    """Event plus the ticket options snapshotted when the list was sent."""
    event_id: str
    event_title: str
    currency: str
    options: tuple[TicketOption, ...]


@dataclass(frozen=True)
class Checkout:
    """Pending order and gateway handles recorded once the payment link exists."""
    buyer_email: str
    order_id: str
    payment_reference: str
    access_token: str | None
    authorization_url: str | None


# ─── Stage states ────────────────────────────────────────────────

@dataclass(frozen=True)
class Initial:
    stage: ClassVar[Stage] = Stage.INITIAL


@dataclass(frozen=True)
class AwaitingTicketChoice:
    offer: Offer
    stage: ClassVar[Stage] = Stage.AWAITING_TICKET_CHOICE


@dataclass(frozen=True)
class AwaitingQuantity:
    offer: Offer
    choice: TicketOption
    stage: ClassVar[Stage] = Stage.AWAITING_QUANTITY


@dataclass(frozen=True)
class AwaitingEmail:
    offer: Offer
    choice: TicketOption
    quantity: int
    unit_price: Decimal
    total: Decimal
    stage: ClassVar[Stage] = Stage.AWAITING_EMAIL


@dataclass(frozen=True)
class AwaitingPayment:
    offer: Offer
    choice: TicketOption
    quantity: int
    unit_price: Decimal
    total: Decimal
    checkout: Checkout
    stage: ClassVar[Stage] = Stage.AWAITING_PAYMENT


@dataclass(frozen=True)
class Completed:
    """Terminal stage, written only by the payment finalizer."""
    order_id: str
    payment_reference: str | None
    event_id: str | None = None
    event_title: str | None = None
    ticket_type_id: str | None = None
    quantity: int | None = None
    buyer_email: str | None = None
    ticket_codes: tuple[str, ...] = ()
    qr_urls: tuple[str | None, ...] = ()
    stage: ClassVar[Stage] = Stage.COMPLETED


StageState = (
    Initial
    | AwaitingTicketChoice
    | AwaitingQuantity
    | AwaitingEmail
    | AwaitingPayment
    | Completed
)


@dataclass
class ConversationSession:
    """A sender's conversation as loaded from conversation_sessions."""
    sender: str
    state: StageState = field(default_factory=Initial)
    id: UUID | None = None
    last_message: str | None = None
    last_message_id: str | None = None
    expired: bool = False

    @property
    def stage(self) -> Stage:
        return self.state.stage


# ─── Row mapping ─────────────────────────────────────────────────

def _empty_record(stage: Stage) -> dict:
    return {
        "stage": stage.value,
        "event_id": None,
        "ticket_type_id": None,
        "quantity": None,
        "buyer_email": None,
        "order_id": None,
        "payment_reference": None,
        "payment_access_token": None,
        "metadata": {},
    }


def _put_offer(record: dict, offer: Offer) -> None:
    record["event_id"] = offer.event_id
    record["metadata"].update({
        "event_title": offer.event_title,
        "currency": offer.currency,
        "ticket_options": [opt.to_dict() for opt in offer.options],
    })


def _put_choice(record: dict, choice: TicketOption) -> None:
    record["ticket_type_id"] = choice.id
    record["metadata"].update({
        "ticket_type_name": choice.name,
        "ticket_price": str(choice.price),
    })


def _put_pricing(record: dict, quantity: int, unit_price: Decimal, total: Decimal) -> None:
    record["quantity"] = quantity
    record["metadata"].update({
        "ticket_price": str(unit_price),
        "total_amount": str(total),
    })


def state_to_record(state: StageState) -> dict:
    """Flatten a stage state into the conversation_sessions column layout."""
    record = _empty_record(state.stage)
    match state:
        case Initial():
            pass
        case AwaitingTicketChoice(offer=offer):
            _put_offer(record, offer)
        case AwaitingQuantity(offer=offer, choice=choice):
            _put_offer(record, offer)
            _put_choice(record, choice)
        case AwaitingEmail():
            _put_offer(record, state.offer)
            _put_choice(record, state.choice)
            _put_pricing(record, state.quantity, state.unit_price, state.total)
        case AwaitingPayment():
            _put_offer(record, state.offer)
            _put_choice(record, state.choice)
            _put_pricing(record, state.quantity, state.unit_price, state.total)
            checkout = state.checkout
            record.update({
                "buyer_email": checkout.buyer_email,
                "order_id": checkout.order_id,
                "payment_reference": checkout.payment_reference,
                "payment_access_token": checkout.access_token,
            })
            record["metadata"]["authorization_url"] = checkout.authorization_url
        case Completed():
            record.update({
                "event_id": state.event_id,
                "ticket_type_id": state.ticket_type_id,
                "quantity": state.quantity,
                "buyer_email": state.buyer_email,
                "order_id": state.order_id,
                "payment_reference": state.payment_reference,
            })
            record["metadata"].update({
                "event_title": state.event_title,
                "issued_tickets": list(state.ticket_codes),
                "qr_urls": list(state.qr_urls),
            })
        case _:
            assert_never(state)
    return record


class _Reader:
    """Collects missing required fields while rebuilding a state."""

    def __init__(self, stage: Stage, record: dict):
        self.stage = stage
        self.record = record
        self.meta = record.get("metadata") or {}
        self.missing: list[str] = []

    def require(self, key: str):
        value = self.record.get(key)
        if value in (None, ""):
            self.missing.append(key)
        return value

    def check(self) -> None:
        if self.missing:
            raise SessionExpiredError(self.stage.value, self.missing)


def _read_offer(reader: _Reader) -> Offer:
    event_id = reader.require("event_id")
    options = tuple(
        TicketOption.from_dict(opt) for opt in reader.meta.get("ticket_options") or []
    )
    return Offer(
        event_id=str(event_id) if event_id else "",
        event_title=reader.meta.get("event_title") or "the event",
        currency=reader.meta.get("currency") or DEFAULT_CURRENCY,
        options=options,
    )


def _read_choice(reader: _Reader, offer: Offer) -> TicketOption | None:
    ticket_type_id = reader.require("ticket_type_id")
    if not ticket_type_id:
        return None
    snapshot = next((o for o in offer.options if o.id == ticket_type_id), None)
    name = reader.meta.get("ticket_type_name") or (snapshot.name if snapshot else None)
    price = reader.meta.get("ticket_price")
    if price is None and snapshot is not None:
        price = snapshot.price
    if name is None or price is None:
        reader.missing.append("ticket_type_name" if name is None else "ticket_price")
        return None
    return TicketOption(
        id=str(ticket_type_id),
        name=str(name),
        price=Decimal(str(price)),
        available=snapshot.available if snapshot else 0,
    )


def _read_pricing(reader: _Reader, choice: TicketOption | None) -> tuple[int, Decimal, Decimal]:
    quantity = reader.require("quantity")
    if not quantity or choice is None:
        return 0, Decimal("0"), Decimal("0")
    quantity = int(quantity)
    unit_price = Decimal(str(reader.meta.get("ticket_price", choice.price)))
    total_raw = reader.meta.get("total_amount")
    total = Decimal(str(total_raw)) if total_raw is not None else unit_price * quantity
    return quantity, unit_price, total


def state_from_record(record: dict) -> StageState:
    """Rebuild the stage state from a row. Raises SessionExpiredError on gaps."""
    try:
        stage = Stage(record.get("stage") or Stage.INITIAL.value)
    except ValueError:
        raise SessionExpiredError(str(record.get("stage")), ["stage"])

    reader = _Reader(stage, record)
    match stage:
        case Stage.INITIAL:
            return Initial()
        case Stage.AWAITING_TICKET_CHOICE:
            offer = _read_offer(reader)
            reader.check()
            return AwaitingTicketChoice(offer=offer)
        case Stage.AWAITING_QUANTITY:
            offer = _read_offer(reader)
            choice = _read_choice(reader, offer)
            reader.check()
            return AwaitingQuantity(offer=offer, choice=choice)
        case Stage.AWAITING_EMAIL:
            offer = _read_offer(reader)
            choice = _read_choice(reader, offer)
            quantity, unit_price, total = _read_pricing(reader, choice)
            reader.check()
            return AwaitingEmail(
                offer=offer, choice=choice, quantity=quantity,
                unit_price=unit_price, total=total,
            )
        case Stage.AWAITING_PAYMENT:
            offer = _read_offer(reader)
            choice = _read_choice(reader, offer)
            quantity, unit_price, total = _read_pricing(reader, choice)
            checkout = Checkout(
                buyer_email=reader.require("buyer_email"),
                order_id=str(reader.require("order_id")),
                payment_reference=reader.require("payment_reference"),
                access_token=record.get("payment_access_token"),
                authorization_url=reader.meta.get("authorization_url"),
            )
            reader.check()
            return AwaitingPayment(
                offer=offer, choice=choice, quantity=quantity,
                unit_price=unit_price, total=total, checkout=checkout,
            )
        case Stage.COMPLETED:
            order_id = reader.require("order_id")
            reader.check()
            return Completed(
                order_id=str(order_id),
                payment_reference=record.get("payment_reference"),
                event_id=record.get("event_id"),
                event_title=reader.meta.get("event_title"),
                ticket_type_id=record.get("ticket_type_id"),
                quantity=record.get("quantity"),
                buyer_email=record.get("buyer_email"),
                ticket_codes=tuple(reader.meta.get("issued_tickets") or ()),
                qr_urls=tuple(reader.meta.get("qr_urls") or ()),
            )
        case _:
            assert_never(stage)
