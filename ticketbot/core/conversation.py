"""Conversation State Machine — pure transitions from (stage state, inbound text).

Invariants:
    - decide() never performs IO: it returns either a finished Transition (Reply) or a
      request the shell must satisfy (LoadOffer, CheckQuantity, BeginCheckout, ReportOrderStatus)
    - The shell feeds the IO result back through the matching *_result function
    - Command precedence: restart keyword > buy-event command > per-stage handler
    - Buyer input errors re-prompt and return the unchanged state
    - Restart returns Initial() from every stage and never touches orders or tickets
    - Only the payment finalizer moves a session out of AwaitingPayment
"""

import re
from dataclasses import dataclass, replace
from decimal import Decimal
from typing import assert_never

from ticketbot.core import format_messages as fmt
from ticketbot.core.domain_types import (
    EVENT_COMMAND_PREFIX,
    RESTART_KEYWORDS,
    EventListing,
    LiveAvailability,
    OrderStatus,
    OutboundText,
    TicketOption,
)
from ticketbot.core.session_state import (
    AwaitingEmail,
    AwaitingPayment,
    AwaitingQuantity,
    AwaitingTicketChoice,
    Checkout,
    Completed,
    Initial,
    Offer,
    StageState,
)

_EVENT_COMMAND = re.compile(
    rf"^{re.escape(EVENT_COMMAND_PREFIX)}([a-z0-9][a-z0-9\-_]*)", re.IGNORECASE,
)
_INTEGER = re.compile(r"^\d+$")
_EMAIL = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$", re.IGNORECASE)
_LINK_COMMAND = re.compile(r"\blink\b")
_STATUS_COMMAND = re.compile(r"\b(status|paid)\b")


# ─── Results ─────────────────────────────────────────────────────

@dataclass(frozen=True)
class Transition:
    """Next state plus the replies to deliver, in order."""
    state: StageState
    replies: tuple[OutboundText, ...] = ()


@dataclass(frozen=True)
class Reply:
    transition: Transition


@dataclass(frozen=True)
class LoadOffer:
    event_id: str


@dataclass(frozen=True)
class CheckQuantity:
    state: AwaitingQuantity
    quantity: int


@dataclass(frozen=True)
class BeginCheckout:
    state: AwaitingEmail
    buyer_email: str


@dataclass(frozen=True)
class ReportOrderStatus:
    state: AwaitingPayment


Action = Reply | LoadOffer | CheckQuantity | BeginCheckout | ReportOrderStatus


def _say(state: StageState, *bodies: str, preview_url: bool = False) -> Transition:
    return Transition(
        state=state,
        replies=tuple(OutboundText(body, preview_url=preview_url) for body in bodies),
    )


# ─── Parsing ─────────────────────────────────────────────────────

def is_restart(text: str) -> bool:
    return text.strip().lower() in RESTART_KEYWORDS


def parse_event_command(text: str) -> str | None:
    """Extract the lower-cased <event-id> from "buy-event-<event-id>", or None."""
    match = _EVENT_COMMAND.match(text.strip().lower())
    return match.group(1) if match else None


def parse_positive_int(text: str) -> int | None:
    value = text.strip()
    if not _INTEGER.match(value):
        return None
    number = int(value)
    return number if number > 0 else None


def is_valid_email(text: str) -> bool:
    return bool(_EMAIL.match(text.strip()))


# ─── Decision ────────────────────────────────────────────────────

def restart() -> Transition:
    return _say(Initial(), fmt.intro_message())


def decide(state: StageState, text: str) -> Action:
    """Route one inbound text. Returns a finished reply or an IO request."""
    lowered = text.strip().lower()

    if is_restart(text):
        return Reply(restart())

    if lowered.startswith(EVENT_COMMAND_PREFIX):
        event_id = parse_event_command(text)
        if event_id is None:
            return Reply(_say(state, fmt.event_code_not_found_message()))
        return LoadOffer(event_id)

    match state:
        case Initial():
            return Reply(_say(Initial(), fmt.intro_message()))
        case AwaitingTicketChoice():
            return Reply(choose_ticket(state, text))
        case AwaitingQuantity():
            quantity = parse_positive_int(text)
            if quantity is None:
                return Reply(_say(state, fmt.invalid_quantity_message()))
            return CheckQuantity(state, quantity)
        case AwaitingEmail():
            if not is_valid_email(text):
                return Reply(_say(state, fmt.invalid_email_message()))
            return BeginCheckout(state, text.strip())
        case AwaitingPayment():
            return _awaiting_payment(state, lowered)
        case Completed():
            return Reply(_say(state, fmt.order_complete_message()))
        case _:
            assert_never(state)


def _awaiting_payment(state: AwaitingPayment, lowered: str) -> Action:
    if _LINK_COMMAND.search(lowered):
        url = state.checkout.authorization_url
        if url:
            return Reply(_say(state, fmt.resend_link_message(url), preview_url=True))
        return Reply(_say(state, fmt.no_link_on_file_message()))
    if _STATUS_COMMAND.search(lowered):
        return ReportOrderStatus(state)
    return Reply(_say(state, fmt.awaiting_payment_message()))


# ─── Per-stage results ───────────────────────────────────────────

def offer_result(
    state: StageState,
    event: EventListing | None,
    options: tuple[TicketOption, ...],
) -> Transition:
    """Outcome of the buy-event lookup."""
    if event is None:
        return _say(state, fmt.event_code_not_found_message())
    if not event.is_on_sale:
        return _say(Initial(), fmt.event_not_on_sale_message())
    if not options:
        return _say(Initial(), fmt.sold_out_message(event.title))
    offer = Offer(
        event_id=event.id,
        event_title=event.title,
        currency=event.currency,
        options=options,
    )
    return _say(
        AwaitingTicketChoice(offer=offer),
        fmt.ticket_list_message(event.title, options, event.currency),
    )


def offer_lookup_failed(state: StageState) -> Transition:
    return _say(state, fmt.event_lookup_failed_message())


def choose_ticket(state: AwaitingTicketChoice, text: str) -> Transition:
    options = state.offer.options
    if not options:
        return _say(Initial(), fmt.options_expired_message())
    number = parse_positive_int(text)
    if number is None or number > len(options):
        return _say(state, fmt.choice_out_of_range_message(len(options)))
    selected = options[number - 1]
    return _say(
        AwaitingQuantity(offer=state.offer, choice=selected),
        fmt.ticket_selected_message(selected, state.offer.currency),
    )


def quantity_result(
    state: AwaitingQuantity, quantity: int, live: LiveAvailability | None,
) -> Transition:
    """Outcome of the live availability re-read for the chosen ticket type."""
    if live is None:
        return _say(Initial(), fmt.ticket_type_unavailable_message())
    if quantity > live.available:
        return _say(state, fmt.insufficient_stock_message(live.available, live.name))
    choice = replace(
        state.choice, name=live.name, price=live.price, available=live.available,
    )
    total: Decimal = live.price * quantity
    return _say(
        AwaitingEmail(
            offer=state.offer, choice=choice, quantity=quantity,
            unit_price=live.price, total=total,
        ),
        fmt.quantity_confirmed_message(total, state.offer.currency, quantity, live.name),
    )


def checkout_result(state: AwaitingEmail, checkout: Checkout) -> Transition:
    """Payment link obtained: move to AwaitingPayment and send it."""
    next_state = AwaitingPayment(
        offer=state.offer,
        choice=state.choice,
        quantity=state.quantity,
        unit_price=state.unit_price,
        total=state.total,
        checkout=checkout,
    )
    body = fmt.payment_link_message(
        state.quantity, state.choice.name, state.offer.event_title,
        state.total, state.offer.currency, checkout.authorization_url or "",
    )
    return _say(next_state, body, preview_url=True)


def checkout_failed(state: AwaitingEmail) -> Transition:
    return _say(state, fmt.payment_start_failed_message())


def order_status_result(state: AwaitingPayment, status: OrderStatus | None) -> Transition:
    """Read-only status report; never changes the stage."""
    match status:
        case None:
            return _say(state, fmt.payment_status_unknown_message())
        case OrderStatus.PAID:
            return _say(state, fmt.payment_confirmed_status_message())
        case OrderStatus.PENDING:
            return _say(state, fmt.payment_pending_status_message())
        case OrderStatus.FAILED:
            return _say(state, fmt.payment_failed_status_message())
        case _:
            assert_never(status)


def dependency_failed(state: StageState) -> Transition:
    """Downstream failure: apologize and keep the stage so a retry re-enters it."""
    return _say(state, fmt.generic_apology_message())


def session_expired() -> Transition:
    return _say(Initial(), fmt.session_expired_message())


def unsaved_transition(previous: StageState, attempted: Transition) -> Transition:
    """The attempted state could not be stored: keep the stored stage.

    A payment link that already exists is still delivered; the payment finalizer
    completes the order from the gateway metadata whatever the stored stage is.
    """
    if isinstance(attempted.state, AwaitingPayment) and isinstance(previous, AwaitingEmail):
        return Transition(state=previous, replies=attempted.replies)
    return dependency_failed(previous)
