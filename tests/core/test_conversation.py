"""Conversation State Machine — pure transitions for every stage and command.

Tests cover:
    - Command precedence (restart > buy-event > stage handler)
    - Re-prompts leave the state unchanged
    - IO requests carry the data the shell needs
    - *_result functions build the next stage from IO outcomes
"""

from decimal import Decimal

import pytest

from ticketbot.core import conversation as machine
from ticketbot.core import format_messages as fmt
from ticketbot.core.conversation import (
    BeginCheckout, CheckQuantity, LoadOffer, ReportOrderStatus, Reply,
)
from ticketbot.core.domain_types import (
    EventListing, LiveAvailability, OrderStatus, Stage, TicketOption,
)
from ticketbot.core.session_state import (
    AwaitingEmail, AwaitingPayment, AwaitingQuantity, AwaitingTicketChoice,
    Checkout, Completed, Initial, Offer,
)

REGULAR = TicketOption("regular", "Regular", Decimal("5000"), 10)
VIP = TicketOption("vip", "VIP", Decimal("15000"), 2)
OFFER = Offer("abc123", "Lagos Jazz Night", "NGN", (REGULAR, VIP))
LISTING = EventListing("abc123", "Lagos Jazz Night", "NGN", "published", "public")
CHECKOUT = Checkout(
    buyer_email="a@b.com", order_id="4f9e0c1a-0000-4000-8000-000000000001",
    payment_reference="WHT-4f9e0c1a-0000-4000-8000-000000000001",
    access_token="AC_1", authorization_url="https://checkout.paystack.com/x",
)


def _choice():
    return AwaitingTicketChoice(offer=OFFER)


def _quantity():
    return AwaitingQuantity(offer=OFFER, choice=REGULAR)


def _email():
    return AwaitingEmail(
        offer=OFFER, choice=REGULAR, quantity=3,
        unit_price=Decimal("5000"), total=Decimal("15000"),
    )


def _payment(checkout=CHECKOUT):
    return AwaitingPayment(
        offer=OFFER, choice=REGULAR, quantity=3,
        unit_price=Decimal("5000"), total=Decimal("15000"), checkout=checkout,
    )


ALL_STATES = [
    Initial(), _choice(), _quantity(), _email(), _payment(),
    Completed(order_id="o1", payment_reference="WHT-o1"),
]


# ─── Parsing ─────────────────────────────────────────────────────

@pytest.mark.parametrize("text", ["restart", "RESET", " Start Over ", "startover"])
def test_restart_keywords(text):
    assert machine.is_restart(text)


@pytest.mark.parametrize("text", ["restart please", "rest", "start"])
def test_restart_requires_whole_message(text):
    assert not machine.is_restart(text)


def test_parse_event_command_lowercases_id():
    assert machine.parse_event_command("BUY-EVENT-AbC123") == "abc123"
    assert machine.parse_event_command("buy-event-") is None
    assert machine.parse_event_command("hello") is None


@pytest.mark.parametrize("text,expected", [
    ("3", 3), (" 12 ", 12), ("0", None), ("-1", None), ("2.5", None), ("two", None),
])
def test_parse_positive_int(text, expected):
    assert machine.parse_positive_int(text) == expected


@pytest.mark.parametrize("text,valid", [
    ("a@b.com", True), (" buyer@example.co.uk ", True),
    ("a@b", False), ("a b@c.com", False), ("@b.com", False), ("plain", False),
])
def test_email_pattern(text, valid):
    assert machine.is_valid_email(text) is valid


# ─── Precedence ──────────────────────────────────────────────────

@pytest.mark.parametrize("state", ALL_STATES)
def test_restart_from_any_stage_returns_initial(state):
    action = machine.decide(state, "restart")
    assert isinstance(action, Reply)
    assert action.transition.state == Initial()
    assert action.transition.replies[0].body == fmt.intro_message()


@pytest.mark.parametrize("state", ALL_STATES)
def test_buy_event_accepted_in_any_stage(state):
    action = machine.decide(state, "buy-event-abc123")
    assert action == LoadOffer("abc123")


def test_malformed_buy_event_replies_not_found_and_keeps_state():
    state = _quantity()
    action = machine.decide(state, "buy-event-!!!")
    assert action.transition.state == state
    assert action.transition.replies[0].body == fmt.event_code_not_found_message()


def test_initial_other_text_sends_intro():
    action = machine.decide(Initial(), "hello")
    assert action.transition.state == Initial()
    assert "buy-event-" in action.transition.replies[0].body


# ─── Offer ───────────────────────────────────────────────────────

def test_offer_result_lists_options():
    transition = machine.offer_result(Initial(), LISTING, (REGULAR, VIP))
    assert transition.state == AwaitingTicketChoice(offer=OFFER)
    body = transition.replies[0].body
    assert "1. Regular - ₦5,000 (10 left)" in body
    assert "2. VIP - ₦15,000 (2 left)" in body


def test_offer_result_unknown_event_keeps_stage():
    state = _quantity()
    transition = machine.offer_result(state, None, ())
    assert transition.state == state
    assert transition.replies[0].body == fmt.event_code_not_found_message()


def test_offer_result_unpublished_event_resets():
    draft = EventListing("abc123", "Draft", "NGN", "draft", "public")
    transition = machine.offer_result(_choice(), draft, (REGULAR,))
    assert transition.state == Initial()
    assert transition.replies[0].body == fmt.event_not_on_sale_message()


def test_offer_result_private_event_resets():
    private = EventListing("abc123", "Private", "NGN", "published", "private")
    assert machine.offer_result(Initial(), private, (REGULAR,)).state == Initial()


def test_offer_result_sold_out_resets():
    transition = machine.offer_result(Initial(), LISTING, ())
    assert transition.state == Initial()
    assert "sold out" in transition.replies[0].body


def test_offer_lookup_failed_keeps_state():
    state = _choice()
    transition = machine.offer_lookup_failed(state)
    assert transition.state == state


# ─── Ticket choice ───────────────────────────────────────────────

def test_choose_ticket_valid_index():
    action = machine.decide(_choice(), "1")
    assert action.transition.state == AwaitingQuantity(offer=OFFER, choice=REGULAR)
    assert "Regular" in action.transition.replies[0].body


@pytest.mark.parametrize("text", ["0", "3", "abc", "-1"])
def test_choose_ticket_out_of_range_reprompts(text):
    state = _choice()
    action = machine.decide(state, text)
    assert action.transition.state == state
    assert action.transition.replies[0].body == "Please reply with a number between 1 and 2."


def test_choose_ticket_empty_snapshot_resets():
    state = AwaitingTicketChoice(offer=Offer("abc123", "T", "NGN", ()))
    action = machine.decide(state, "1")
    assert action.transition.state == Initial()
    assert action.transition.replies[0].body == fmt.options_expired_message()


# ─── Quantity ────────────────────────────────────────────────────

def test_quantity_requests_live_check():
    state = _quantity()
    assert machine.decide(state, "3") == CheckQuantity(state, 3)


@pytest.mark.parametrize("text", ["0", "many", "1.5", ""])
def test_invalid_quantity_reprompts(text):
    state = _quantity()
    action = machine.decide(state, text)
    assert action.transition.state == state
    assert action.transition.replies[0].body == fmt.invalid_quantity_message()


def test_quantity_result_uses_live_price():
    live = LiveAvailability("regular", "Regular", Decimal("6000"), 8)
    transition = machine.quantity_result(_quantity(), 3, live)
    state = transition.state
    assert isinstance(state, AwaitingEmail)
    assert state.unit_price == Decimal("6000")
    assert state.total == Decimal("18000")
    assert "₦18,000" in transition.replies[0].body


def test_quantity_above_availability_keeps_stage():
    live = LiveAvailability("vip", "VIP", Decimal("15000"), 2)
    state = AwaitingQuantity(offer=OFFER, choice=VIP)
    transition = machine.quantity_result(state, 5, live)
    assert transition.state == state
    assert transition.replies[0].body.startswith("Only 2 ticket(s) are left for VIP")


def test_quantity_missing_ticket_type_resets():
    transition = machine.quantity_result(_quantity(), 1, None)
    assert transition.state == Initial()
    assert transition.replies[0].body == fmt.ticket_type_unavailable_message()


# ─── Email / checkout ────────────────────────────────────────────

def test_valid_email_begins_checkout():
    state = _email()
    assert machine.decide(state, " a@b.com ") == BeginCheckout(state, "a@b.com")


def test_invalid_email_reprompts():
    state = _email()
    action = machine.decide(state, "not-an-email")
    assert action.transition.state == state
    assert action.transition.replies[0].body == fmt.invalid_email_message()


def test_checkout_result_moves_to_payment_with_link_preview():
    transition = machine.checkout_result(_email(), CHECKOUT)
    assert transition.state == _payment()
    reply = transition.replies[0]
    assert reply.preview_url is True
    assert CHECKOUT.authorization_url in reply.body
    assert "Total: ₦15,000" in reply.body


def test_checkout_failed_keeps_email_stage():
    state = _email()
    transition = machine.checkout_failed(state)
    assert transition.state == state
    assert transition.replies[0].body == fmt.payment_start_failed_message()


# ─── Awaiting payment ────────────────────────────────────────────

def test_link_resends_authorization_url():
    action = machine.decide(_payment(), "send the link please")
    assert action.transition.state == _payment()
    assert CHECKOUT.authorization_url in action.transition.replies[0].body


def test_link_without_url_on_file():
    state = _payment(Checkout("a@b.com", "o1", "WHT-o1", None, None))
    action = machine.decide(state, "link")
    assert action.transition.replies[0].body == fmt.no_link_on_file_message()


@pytest.mark.parametrize("text", ["status", "I have PAID"])
def test_status_requests_order_lookup(text):
    state = _payment()
    assert machine.decide(state, text) == ReportOrderStatus(state)


def test_other_text_while_awaiting_payment():
    action = machine.decide(_payment(), "hello?")
    assert action.transition.replies[0].body == fmt.awaiting_payment_message()


@pytest.mark.parametrize("status,message", [
    (OrderStatus.PAID, fmt.payment_confirmed_status_message()),
    (OrderStatus.PENDING, fmt.payment_pending_status_message()),
    (OrderStatus.FAILED, fmt.payment_failed_status_message()),
    (None, fmt.payment_status_unknown_message()),
])
def test_order_status_result_never_changes_stage(status, message):
    state = _payment()
    transition = machine.order_status_result(state, status)
    assert transition.state == state
    assert transition.replies[0].body == message


# ─── Completed / failures ────────────────────────────────────────

def test_completed_is_terminal():
    state = Completed(order_id="o1", payment_reference="WHT-o1")
    action = machine.decide(state, "hi")
    assert action.transition.state == state
    assert action.transition.replies[0].body == fmt.order_complete_message()


def test_dependency_failed_apologizes_without_moving():
    state = _quantity()
    transition = machine.dependency_failed(state)
    assert transition.state == state
    assert transition.replies[0].body == fmt.generic_apology_message()


def test_session_expired_resets():
    transition = machine.session_expired()
    assert transition.state.stage == Stage.INITIAL
    assert transition.replies[0].body == fmt.session_expired_message()
