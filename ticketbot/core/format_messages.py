"""Buyer Message Formatting — pure builders for every text the bot sends.

Invariants:
    - All functions are pure (no IO, no async, no DB)
    - Amounts are formatted with thousands separators and no trailing ".00"
    - Command words quoted in replies match the grammar in core/conversation.py
"""

from decimal import Decimal

from ticketbot.core.domain_types import TicketOption

_CURRENCY_SYMBOLS = {
    "NGN": "₦",
    "USD": "$",
    "GBP": "£",
    "EUR": "€",
    "GHS": "GH₵",
    "KES": "KSh",
    "ZAR": "R",
}


def format_currency(amount: Decimal | int, currency: str = "NGN") -> str:
    """Format an amount the way the checkout page shows it (e.g. ₦15,000)."""
    value = Decimal(amount)
    if value == value.to_integral_value():
        number = f"{value:,.0f}"
    else:
        number = f"{value:,.2f}"
    code = (currency or "NGN").upper()
    symbol = _CURRENCY_SYMBOLS.get(code)
    if symbol:
        return f"{symbol}{number}"
    return f"{code} {number}"


# ─── Initial / restart ───────────────────────────────────────────

def intro_message(event_id_hint: str | None = None) -> str:
    lines = [
        "👋 Hi! I can help you purchase tickets instantly.",
        "To get started, tap the event link shared with you or send:",
        "`buy-event-<event-id>`",
    ]
    if event_id_hint:
        lines += ["", f"Example: buy-event-{event_id_hint}"]
    return "\n".join(lines)


def event_code_not_found_message() -> str:
    return "I couldn't find that event code. Please double-check the link and try again."


def event_not_on_sale_message() -> str:
    return (
        "This event is not currently available for sale. "
        "Please contact the organizer for details."
    )


def sold_out_message(event_title: str) -> str:
    return (
        f"🎟 {event_title}\n\n"
        "All tickets are currently sold out. "
        "Please check back later or contact the organizer."
    )


def event_lookup_failed_message() -> str:
    return (
        "Something went wrong fetching this event. "
        "Please try again shortly or contact support."
    )


# ─── Ticket choice ───────────────────────────────────────────────

def ticket_list_message(
    event_title: str, options: tuple[TicketOption, ...], currency: str,
) -> str:
    listing = "\n".join(
        f"{idx}. {opt.name} - {format_currency(opt.price, currency)} ({opt.available} left)"
        for idx, opt in enumerate(options, start=1)
    )
    return (
        f"🎟 Event: {event_title}\n\n"
        f"Available Tickets:\n{listing}\n\n"
        "Reply with the number of the ticket you want."
    )


def choice_out_of_range_message(option_count: int) -> str:
    return f"Please reply with a number between 1 and {option_count}."


def options_expired_message() -> str:
    return "Ticket options expired. Send the event link again to refresh availability."


def ticket_selected_message(option: TicketOption, currency: str) -> str:
    return (
        f"You selected *{option.name}* ({format_currency(option.price, currency)}).\n"
        "How many tickets would you like to buy?"
    )


# ─── Quantity ────────────────────────────────────────────────────

def invalid_quantity_message() -> str:
    return "Please enter a valid quantity (e.g. 1, 2, 3)."


def ticket_type_unavailable_message() -> str:
    return "That ticket type is no longer available. Please choose again."


def insufficient_stock_message(available: int, ticket_name: str) -> str:
    return (
        f"Only {available} ticket(s) are left for {ticket_name}. "
        "Please choose a lower quantity."
    )


def quantity_confirmed_message(
    total: Decimal, currency: str, quantity: int, ticket_name: str,
) -> str:
    return (
        f"Great! That will be {format_currency(total, currency)} for "
        f"{quantity} {ticket_name} ticket(s).\n\n"
        "Reply with the email address we should send your receipt to."
    )


# ─── Email / checkout ────────────────────────────────────────────

def invalid_email_message() -> str:
    return "Please enter a valid email address so we can send your tickets and receipt."


def payment_link_message(
    quantity: int, ticket_name: str, event_title: str,
    total: Decimal, currency: str, authorization_url: str,
) -> str:
    return (
        f"Great! You're purchasing {quantity} {ticket_name} ticket(s) for {event_title}.\n\n"
        f"Total: {format_currency(total, currency)}\n\n"
        f"Tap to pay now:\n{authorization_url}\n\n"
        "I'll confirm your tickets as soon as the payment clears."
    )


def payment_start_failed_message() -> str:
    return (
        "We could not start the payment right now. "
        "Please try again in a moment or contact support."
    )


# ─── Awaiting payment ────────────────────────────────────────────

def resend_link_message(authorization_url: str) -> str:
    return f"Here's your payment link again 👇\n{authorization_url}"


def no_link_on_file_message() -> str:
    return "I do not have a payment link on file. Please restart with the event link."


def payment_confirmed_status_message() -> str:
    return "✅ Payment confirmed! Your tickets are on the way."


def payment_pending_status_message() -> str:
    return (
        "Payment is still pending. "
        "You can retry the payment link or reach out if you need help."
    )


def payment_status_unknown_message() -> str:
    return (
        "Still waiting for payment confirmation. "
        "If you already paid, you will receive tickets shortly."
    )


def payment_failed_status_message() -> str:
    return (
        "This payment did not go through. "
        "Reply *restart* and send the event link to try again."
    )


def awaiting_payment_message() -> str:
    return (
        "Once you complete payment, I will send your tickets here. "
        'Reply with "link" if you need the payment URL again.'
    )


# ─── Completed / generic ─────────────────────────────────────────

def order_complete_message() -> str:
    return (
        "✅ Your last order is complete. To start a new purchase, "
        "send the event link again or type `buy-event-<event-id>`."
    )


def session_expired_message() -> str:
    return "Session expired. Please send the event link again to restart."


def generic_apology_message() -> str:
    return "Sorry, something went wrong on our side. Please try again in a moment."


# ─── Receipt ─────────────────────────────────────────────────────

def receipt_message(
    event_title: str, ticket_name: str, quantity: int,
    total_paid: Decimal, currency: str, ticket_codes: list[str],
) -> str:
    codes = (
        "\n".join(f"• {code}" for code in ticket_codes)
        if ticket_codes
        else "Your tickets are attached to your order."
    )
    return "\n".join([
        "✅ Payment confirmed!",
        "",
        f"Event: {event_title}",
        f"Ticket: {ticket_name}",
        f"Quantity: {quantity}",
        f"Total Paid: {format_currency(total_paid, currency)}",
        "",
        "Ticket Codes:",
        codes,
        "",
        "Your QR codes are sent below. Show any of them at the event gate 🎟️",
    ])


def ticket_image_caption(code: str) -> str:
    return f"Ticket code: {code}"
