"""Ticket Codes — human-readable admission codes and their validation URLs.

Invariants:
    - Codes are TICKET_CODE_LENGTH characters from TICKET_CODE_ALPHABET (no 0/O, 1/I)
    - generate_ticket_codes returns pairwise-distinct codes
    - The QR payload's signature parameter is the ticket code itself
"""

import secrets
from urllib.parse import urlencode

from ticketbot.core.domain_types import TICKET_CODE_ALPHABET, TICKET_CODE_LENGTH


def generate_ticket_code() -> str:
    return "".join(
        secrets.choice(TICKET_CODE_ALPHABET) for _ in range(TICKET_CODE_LENGTH)
    )


def generate_ticket_codes(count: int, taken: set[str] | None = None) -> list[str]:
    """Generate `count` distinct codes, skipping any already in `taken`."""
    seen = set(taken or ())
    codes: list[str] = []
    while len(codes) < count:
        code = generate_ticket_code()
        if code in seen:
            continue
        seen.add(code)
        codes.append(code)
    return codes


def build_validation_url(base_url: str, ticket_id: str, code: str) -> str:
    """URL encoded into the QR image and opened by the gate scanner."""
    query = urlencode({"ticketId": ticket_id, "signature": code})
    return f"{base_url.rstrip('/')}/validate-ticket?{query}"
