"""Message Normalizer — canonical sender ids and text extraction for inbound messages.

Invariants:
    - normalize_phone is idempotent: normalize_phone(normalize_phone(x)) == normalize_phone(x)
    - A canonical sender is "+" followed by the number, or "" when nothing usable remains
    - Only text messages with a non-blank body produce an InboundText
    - Pure functions: no IO, no logging
"""

import re
from dataclasses import dataclass

_CHANNEL_PREFIX = "whatsapp:"
_SEPARATORS = re.compile(r"[\s\-().]")


@dataclass(frozen=True)
class InboundText:
    """A buyer message ready for the state machine."""
    sender: str
    text: str
    message_id: str | None = None


def normalize_phone(raw: str) -> str:
    """Canonicalize a sender identifier to "+<number>"."""
    value = (raw or "").strip()
    if value.lower().startswith(_CHANNEL_PREFIX):
        value = value[len(_CHANNEL_PREFIX):]
    value = _SEPARATORS.sub("", value).lstrip("+")
    if not value:
        return ""
    return f"+{value}"


def normalize_inbound(
    sender_raw: str | None,
    message_type: str | None,
    body: str | None,
    message_id: str | None = None,
) -> InboundText | None:
    """Build an InboundText, or None when the message is not processable text."""
    if message_type != "text":
        return None
    text = (body or "").strip()
    if not text:
        return None
    sender = normalize_phone(sender_raw or "")
    if not sender:
        return None
    return InboundText(sender=sender, text=text, message_id=message_id)
