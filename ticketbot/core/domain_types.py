"""Domain Types — rich types that replace bare primitives across the codebase.

Invariants:
    - Stage values are the exact strings stored in conversation_sessions.stage
    - OrderStatus values are the exact strings stored in orders.status
    - TicketOption prices are Decimal, never float
    - Outbound messages carry no recipient; the shell adds it at delivery time
"""

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum


# ─── Constants ───────────────────────────────────────────────────

RESTART_KEYWORDS = frozenset({"restart", "reset", "start over", "startover"})
EVENT_COMMAND_PREFIX = "buy-event-"
TICKET_CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
TICKET_CODE_LENGTH = 8
DEFAULT_CURRENCY = "NGN"
PAYMENT_PROVIDER = "paystack"


# ─── Enums ───────────────────────────────────────────────────────

class Stage(str, Enum):
    """Conversation stages in order of normal progression."""
    INITIAL = "initial"
    AWAITING_TICKET_CHOICE = "awaiting_ticket_choice"
    AWAITING_QUANTITY = "awaiting_quantity"
    AWAITING_EMAIL = "awaiting_email"
    AWAITING_PAYMENT = "awaiting_payment"
    COMPLETED = "completed"


class OrderStatus(str, Enum):
    """Order lifecycle — pending → paid happens exactly once."""
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"


class ValidationStatus(str, Enum):
    """Gate-scan status of an issued ticket."""
    VALID = "valid"
    USED = "used"
    REVOKED = "revoked"


class TypingState(str, Enum):
    TYPING_ON = "typing_on"
    TYPING_OFF = "typing_off"


# ─── Value Types ─────────────────────────────────────────────────

@dataclass(frozen=True)
class TicketOption:
    """One sellable ticket type as offered to the buyer."""
    id: str
    name: str
    price: Decimal
    available: int

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "price": str(self.price),
            "available": self.available,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "TicketOption":
        return cls(
            id=str(data["id"]),
            name=str(data["name"]),
            price=Decimal(str(data["price"])),
            available=int(data["available"]),
        )


@dataclass(frozen=True)
class EventListing:
    """Event header as read by the inventory query."""
    id: str
    title: str
    currency: str
    status: str
    visibility: str

    @property
    def is_on_sale(self) -> bool:
        return self.status == "published" and self.visibility == "public"


@dataclass(frozen=True)
class LiveAvailability:
    """Ticket type re-read at quantity-confirmation time."""
    ticket_type_id: str
    name: str
    price: Decimal
    available: int


@dataclass(frozen=True)
class OutboundText:
    body: str
    preview_url: bool = False


@dataclass(frozen=True)
class OutboundImage:
    image_url: str
    caption: str | None = None


OutboundMessage = OutboundText | OutboundImage
