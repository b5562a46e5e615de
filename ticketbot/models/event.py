"""Event + TicketType ORM — catalog rows shared with the web purchase flow.

Invariants:
    - Event ids are opaque strings (slugs or UUID text), matched verbatim by buy-event-<id>
    - 0 <= ticket_types.sold <= ticket_types.quantity (CHECK constraint)
    - sold is only incremented by the payment finalizer
"""

from datetime import datetime, timezone
from decimal import Decimal
import uuid

from sqlalchemy import (
    String, Integer, Numeric, DateTime, ForeignKey, CheckConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ticketbot.db.base import Base


class Event(Base):
    __tablename__ = "events"

    id: Mapped[str] = mapped_column(
        String(64), primary_key=True, default=lambda: str(uuid.uuid4()),
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="NGN")
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="draft")
    visibility: Mapped[str] = mapped_column(String(20), nullable=False, default="public")
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    ticket_types: Mapped[list["TicketType"]] = relationship(
        "TicketType", back_populates="event", lazy="selectin",
    )


class TicketType(Base):
    __tablename__ = "ticket_types"
    __table_args__ = (
        CheckConstraint("sold >= 0", name="ck_ticket_types_sold_non_negative"),
        CheckConstraint("sold <= quantity", name="ck_ticket_types_sold_within_quantity"),
    )

    id: Mapped[str] = mapped_column(
        String(64), primary_key=True, default=lambda: str(uuid.uuid4()),
    )
    event_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("events.id"), nullable=False, index=True,
    )
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    sold: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    event: Mapped["Event"] = relationship("Event", back_populates="ticket_types")

    @property
    def available(self) -> int:
        return max(0, self.quantity - self.sold)
