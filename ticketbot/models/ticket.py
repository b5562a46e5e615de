"""Ticket ORM — one admission issued by the payment finalizer.

Invariants:
    - Exactly `quantity` rows per paid order, inserted in one transaction
    - code is unique across all tickets
    - qr_url is filled after the QR image is stored (may stay NULL if rendering failed)
"""

import uuid
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import String, Numeric, DateTime, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.dialects.postgresql import UUID

from ticketbot.db.base import Base


class Ticket(Base):
    __tablename__ = "tickets"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    order_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("orders.id"), nullable=False, index=True,
    )
    event_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("events.id"), nullable=False,
    )
    ticket_type_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("ticket_types.id"), nullable=False,
    )
    code: Mapped[str] = mapped_column(String(8), nullable=False, unique=True)
    qr_url: Mapped[str | None] = mapped_column(String(500), nullable=True)
    attendee_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    attendee_email: Mapped[str | None] = mapped_column(String(320), nullable=True)
    price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    validation_status: Mapped[str] = mapped_column(
        String(20), nullable=False, default="valid",
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    order: Mapped["Order"] = relationship("Order", back_populates="tickets")
