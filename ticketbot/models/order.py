"""Order ORM — a buyer's purchase attempt for one ticket type.

Invariants:
    - Created pending, only after the buyer supplied a valid email
    - status moves to "paid" exactly once, via a conditional UPDATE in services/finalize_payment.py
    - meta carries ticketTypeId, ticketTypeName, quantity, channel marker and sessionId
"""

import uuid
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import String, Numeric, DateTime, JSON, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.dialects.postgresql import UUID

from ticketbot.db.base import Base


class Order(Base):
    __tablename__ = "orders"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    event_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("events.id"), nullable=False, index=True,
    )
    buyer_email: Mapped[str] = mapped_column(String(320), nullable=False)
    buyer_phone: Mapped[str | None] = mapped_column(String(32), nullable=True)
    buyer_full_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="NGN")
    total_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default="pending", index=True,
    )
    payment_provider: Mapped[str] = mapped_column(
        String(20), nullable=False, default="paystack",
    )
    payment_reference: Mapped[str | None] = mapped_column(
        String(100), nullable=True, index=True,
    )
    meta: Mapped[dict] = mapped_column(
        "metadata", JSON, nullable=False, default=dict,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    paid_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )

    tickets: Mapped[list["Ticket"]] = relationship(
        "Ticket", back_populates="order", lazy="selectin",
    )
