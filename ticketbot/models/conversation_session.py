"""ConversationSession ORM — one durable row per buyer phone number.

Invariants:
    - sender is unique: exactly one conversation per canonical phone number
    - stage holds a core.domain_types.Stage value
    - Flat selection columns mirror core.session_state.state_to_record
    - Rows are never deleted; completed conversations stay as an audit trail
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import String, Text, Integer, DateTime, JSON
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.dialects.postgresql import UUID

from ticketbot.db.base import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ConversationSession(Base):
    """Per-sender conversation record."""
    __tablename__ = "conversation_sessions"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    sender: Mapped[str] = mapped_column(
        String(32), nullable=False, unique=True, index=True,
    )
    stage: Mapped[str] = mapped_column(
        String(32), nullable=False, default="initial",
    )
    event_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    ticket_type_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    quantity: Mapped[int | None] = mapped_column(Integer, nullable=True)
    buyer_email: Mapped[str | None] = mapped_column(String(320), nullable=True)
    order_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    payment_reference: Mapped[str | None] = mapped_column(String(100), nullable=True)
    payment_access_token: Mapped[str | None] = mapped_column(String(100), nullable=True)
    meta: Mapped[dict] = mapped_column(
        "metadata", JSON, nullable=False, default=dict,
    )
    last_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    last_message_id: Mapped[str | None] = mapped_column(String(128), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow,
    )
