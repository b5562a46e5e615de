"""Session Store — loads, creates, and durably persists one conversation row per sender.

Invariants:
    - Exactly one conversation_sessions row per canonical sender (unique column)
    - load() always returns a session with a row id; a new sender gets a fresh Initial row
    - A row whose stage lacks required fields loads as expired Initial (never a partial state)
    - save() commits before the caller sends any reply

Design Decisions:
    - Concurrent first messages from one sender race on the unique index: the loser
      rolls back and re-reads the winner's row
"""

import logging
import uuid

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ticketbot.core.errors import SessionExpiredError
from ticketbot.core.session_state import (
    ConversationSession,
    Initial,
    StageState,
    state_from_record,
    state_to_record,
)
from ticketbot.models.conversation_session import (
    ConversationSession as ConversationSessionModel,
)

logger = logging.getLogger(__name__)

_RECORD_COLUMNS = (
    "stage", "event_id", "ticket_type_id", "quantity", "buyer_email",
    "order_id", "payment_reference", "payment_access_token",
)


def _row_record(row: ConversationSessionModel) -> dict:
    record = {column: getattr(row, column) for column in _RECORD_COLUMNS}
    record["metadata"] = dict(row.meta or {})
    return record


def _to_domain(row: ConversationSessionModel) -> ConversationSession:
    try:
        state = state_from_record(_row_record(row))
        expired = False
    except SessionExpiredError as e:
        logger.warning(
            f"Session row unusable, treating as expired: {e.message}",
            extra={"sender": row.sender, "stage": row.stage},
        )
        state, expired = Initial(), True
    return ConversationSession(
        sender=row.sender,
        state=state,
        id=row.id,
        last_message=row.last_message,
        last_message_id=row.last_message_id,
        expired=expired,
    )


def _apply_state(row: ConversationSessionModel, state: StageState) -> None:
    record = state_to_record(state)
    for column in _RECORD_COLUMNS:
        setattr(row, column, record[column])
    row.meta = record["metadata"]


class SessionStore:
    """Durable per-sender conversation state."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def _get_row(self, sender: str) -> ConversationSessionModel | None:
        result = await self.db.execute(
            select(ConversationSessionModel)
            .where(ConversationSessionModel.sender == sender),
        )
        return result.scalar_one_or_none()

    async def _get_or_create_row(self, sender: str) -> ConversationSessionModel:
        row = await self._get_row(sender)
        if row is not None:
            return row
        row = ConversationSessionModel(sender=sender, stage=Initial.stage.value, meta={})
        self.db.add(row)
        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            row = await self._get_row(sender)
            if row is None:
                raise
            return row
        logger.info("Conversation session created", extra={"sender": sender})
        return row

    async def load(self, sender: str) -> ConversationSession:
        """Load the sender's conversation, creating an Initial row if none exists."""
        return _to_domain(await self._get_or_create_row(sender))

    async def load_by_id(self, session_id: uuid.UUID) -> ConversationSession | None:
        row = await self.db.get(
            ConversationSessionModel, session_id, populate_existing=True,
        )
        return _to_domain(row) if row is not None else None

    async def save(
        self,
        sender: str,
        state: StageState,
        last_message: str | None = None,
        last_message_id: str | None = None,
    ) -> ConversationSession:
        """Persist the new state (and the inbound text and its id) for this sender, then commit."""
        row = await self._get_or_create_row(sender)
        _apply_state(row, state)
        if last_message is not None:
            row.last_message = last_message
        if last_message_id is not None:
            row.last_message_id = last_message_id
        await self.db.commit()
        return ConversationSession(
            sender=sender, state=state, id=row.id,
            last_message=row.last_message, last_message_id=row.last_message_id,
        )

    async def save_by_id(self, session_id: uuid.UUID, state: StageState) -> bool:
        """Persist state on the row with this id. Returns False when no such row exists."""
        row = await self.db.get(
            ConversationSessionModel, session_id, populate_existing=True,
        )
        if row is None:
            return False
        _apply_state(row, state)
        await self.db.commit()
        return True
