"""Conversation Service — runs one inbound buyer message through the state machine.

Invariants:
    - Order per message: load session → decide → perform IO request → persist → send replies
    - The new state is committed BEFORE any reply is sent
    - Downstream failures (gateway, datastore, including the session load and save) produce
      the generic apology with the stored stage unchanged
    - A redelivered message (same WhatsApp message id as the last one stored) is skipped
    - Only the inbound text and the state transition are written; orders are created by checkout
"""

import logging
from typing import assert_never

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ticketbot.config import Settings
from ticketbot.core import conversation as machine
from ticketbot.core.conversation import (
    BeginCheckout, CheckQuantity, LoadOffer, ReportOrderStatus, Reply, Transition,
)
from ticketbot.core.domain_types import TypingState
from ticketbot.core.errors import MessagingChannelError, TicketBotError
from ticketbot.core.normalize_message import InboundText
from ticketbot.core.repository_protocols import MessagingChannel, PaymentGateway
from ticketbot.core.session_state import ConversationSession, Initial
from ticketbot.services.checkout import CheckoutService
from ticketbot.services.inventory import InventoryQuery
from ticketbot.services.outbound import send_messages
from ticketbot.services.session_store import SessionStore

logger = logging.getLogger(__name__)


class ConversationService:
    """Glue between the pure state machine and the session, inventory and checkout IO."""

    def __init__(
        self,
        db: AsyncSession,
        channel: MessagingChannel,
        gateway: PaymentGateway,
        settings: Settings,
    ):
        self.db = db
        self.channel = channel
        self.settings = settings
        self.sessions = SessionStore(db)
        self.inventory = InventoryQuery(db)
        self.checkout = CheckoutService(db, gateway, settings)

    async def handle_message(self, inbound: InboundText) -> Transition:
        """Process one buyer message end to end. Returns the transition that was applied."""
        sender = inbound.sender
        if self.settings.whatsapp_typing_indicator:
            await self._typing(sender)

        try:
            session = await self.sessions.load(sender)
        except SQLAlchemyError as e:
            await self.db.rollback()
            self._log_store_failure("load", sender, e)
            transition = machine.dependency_failed(Initial())
            await self.deliver(sender, transition.replies)
            return transition

        if session.last_message_id and session.last_message_id == inbound.message_id:
            logger.info(
                "Duplicate inbound message skipped",
                extra={"sender": sender, "stage": session.stage.value},
            )
            return Transition(state=session.state)

        if session.expired:
            transition = machine.session_expired()
        else:
            transition = await self._step(session, inbound.text)

        try:
            await self.sessions.save(
                sender, transition.state,
                last_message=inbound.text, last_message_id=inbound.message_id,
            )
        except SQLAlchemyError as e:
            await self.db.rollback()
            self._log_store_failure("save", sender, e)
            transition = machine.unsaved_transition(session.state, transition)

        logger.info(
            "Conversation step",
            extra={
                "sender": sender,
                "stage": transition.state.stage.value,
            },
        )
        await self.deliver(sender, transition.replies)
        return transition

    def _log_store_failure(self, operation: str, sender: str, error: Exception) -> None:
        logger.error(
            f"Session {operation} failed: {error}",
            extra={"sender": sender, "error_code": type(error).__name__},
        )

    async def _step(self, session: ConversationSession, text: str) -> Transition:
        state = session.state
        action = machine.decide(state, text)
        try:
            match action:
                case Reply(transition=transition):
                    return transition
                case LoadOffer(event_id=event_id):
                    return await self._load_offer(session, event_id)
                case CheckQuantity(state=awaiting, quantity=quantity):
                    live = await self.inventory.live_availability(
                        awaiting.choice.id, awaiting.offer.event_id,
                    )
                    return machine.quantity_result(awaiting, quantity, live)
                case BeginCheckout(state=awaiting, buyer_email=buyer_email):
                    checkout = await self.checkout.begin(
                        session_id=session.id,
                        sender=session.sender,
                        state=awaiting,
                        buyer_email=buyer_email,
                    )
                    return machine.checkout_result(awaiting, checkout)
                case ReportOrderStatus(state=awaiting):
                    status = await self.checkout.order_status(awaiting.checkout.order_id)
                    return machine.order_status_result(awaiting, status)
                case _:
                    assert_never(action)
        except (TicketBotError, SQLAlchemyError) as e:
            await self.db.rollback()
            code = getattr(e, "code", type(e).__name__)
            logger.error(
                f"Conversation dependency failed: {e}",
                extra={"sender": session.sender, "stage": state.stage.value, "error_code": code},
            )
            if isinstance(action, BeginCheckout):
                return machine.checkout_failed(action.state)
            return machine.dependency_failed(state)

    async def _load_offer(self, session: ConversationSession, event_id: str) -> Transition:
        try:
            event, options = await self.inventory.load_offer(event_id)
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(
                f"Event lookup failed: {e}",
                extra={"sender": session.sender, "event_id": event_id},
            )
            return machine.offer_lookup_failed(session.state)
        return machine.offer_result(session.state, event, options)

    async def deliver(self, to: str, replies) -> None:
        """Send replies in order; a channel failure stops the remaining sends."""
        try:
            await send_messages(self.channel, to, replies)
        except MessagingChannelError as e:
            logger.error(
                f"Reply delivery failed: {e.message}",
                extra={"sender": to, "error_code": e.code},
            )

    async def _typing(self, to: str) -> None:
        try:
            await self.channel.send_typing(to, TypingState.TYPING_ON)
        except MessagingChannelError as e:
            logger.warning(
                f"Typing indicator failed: {e.message}", extra={"sender": to},
            )
