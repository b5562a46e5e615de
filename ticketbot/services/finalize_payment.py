"""Payment Webhook Finalizer — turns a paid gateway event into issued tickets, exactly once.

Invariants:
    - The only write gate is a conditional UPDATE: status pending|failed → paid, checked by rowcount
    - Availability check, ticket inserts, and the guarded sold increment share one transaction
    - sold is incremented with "sold + q <= quantity" in the WHERE clause (never oversells)
    - Exactly `quantity` tickets per paid order; a replayed event issues nothing
    - Failures after the paid mark are logged and recorded in orders.metadata, never retried
    - Failure events move a pending order to failed and touch nothing else

Design Decisions:
    - QR images rendered (in a worker thread) before the issuance commit: ticket ids are
      generated client-side, so each row is inserted with its qr_url already set; a
      rolled-back issuance discards the order's images
    - Receipt resend on duplicate delivery is a setting (resend_receipt_on_duplicate)
"""

import logging
import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ticketbot.config import Settings
from ticketbot.core.domain_types import OrderStatus, ValidationStatus
from ticketbot.core.errors import (
    InsufficientInventoryError, MessagingChannelError, ResourceNotFoundError,
)
from ticketbot.core.fulfillment import (
    FinalizeRequest,
    MetadataRejection,
    build_receipt,
    charged_amount,
    classify_event,
    complete_session,
    validate_payment_metadata,
)
from ticketbot.core.repository_protocols import MessagingChannel, QrImageStore
from ticketbot.core.session_state import Initial
from ticketbot.core.ticket_codes import build_validation_url, generate_ticket_codes
from ticketbot.models.event import Event, TicketType
from ticketbot.models.order import Order
from ticketbot.models.ticket import Ticket
from ticketbot.schemas.paystack import PaystackEvent
from ticketbot.services.outbound import send_messages
from ticketbot.services.session_store import SessionStore

logger = logging.getLogger(__name__)

_PAYABLE_STATUSES = (OrderStatus.PENDING.value, OrderStatus.FAILED.value)


@dataclass(frozen=True)
class FinalizeOutcome:
    """What the finalizer did with one gateway event."""
    status: str
    order_id: str | None = None
    ticket_codes: tuple[str, ...] = ()
    detail: str | None = None


@dataclass
class _IssuedTickets:
    ticket_type_name: str
    codes: list[str] = field(default_factory=list)
    qr_urls: list[str | None] = field(default_factory=list)


def _parse_uuid(value: str) -> uuid.UUID | None:
    try:
        return uuid.UUID(str(value))
    except (TypeError, ValueError):
        return None


class PaymentFinalizer:
    """Handles Paystack charge events for the chat channel."""

    def __init__(
        self,
        db: AsyncSession,
        channel: MessagingChannel,
        qr_store: QrImageStore,
        settings: Settings,
    ):
        self.db = db
        self.channel = channel
        self.qr_store = qr_store
        self.settings = settings
        self.sessions = SessionStore(db)

    async def handle_event(self, event: PaystackEvent) -> FinalizeOutcome:
        kind = classify_event(event.event, event.data.status)
        if kind == "ignored":
            logger.info(
                f"Ignoring gateway event {event.event!r}",
                extra={"reference": event.data.reference},
            )
            return FinalizeOutcome("ignored", detail=event.event)

        parsed = validate_payment_metadata(
            event.data.metadata,
            self.settings.channel_marker,
            reference=event.data.reference,
            amount_minor=event.data.amount,
            currency=event.data.currency,
        )
        if isinstance(parsed, MetadataRejection):
            logger.warning(
                f"Dropping gateway event: {parsed.reason}",
                extra={"reference": event.data.reference},
            )
            return FinalizeOutcome("rejected", detail=parsed.reason)

        if kind == "failure":
            return await self.mark_failed(parsed)
        return await self.finalize(parsed, event.model_dump(mode="json"))

    # ─── Failure path ────────────────────────────────────────────

    async def mark_failed(self, request: FinalizeRequest) -> FinalizeOutcome:
        order_key = _parse_uuid(request.order_id)
        if order_key is None:
            return FinalizeOutcome("rejected", detail="invalid_order_id")
        result = await self.db.execute(
            update(Order)
            .where(Order.id == order_key)
            .where(Order.status == OrderStatus.PENDING.value)
            .values({Order.status: OrderStatus.FAILED.value})
            .execution_options(synchronize_session=False),
        )
        await self.db.commit()
        if result.rowcount == 0:
            logger.info(
                "Failure event for non-pending order ignored",
                extra={"order_id": request.order_id, "reference": request.reference},
            )
            return FinalizeOutcome("ignored", order_id=request.order_id)
        logger.info(
            "Order marked failed",
            extra={"order_id": request.order_id, "reference": request.reference},
        )
        return FinalizeOutcome("marked_failed", order_id=request.order_id)

    # ─── Success path ────────────────────────────────────────────

    async def finalize(self, request: FinalizeRequest, raw_event: dict) -> FinalizeOutcome:
        log_extra = {"order_id": request.order_id, "reference": request.reference}
        order_key = _parse_uuid(request.order_id)
        order = (
            await self.db.get(Order, order_key, populate_existing=True)
            if order_key is not None else None
        )
        if order is None:
            logger.error("Paid event for unknown order", extra=log_extra)
            return FinalizeOutcome("order_missing", order_id=request.order_id)

        if order.status == OrderStatus.PAID.value:
            logger.info("Order already paid, skipping fulfillment", extra=log_extra)
            if self.settings.resend_receipt_on_duplicate:
                await self._resend_receipt(order, request)
            return FinalizeOutcome("already_paid", order_id=request.order_id)

        total_paid, currency = charged_amount(
            request, order.total_amount, order.currency, self.settings.default_currency,
        )
        if not await self._claim_order(order, request, raw_event, total_paid, currency):
            logger.info("Another delivery finalized this order", extra=log_extra)
            return FinalizeOutcome("already_paid", order_id=request.order_id)

        order_id = order.id
        try:
            issued = await self._issue_tickets(order, request)
        except (InsufficientInventoryError, ResourceNotFoundError, SQLAlchemyError) as e:
            await self.db.rollback()
            logger.error(f"Ticket issuance failed: {e}", extra=log_extra)
            await self._discard_qr(order_id)
            await self._record_on_order(order_id, "fulfillment_error", str(e))
            return FinalizeOutcome(
                "fulfillment_failed", order_id=request.order_id, detail=str(e),
            )

        logger.info(
            "Tickets issued",
            extra={**log_extra, "quantity": request.quantity},
        )
        event_title = await self._complete_session(order_id, request, issued)
        await self._send_receipt(
            order_id, request,
            event_title=event_title,
            ticket_name=issued.ticket_type_name,
            total_paid=total_paid,
            currency=currency,
            codes=issued.codes,
            qr_urls=issued.qr_urls,
        )
        return FinalizeOutcome(
            "fulfilled", order_id=request.order_id, ticket_codes=tuple(issued.codes),
        )

    async def _claim_order(
        self,
        order: Order,
        request: FinalizeRequest,
        raw_event: dict,
        total_paid: Decimal,
        currency: str,
    ) -> bool:
        """Compare-and-set pending|failed → paid. True only for the delivery that won."""
        meta = {
            **(order.meta or {}),
            "paystack_event": raw_event,
            "paid_amount": str(total_paid),
            "paid_currency": currency,
        }
        result = await self.db.execute(
            update(Order)
            .where(Order.id == order.id)
            .where(Order.status.in_(_PAYABLE_STATUSES))
            .values({
                Order.status: OrderStatus.PAID.value,
                Order.paid_at: datetime.now(timezone.utc),
                Order.payment_reference: request.reference or order.payment_reference,
                Order.meta: meta,
            })
            .execution_options(synchronize_session=False),
        )
        if result.rowcount == 0:
            await self.db.rollback()
            return False
        await self.db.commit()
        await self.db.refresh(order)
        return True

    async def _issue_tickets(self, order: Order, request: FinalizeRequest) -> _IssuedTickets:
        ticket_type = await self.db.get(
            TicketType, request.ticket_type_id, populate_existing=True,
        )
        if ticket_type is None:
            raise ResourceNotFoundError("TicketType", request.ticket_type_id)
        if ticket_type.available < request.quantity:
            raise InsufficientInventoryError(
                ticket_type.id, request.quantity, ticket_type.available,
            )

        codes = await self._fresh_codes(request.quantity)
        issued = _IssuedTickets(ticket_type_name=ticket_type.name)
        for code in codes:
            ticket_id = uuid.uuid4()
            qr_url = await self._render_qr(order.id, ticket_id, code)
            self.db.add(Ticket(
                id=ticket_id,
                order_id=order.id,
                event_id=request.event_id,
                ticket_type_id=ticket_type.id,
                code=code,
                qr_url=qr_url,
                attendee_name=order.buyer_full_name,
                attendee_email=order.buyer_email,
                price=ticket_type.price,
                currency=order.currency,
                validation_status=ValidationStatus.VALID.value,
            ))
            issued.codes.append(code)
            issued.qr_urls.append(qr_url)

        result = await self.db.execute(
            update(TicketType)
            .where(TicketType.id == ticket_type.id)
            .where(TicketType.sold + request.quantity <= TicketType.quantity)
            .values({TicketType.sold: TicketType.sold + request.quantity})
            .execution_options(synchronize_session=False),
        )
        if result.rowcount == 0:
            raise InsufficientInventoryError(
                ticket_type.id, request.quantity, ticket_type.available,
            )
        await self.db.commit()
        return issued

    async def _fresh_codes(self, count: int) -> list[str]:
        """Codes that are distinct from each other and from every stored ticket."""
        codes = generate_ticket_codes(count)
        while True:
            result = await self.db.execute(
                select(Ticket.code).where(Ticket.code.in_(codes)),
            )
            taken = set(result.scalars().all())
            if not taken:
                return codes
            kept = [code for code in codes if code not in taken]
            codes = kept + generate_ticket_codes(count - len(kept), set(kept) | taken)

    async def _render_qr(
        self, order_id: uuid.UUID, ticket_id: uuid.UUID, code: str,
    ) -> str | None:
        payload = build_validation_url(
            self.settings.validation_base_url, str(ticket_id), code,
        )
        try:
            return await self.qr_store.save_ticket_qr(str(order_id), str(ticket_id), payload)
        except (OSError, ValueError) as e:
            logger.error(
                f"QR rendering failed, ticket issued without image: {e}",
                extra={"order_id": str(order_id)},
            )
            return None

    async def _discard_qr(self, order_id: uuid.UUID) -> None:
        try:
            await self.qr_store.discard_order(str(order_id))
        except OSError as e:
            logger.error(
                f"QR cleanup failed after rolled-back issuance: {e}",
                extra={"order_id": str(order_id)},
            )

    async def _complete_session(
        self, order_id: uuid.UUID, request: FinalizeRequest, issued: _IssuedTickets,
    ) -> str:
        """Move the buyer's session to completed. Returns the event title for the receipt."""
        event = await self.db.get(Event, request.event_id)
        session_key = _parse_uuid(request.session_id)
        session = (
            await self.sessions.load_by_id(session_key) if session_key is not None else None
        )
        previous = session.state if session is not None else Initial()

        completed = complete_session(
            previous,
            order_id=str(order_id),
            reference=request.reference,
            request=request,
            ticket_codes=issued.codes,
            qr_urls=issued.qr_urls,
        )
        event_title = (
            event.title if event is not None
            else completed.event_title or "your event"
        )
        if completed.event_title is None:
            completed = replace(completed, event_title=event_title)

        if session is None:
            logger.warning(
                "Paid order has no conversation session to complete",
                extra={"order_id": request.order_id},
            )
            return event_title
        try:
            await self.sessions.save_by_id(session_key, completed)
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(
                f"Session completion failed: {e}", extra={"order_id": request.order_id},
            )
            await self._record_on_order(order_id, "session_error", str(e))
        return event_title

    async def _send_receipt(
        self,
        order_id: uuid.UUID,
        request: FinalizeRequest,
        *,
        event_title: str,
        ticket_name: str,
        total_paid: Decimal,
        currency: str,
        codes: list[str],
        qr_urls: list[str | None],
    ) -> None:
        messages = build_receipt(
            event_title=event_title,
            ticket_name=ticket_name,
            quantity=len(codes),
            total_paid=total_paid,
            currency=currency,
            ticket_codes=codes,
            qr_urls=qr_urls,
        )
        try:
            await send_messages(self.channel, request.buyer_phone, messages)
        except MessagingChannelError as e:
            logger.error(
                f"Receipt delivery failed: {e.message}",
                extra={"order_id": request.order_id, "sender": request.buyer_phone},
            )
            await self._record_on_order(order_id, "notification_error", e.message)

    async def _resend_receipt(self, order: Order, request: FinalizeRequest) -> None:
        result = await self.db.execute(
            select(Ticket).where(Ticket.order_id == order.id).order_by(Ticket.created_at),
        )
        tickets = list(result.scalars().all())
        if not tickets:
            return
        event = await self.db.get(Event, order.event_id)
        meta = order.meta or {}
        await self._send_receipt(
            order.id, request,
            event_title=event.title if event is not None else "your event",
            ticket_name=meta.get("ticketTypeName") or request.ticket_type_name or "Ticket",
            total_paid=Decimal(meta.get("paid_amount") or order.total_amount),
            currency=meta.get("paid_currency") or order.currency,
            codes=[t.code for t in tickets],
            qr_urls=[t.qr_url for t in tickets],
        )

    async def _record_on_order(self, order_id: uuid.UUID, key: str, message: str) -> None:
        order = await self.db.get(Order, order_id, populate_existing=True)
        if order is None:
            return
        order.meta = {**(order.meta or {}), key: message}
        await self.db.commit()
