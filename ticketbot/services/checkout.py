"""Order & Payment Initiator — pending order creation and gateway transaction setup.

Invariants:
    - The order is committed as pending BEFORE the gateway is called
    - Gateway reference is always "WHT-<order_id>"
    - Gateway metadata carries every field the payment finalizer requires plus the channel marker
    - A gateway failure leaves the pending order in place and re-raises PaymentGatewayError
    - order_status() is read-only
"""

import logging
import uuid

from sqlalchemy.ext.asyncio import AsyncSession

from ticketbot.config import Settings
from ticketbot.core.domain_types import OrderStatus, PAYMENT_PROVIDER
from ticketbot.core.errors import ErrorContext, PaymentGatewayError
from ticketbot.core.fulfillment import to_minor_units
from ticketbot.core.repository_protocols import PaymentGateway
from ticketbot.core.session_state import AwaitingEmail, Checkout
from ticketbot.models.order import Order

logger = logging.getLogger(__name__)

REFERENCE_PREFIX = "WHT-"


def payment_reference(order_id: uuid.UUID | str) -> str:
    return f"{REFERENCE_PREFIX}{order_id}"


def _parse_uuid(value: str | None) -> uuid.UUID | None:
    try:
        return uuid.UUID(str(value))
    except (TypeError, ValueError):
        return None


class CheckoutService:
    """Creates pending orders and hands the buyer off to the payment gateway."""

    def __init__(self, db: AsyncSession, gateway: PaymentGateway, settings: Settings):
        self.db = db
        self.gateway = gateway
        self.settings = settings

    async def begin(
        self,
        *,
        session_id: uuid.UUID,
        sender: str,
        state: AwaitingEmail,
        buyer_email: str,
    ) -> Checkout:
        """Create the pending order and initialize the gateway transaction."""
        offer, choice = state.offer, state.choice
        currency = offer.currency or self.settings.default_currency
        order = Order(
            event_id=offer.event_id,
            buyer_email=buyer_email,
            buyer_phone=sender,
            currency=currency,
            total_amount=state.total,
            status=OrderStatus.PENDING.value,
            payment_provider=PAYMENT_PROVIDER,
            meta={
                "ticketTypeId": choice.id,
                "ticketTypeName": choice.name,
                "quantity": state.quantity,
                "channel": self.settings.channel_marker,
                "sessionId": str(session_id),
            },
        )
        self.db.add(order)
        await self.db.commit()

        reference = payment_reference(order.id)
        context = ErrorContext(
            sender=sender, order_id=str(order.id), reference=reference,
            stage=state.stage.value,
        )
        logger.info(
            "Pending order created",
            extra={
                "sender": sender, "order_id": str(order.id),
                "event_id": offer.event_id, "quantity": state.quantity,
            },
        )

        try:
            init = await self.gateway.initialize_transaction(
                email=buyer_email,
                amount_minor=to_minor_units(state.total),
                currency=currency,
                reference=reference,
                metadata={
                    "orderId": str(order.id),
                    "sessionId": str(session_id),
                    "eventId": offer.event_id,
                    "ticketTypeId": choice.id,
                    "ticketTypeName": choice.name,
                    "quantity": state.quantity,
                    "buyerPhone": sender,
                    "channel": self.settings.channel_marker,
                },
                callback_url=self.settings.callback_url,
            )
        except PaymentGatewayError as e:
            e.context = context
            logger.error(
                f"Payment initialization failed: {e.message}",
                extra={"sender": sender, "order_id": str(order.id), "error_code": e.code},
            )
            raise

        order.payment_reference = init.reference
        await self.db.commit()
        return Checkout(
            buyer_email=buyer_email,
            order_id=str(order.id),
            payment_reference=init.reference,
            access_token=init.access_code,
            authorization_url=init.authorization_url,
        )

    async def order_status(self, order_id: str) -> OrderStatus | None:
        """Current status of an order, or None if it cannot be found."""
        key = _parse_uuid(order_id)
        if key is None:
            return None
        order = await self.db.get(Order, key, populate_existing=True)
        if order is None:
            return None
        try:
            return OrderStatus(order.status)
        except ValueError:
            logger.warning(
                f"Order has unexpected status {order.status!r}",
                extra={"order_id": order_id},
            )
            return None
