"""Inventory Query — reads events and ticket types and computes remaining availability.

Invariants:
    - available = quantity - sold, never negative
    - Offered options are ordered by price ascending and exclude sold-out types
    - Read-only: never changes sold counts (only the payment finalizer does)
"""

import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ticketbot.core.domain_types import (
    DEFAULT_CURRENCY, EventListing, LiveAvailability, TicketOption,
)
from ticketbot.models.event import Event, TicketType

logger = logging.getLogger(__name__)


class InventoryQuery:
    """Event and ticket-type reads for the conversation."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def load_offer(
        self, event_id: str,
    ) -> tuple[EventListing | None, tuple[TicketOption, ...]]:
        """Event header plus its currently available ticket options."""
        event = await self.db.get(Event, event_id)
        if event is None:
            logger.info("Event not found", extra={"event_id": event_id})
            return None, ()

        listing = EventListing(
            id=event.id,
            title=event.title,
            currency=event.currency or DEFAULT_CURRENCY,
            status=event.status,
            visibility=event.visibility,
        )
        result = await self.db.execute(
            select(TicketType)
            .where(TicketType.event_id == event.id)
            .where(TicketType.sold < TicketType.quantity)
            .order_by(TicketType.price.asc(), TicketType.name.asc()),
        )
        options = tuple(
            TicketOption(
                id=ticket_type.id,
                name=ticket_type.name,
                price=ticket_type.price,
                available=ticket_type.available,
            )
            for ticket_type in result.scalars().all()
        )
        return listing, options

    async def live_availability(
        self, ticket_type_id: str, event_id: str | None = None,
    ) -> LiveAvailability | None:
        """Fresh read of one ticket type; None if it no longer exists for this event."""
        ticket_type = await self.db.get(
            TicketType, ticket_type_id, populate_existing=True,
        )
        if ticket_type is None:
            return None
        if event_id is not None and ticket_type.event_id != event_id:
            return None
        return LiveAvailability(
            ticket_type_id=ticket_type.id,
            name=ticket_type.name,
            price=ticket_type.price,
            available=ticket_type.available,
        )
