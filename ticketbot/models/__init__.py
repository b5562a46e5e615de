"""ORM Models — SQLAlchemy declarative models for conversations, catalog, orders and tickets.

Invariants:
    - All models inherit from Base (db/base.py)
    - All models imported here so string-based relationship() references resolve
"""

from ticketbot.models.conversation_session import ConversationSession  # noqa: F401
from ticketbot.models.event import Event, TicketType  # noqa: F401
from ticketbot.models.order import Order  # noqa: F401
from ticketbot.models.ticket import Ticket  # noqa: F401
