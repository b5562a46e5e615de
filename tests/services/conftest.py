"""Service test fixtures — services wired to the SQLite test session and fake adapters."""

import pytest

from ticketbot.core.normalize_message import InboundText
from ticketbot.services.conversation import ConversationService
from ticketbot.services.finalize_payment import PaymentFinalizer
from tests.fakes import BUYER


@pytest.fixture
def conversation(test_db, channel, gateway, settings, catalog):
    return ConversationService(test_db, channel, gateway, settings)


@pytest.fixture
def finalizer(test_db, channel, qr_store, settings):
    return PaymentFinalizer(test_db, channel, qr_store, settings)


@pytest.fixture
def say(conversation):
    """Send one buyer message through the conversation service."""
    async def _say(text: str, sender: str = BUYER):
        return await conversation.handle_message(InboundText(sender=sender, text=text))
    return _say


@pytest.fixture
def checkout_flow(say, gateway):
    """Drive the buyer to awaiting_payment (Regular x3, a@b.com). Returns gateway metadata."""
    async def _flow(choice: str = "1", quantity: str = "3", email: str = "a@b.com"):
        await say("buy-event-abc123")
        await say(choice)
        await say(quantity)
        await say(email)
        return gateway.calls[-1]["metadata"]
    return _flow
