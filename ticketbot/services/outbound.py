"""Outbound Delivery — sends core OutboundMessage values through a MessagingChannel.

Invariants:
    - Messages go out strictly in list order
    - The first MessagingChannelError stops delivery and propagates to the caller
"""

from typing import Iterable, assert_never

from ticketbot.core.domain_types import OutboundImage, OutboundMessage, OutboundText
from ticketbot.core.repository_protocols import MessagingChannel


async def send_messages(
    channel: MessagingChannel, to: str, messages: Iterable[OutboundMessage],
) -> int:
    """Send messages in order. Returns how many were sent."""
    sent = 0
    for message in messages:
        match message:
            case OutboundText():
                await channel.send_text(to, message.body, preview_url=message.preview_url)
            case OutboundImage():
                await channel.send_image(to, message.image_url, message.caption)
            case _:
                assert_never(message)
        sent += 1
    return sent
