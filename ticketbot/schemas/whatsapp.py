"""WhatsApp Webhook Schemas — lenient Pydantic models for Cloud API notifications.

Invariants:
    - Unknown fields are ignored (Meta adds fields without notice)
    - Every list defaults to empty: status-only notifications parse to zero messages
    - iter_messages yields messages in payload order (entry → change → message)
"""

from typing import Iterator

from pydantic import BaseModel, ConfigDict, Field


class _Lenient(BaseModel):
    model_config = ConfigDict(extra="ignore")


class TextBody(_Lenient):
    body: str = ""


class InboundMessage(_Lenient):
    id: str | None = None
    from_: str | None = Field(None, alias="from")
    type: str | None = None
    text: TextBody | None = None

    @property
    def text_body(self) -> str | None:
        return self.text.body if self.text else None


class ChangeValue(_Lenient):
    messaging_product: str | None = None
    messages: list[InboundMessage] = Field(default_factory=list)


class Change(_Lenient):
    field: str | None = None
    value: ChangeValue = Field(default_factory=ChangeValue)


class Entry(_Lenient):
    id: str | None = None
    changes: list[Change] = Field(default_factory=list)


class WhatsAppWebhookPayload(_Lenient):
    object: str | None = None
    entry: list[Entry] = Field(default_factory=list)

    def iter_messages(self) -> Iterator[InboundMessage]:
        for entry in self.entry:
            for change in entry.changes:
                yield from change.value.messages


class WebhookAck(BaseModel):
    received: bool = True
