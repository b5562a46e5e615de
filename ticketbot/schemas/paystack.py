"""Paystack Webhook Schemas — charge events delivered to the payment webhook.

Invariants:
    - metadata delivered as a JSON string is decoded to a dict; anything else non-dict → None
    - amount is in minor units exactly as the gateway sent it
"""

import json

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ChargeData(BaseModel):
    model_config = ConfigDict(extra="ignore")

    status: str | None = None
    reference: str | None = None
    amount: int | None = None
    currency: str | None = None
    metadata: dict | None = None

    @field_validator("metadata", mode="before")
    @classmethod
    def decode_metadata(cls, v):
        if isinstance(v, str):
            try:
                v = json.loads(v)
            except ValueError:
                return None
        return v if isinstance(v, dict) else None


class PaystackEvent(BaseModel):
    model_config = ConfigDict(extra="ignore")

    event: str = ""
    data: ChargeData = Field(default_factory=ChargeData)


class PaystackAck(BaseModel):
    received: bool = True
    event: str | None = None
