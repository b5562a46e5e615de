"""Pydantic Schemas — inbound webhook payload validation.

Invariants:
    - Schemas validate at system boundary (provider payloads)
    - Unknown provider fields are ignored, never rejected
"""
