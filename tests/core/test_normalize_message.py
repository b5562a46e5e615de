"""Message Normalizer — canonical sender ids and inbound text extraction."""

import pytest

from ticketbot.core.normalize_message import normalize_inbound, normalize_phone


@pytest.mark.parametrize("raw,expected", [
    ("2348012345678", "+2348012345678"),
    ("+2348012345678", "+2348012345678"),
    ("whatsapp:+2348012345678", "+2348012345678"),
    ("WhatsApp:234 801 234 5678", "+2348012345678"),
    ("+1 (415) 555-0100", "+14155550100"),
    ("  +44.20.7946.0958  ", "+442079460958"),
])
def test_normalize_phone_canonical_form(raw, expected):
    assert normalize_phone(raw) == expected


@pytest.mark.parametrize("raw", [
    "2348012345678", "whatsapp:+1 (415) 555-0100", "++44 20", "", "   ", "whatsapp:",
])
def test_normalize_phone_is_idempotent(raw):
    once = normalize_phone(raw)
    assert normalize_phone(once) == once


def test_normalize_phone_empty_input_yields_empty():
    assert normalize_phone("") == ""
    assert normalize_phone("whatsapp:") == ""
    assert normalize_phone(None) == ""


def test_normalize_inbound_text_message():
    inbound = normalize_inbound("2348012345678", "text", "  Buy-Event-abc123 ", "wamid.1")
    assert inbound.sender == "+2348012345678"
    assert inbound.text == "Buy-Event-abc123"
    assert inbound.message_id == "wamid.1"


@pytest.mark.parametrize("message_type,body", [
    ("image", "caption"),
    ("audio", None),
    ("text", ""),
    ("text", "   "),
    (None, "hello"),
])
def test_normalize_inbound_skips_non_text(message_type, body):
    assert normalize_inbound("2348012345678", message_type, body) is None


def test_normalize_inbound_requires_sender():
    assert normalize_inbound("", "text", "hello") is None
