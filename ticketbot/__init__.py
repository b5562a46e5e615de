"""Ticketbot Application Package — conversational ticket checkout over WhatsApp.

Invariants:
    - Package root contains no executable code (import side-effects prohibited)
"""
