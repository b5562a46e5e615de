"""API Layer — FastAPI webhook routes and error handlers.

Invariants:
    - Routes registered explicitly in main.py (no auto-discovery)
    - Routes parse and authenticate payloads, then delegate to services
"""
