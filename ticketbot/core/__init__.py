"""Core Layer — pure domain logic, no IO, no async, no DB.

Invariants:
    - No module in core/ imports from services/, api/, infrastructure/, or db/
    - State machine decisions and fulfillment checks are deterministic functions of their inputs
"""
