"""Services Layer — orchestrates IO around the pure conversation core.

Invariants:
    - Services own the AsyncSession for the duration of one inbound message or webhook
    - Every buyer-facing reply is produced by core/, services only deliver it
"""
