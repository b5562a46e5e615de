"""Infrastructure Layer — external service clients and cross-cutting concerns.

Invariants:
    - Infrastructure never imports from core/ conversation logic
    - All outbound HTTP calls wrapped with timeout and error mapping
"""
