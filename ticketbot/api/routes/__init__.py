"""Route Modules — one file per inbound integration.

Invariants:
    - Each module defines its own APIRouter with prefix and tags
    - Routes never contain business logic
"""
