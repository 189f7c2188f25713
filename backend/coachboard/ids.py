"""Identifier generation for persisted records."""

import uuid


def new_id() -> str:
    """Return a new collision-free record id (UUID4, 36 chars)."""
    return str(uuid.uuid4())
