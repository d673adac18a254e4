from __future__ import annotations

import uuid
from typing import Any

from app.core.errors import InvalidIdentifier


def parse_identifier(raw: Any, *, name: str = "id") -> uuid.UUID:
    """
    Fail fast on malformed identifiers, before any lookup happens.
    """
    if isinstance(raw, uuid.UUID):
        return raw
    if raw is None or not str(raw).strip():
        raise InvalidIdentifier(f"{name} is required.")
    try:
        return uuid.UUID(str(raw).strip())
    except (ValueError, AttributeError, TypeError):
        raise InvalidIdentifier(f"{name} must be UUID.")
