# app/core/security.py
from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional, Union

from jose import jwt

from app.core.config import get_settings
from app.models.enums import GlobalRole


def create_access_token(subject: str, claims: Dict[str, Any], expires_minutes: Optional[int] = None) -> str:
    settings = get_settings()
    exp_minutes = expires_minutes or settings.jwt_access_token_minutes
    now = datetime.now(timezone.utc)
    payload = {
        "sub": subject,
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(minutes=exp_minutes)).timestamp()),
        **claims,
    }
    return jwt.encode(payload, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def issue_actor_token(
    actor_id: uuid.UUID,
    global_role: Union[GlobalRole, str],
    expires_minutes: Optional[int] = None,
) -> str:
    """
    Token in the shape get_current_actor expects: sub = actor id, global_role claim.
    The identity provider normally issues these; used by the seed script and tests.
    """
    return create_access_token(
        str(actor_id),
        {"global_role": GlobalRole(global_role).value},
        expires_minutes=expires_minutes,
    )


def decode_token(token: str) -> Dict[str, Any]:
    settings = get_settings()
    return jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
