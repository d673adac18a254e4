#app/core/auth_deps.py
from __future__ import annotations

from typing import Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError

from app.core.errors import Forbidden, InvalidIdentifier, Unauthorized
from app.core.ids import parse_identifier
from app.core.security import decode_token
from app.models.enums import GlobalRole
from app.policies.rbac import Actor, is_elevated

bearer = HTTPBearer(auto_error=False)


def get_current_actor(
    request: Request,
    creds: Optional[HTTPAuthorizationCredentials] = Depends(bearer),
) -> Actor:
    """
    Canonical authentication dependency.

    Guarantees:
    - JWT is valid
    - sub is a UUID actor id
    - global_role is a valid GlobalRole
    """
    if creds is None or not creds.credentials:
        raise Unauthorized("Missing bearer token.")

    try:
        payload = decode_token(creds.credentials)
    except JWTError:
        raise Unauthorized("Invalid or expired token.")

    subject = payload.get("sub")
    role = payload.get("global_role")
    if not subject or not role:
        raise Unauthorized("Token missing required claims.")

    try:
        actor_id = parse_identifier(subject, name="sub")
    except InvalidIdentifier:
        raise Unauthorized("Token subject is not a valid actor id.")

    try:
        role_enum = GlobalRole(role)
    except ValueError:
        raise Unauthorized("Invalid global role in token.")

    actor = Actor(actor_id=actor_id, global_role=role_enum)

    # Make actor available to downstream middleware / handlers
    request.state.actor = actor
    return actor


def require_elevated_actor(actor: Actor = Depends(get_current_actor)) -> Actor:
    if not is_elevated(actor.global_role):
        raise Forbidden("Elevated role required.")
    return actor
