# app/api/v1/users.py
from __future__ import annotations

from fastapi import APIRouter, Depends, Response
from sqlalchemy.orm import Session

from app.api.v1.presenters import user_resp
from app.core.auth_deps import get_current_actor
from app.core.deps import audit_metadata, get_users_service, surface_audit_warnings
from app.db.session import get_db
from app.policies.rbac import Actor
from app.schemas.users import GlobalRoleRequest, UserResponse
from app.services.users_service import UsersService

router = APIRouter(prefix="/users")


@router.patch("/{user_id}/role", response_model=UserResponse)
def set_global_role(
    user_id: str,
    body: GlobalRoleRequest,
    response: Response,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
    metadata=Depends(audit_metadata),
    svc: UsersService = Depends(get_users_service),
):
    # Owner check lives in the service
    u, audit = svc.set_global_role(
        db, actor=actor, user_id=user_id, global_role=body.globalRole, metadata=metadata
    )
    surface_audit_warnings(response, audit)
    return user_resp(u)
