# app/api/v1/members.py
from __future__ import annotations

from fastapi import APIRouter, Depends, Response
from sqlalchemy.orm import Session

from app.api.v1.presenters import member_resp
from app.core.auth_deps import get_current_actor
from app.core.deps import audit_metadata, get_membership_service, surface_audit_warnings
from app.db.session import get_db
from app.policies.rbac import Actor
from app.schemas.members import (
    MemberAddRequest,
    MemberListResponse,
    MemberResponse,
    MemberRoleRequest,
)
from app.services.membership_service import MembershipService

router = APIRouter(prefix="/projects/{project_id}/members")


@router.get("", response_model=MemberListResponse)
def list_members(
    project_id: str,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
    svc: MembershipService = Depends(get_membership_service),
):
    rows = svc.list_members(db, actor=actor, project_id=project_id)
    return {"projectId": project_id, "members": [member_resp(m) for m in rows]}


@router.post("", response_model=MemberResponse, status_code=201)
def add_member(
    project_id: str,
    body: MemberAddRequest,
    response: Response,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
    metadata=Depends(audit_metadata),
    svc: MembershipService = Depends(get_membership_service),
):
    row, audit = svc.add_member(
        db,
        actor=actor,
        project_id=project_id,
        user_id=body.userId,
        role=body.role,
        metadata=metadata,
    )
    surface_audit_warnings(response, audit)
    return member_resp(row)


@router.patch("/{user_id}", response_model=MemberResponse)
def change_member_role(
    project_id: str,
    user_id: str,
    body: MemberRoleRequest,
    response: Response,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
    metadata=Depends(audit_metadata),
    svc: MembershipService = Depends(get_membership_service),
):
    row, audit = svc.change_role(
        db,
        actor=actor,
        project_id=project_id,
        user_id=user_id,
        role=body.role,
        metadata=metadata,
    )
    surface_audit_warnings(response, audit)
    return member_resp(row)


@router.delete("/{user_id}", status_code=204)
def remove_member(
    project_id: str,
    user_id: str,
    response: Response,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
    metadata=Depends(audit_metadata),
    svc: MembershipService = Depends(get_membership_service),
):
    audit = svc.remove_member(
        db, actor=actor, project_id=project_id, user_id=user_id, metadata=metadata
    )
    surface_audit_warnings(response, audit)
    response.status_code = 204
    return response
