# app/api/v1/projects.py
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response
from sqlalchemy.orm import Session

from app.api.v1.presenters import audit_entry_resp, project_resp, version_resp
from app.core.auth_deps import get_current_actor
from app.core.deps import (
    audit_metadata,
    get_access_service,
    get_audit_service,
    get_field_version_service,
    get_projects_service,
    surface_audit_warnings,
)
from app.core.ids import parse_identifier
from app.db.session import get_db
from app.models.enums import EntityType
from app.policies.rbac import Actor
from app.schemas.access import AccessDecisionResponse
from app.schemas.audit import AuditListResponse, FieldVersionListResponse
from app.schemas.projects import (
    ProjectCreateRequest,
    ProjectListResponse,
    ProjectPatchRequest,
    ProjectResponse,
)
from app.services.access_service import AccessService
from app.services.audit_service import AuditService
from app.services.field_version_service import FieldVersionService
from app.services.projects_service import ProjectsService

router = APIRouter(prefix="/projects")


@router.post("", response_model=ProjectResponse, status_code=201)
def create_project(
    body: ProjectCreateRequest,
    response: Response,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
    metadata=Depends(audit_metadata),
    svc: ProjectsService = Depends(get_projects_service),
):
    p, audit = svc.create(
        db,
        actor=actor,
        title=body.title,
        description=body.description,
        status=body.status,
        tags=body.tags,
        visibility=body.visibility,
        metadata=metadata,
    )
    surface_audit_warnings(response, audit)
    return project_resp(p)


@router.get("", response_model=ProjectListResponse)
def list_projects(
    includeArchived: bool = Query(default=False),
    archived: bool = Query(default=False),
    limit: int = Query(default=200, ge=1, le=500),
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
    svc: ProjectsService = Depends(get_projects_service),
):
    rows = svc.list(
        db,
        actor=actor,
        include_archived=includeArchived,
        archived_only=archived,
        limit=limit,
    )
    return {"projects": [project_resp(p) for p in rows]}


@router.get("/{project_id}", response_model=ProjectResponse)
def get_project(
    project_id: str,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
    svc: ProjectsService = Depends(get_projects_service),
):
    return project_resp(svc.get(db, actor=actor, project_id=project_id))


@router.patch("/{project_id}", response_model=ProjectResponse)
def patch_project(
    project_id: str,
    body: ProjectPatchRequest,
    response: Response,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
    metadata=Depends(audit_metadata),
    svc: ProjectsService = Depends(get_projects_service),
):
    changes = body.model_dump(exclude_unset=True)
    if not changes:
        raise HTTPException(status_code=400, detail="No fields to update.")
    p, audit = svc.update(
        db, actor=actor, project_id=project_id, changes=changes, metadata=metadata
    )
    surface_audit_warnings(response, audit)
    return project_resp(p)


@router.post("/{project_id}/archive", response_model=ProjectResponse)
def archive_project(
    project_id: str,
    response: Response,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
    metadata=Depends(audit_metadata),
    svc: ProjectsService = Depends(get_projects_service),
):
    p, audit = svc.archive(db, actor=actor, project_id=project_id, metadata=metadata)
    surface_audit_warnings(response, audit)
    return project_resp(p)


# ------------------------------------------------------------------
# ACCESS / PROVENANCE
# ------------------------------------------------------------------


@router.get("/{project_id}/access", response_model=AccessDecisionResponse)
def get_access(
    project_id: str,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
    access: AccessService = Depends(get_access_service),
):
    decision = access.require_view(db, actor, project_id)
    return {
        "projectId": project_id,
        "canView": decision.can_view,
        "canEdit": decision.can_edit,
        "role": decision.role,
    }


@router.get("/{project_id}/audit", response_model=AuditListResponse)
def project_audit(
    project_id: str,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
    access: AccessService = Depends(get_access_service),
    audit: AuditService = Depends(get_audit_service),
):
    pid = parse_identifier(project_id, name="projectId")
    access.require_view(db, actor, pid)
    entries = audit.list_project_entries(db, project_id=pid)
    changes = audit.versions.list_versions_for_entries(db, audit_log_ids=[e.id for e in entries])
    return {
        "projectId": str(pid),
        "entries": [audit_entry_resp(e, changes.get(e.id, [])) for e in entries],
    }


@router.get("/{project_id}/versions/{entity_type}/{entity_id}", response_model=FieldVersionListResponse)
def field_history(
    project_id: str,
    entity_type: EntityType,
    entity_id: str,
    limit: Optional[int] = Query(default=None, ge=1),
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
    access: AccessService = Depends(get_access_service),
    audit: AuditService = Depends(get_audit_service),
    versions: FieldVersionService = Depends(get_field_version_service),
):
    pid = parse_identifier(project_id, name="projectId")
    eid = parse_identifier(entity_id, name="entityId")
    access.require_view(db, actor, pid)

    if not audit.entity_in_project(db, project_id=pid, entity_type=entity_type.value, entity_id=eid):
        raise HTTPException(status_code=404, detail="Entity not found in this project.")

    rows = versions.list_versions(db, entity_type=entity_type.value, entity_id=eid, limit=limit)
    return {
        "entityType": entity_type.value,
        "entityId": str(eid),
        "versions": [version_resp(v) for v in rows],
    }
