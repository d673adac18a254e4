# app/services/projects_service.py
from __future__ import annotations

from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.orm import Session

from app.core.clock import utc_now
from app.core.errors import InvalidArgument, NotFound
from app.core.ids import parse_identifier
from app.models.enums import EntityType, ProjectVisibility
from app.models.project import Project
from app.policies.rbac import Actor
from app.services.access_service import AccessService
from app.services.audit_service import AuditResult, AuditService

# Fields a PATCH may touch; everything else is engine-managed.
MUTABLE_FIELDS = ("title", "description", "status", "tags", "visibility")


def project_snapshot(p: Project) -> Dict[str, Any]:
    """
    Field-level view of a project used as the before/after snapshot for auditing.
    """
    return {
        "id": p.id,
        "title": p.title,
        "description": p.description,
        "status": p.status,
        "tags": list(p.tags or []),
        "visibility": p.visibility,
        "archivedAt": p.archived_at,
    }


def _validate_visibility(value: Optional[str]) -> None:
    if value is None:
        return
    try:
        ProjectVisibility(value)
    except ValueError:
        raise InvalidArgument("visibility must be 'private' or 'shared'.")


class ProjectsService:
    def __init__(
        self,
        access: Optional[AccessService] = None,
        audit: Optional[AuditService] = None,
    ):
        self.access = access or AccessService()
        self.audit = audit or AuditService()

    def create(
        self,
        db: Session,
        *,
        actor: Actor,
        title: str,
        description: Optional[str] = None,
        status: str = "active",
        tags: Optional[List[str]] = None,
        visibility: str = ProjectVisibility.private.value,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Tuple[Project, AuditResult]:
        if not title or not title.strip():
            raise InvalidArgument("title is required.")
        _validate_visibility(visibility)

        now = utc_now()
        p = Project(
            owner_id=actor.actor_id,
            title=title.strip(),
            description=description,
            status=status,
            tags=list(tags or []),
            visibility=visibility,
            created_at=now,
            updated_at=now,
        )
        db.add(p)
        db.commit()
        db.refresh(p)

        audit = self.audit.record_create(
            db,
            actor=actor,
            entity_type=EntityType.PROJECT.value,
            entity_id=p.id,
            project_id=p.id,
            metadata=metadata,
        )
        return p, audit

    def get(self, db: Session, *, actor: Actor, project_id: Any) -> Project:
        pid = parse_identifier(project_id, name="projectId")
        self.access.require_view(db, actor, pid)
        p = db.get(Project, pid)
        if not p:
            raise NotFound("Project not found.")
        return p

    def update(
        self,
        db: Session,
        *,
        actor: Actor,
        project_id: Any,
        changes: Dict[str, Any],
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Tuple[Project, AuditResult]:
        """
        Resolve -> mutate -> audit. Only keys present in `changes` are applied
        and diffed; pass None explicitly to clear a field.
        """
        pid = parse_identifier(project_id, name="projectId")
        self.access.require_edit(db, actor, pid)

        p = db.get(Project, pid)
        if not p:
            raise NotFound("Project not found.")

        unknown = set(changes) - set(MUTABLE_FIELDS)
        if unknown:
            raise InvalidArgument(f"Unknown or read-only fields: {', '.join(sorted(unknown))}")
        if "title" in changes and not (changes["title"] or "").strip():
            raise InvalidArgument("title cannot be empty.")
        _validate_visibility(changes.get("visibility"))

        before = project_snapshot(p)

        for key, value in changes.items():
            if key == "tags":
                value = list(value or [])
            elif key == "title":
                value = value.strip()
            setattr(p, key, value)
        p.updated_at = utc_now()
        db.commit()
        db.refresh(p)

        after = project_snapshot(p)
        audit = self.audit.record_update(
            db,
            actor=actor,
            entity_type=EntityType.PROJECT.value,
            entity_id=p.id,
            project_id=p.id,
            previous=before,
            next={k: after[k] for k in changes},
            metadata=metadata,
        )
        return p, audit

    def archive(
        self,
        db: Session,
        *,
        actor: Actor,
        project_id: Any,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Tuple[Project, AuditResult]:
        """
        Soft delete. Idempotent: archiving an archived project changes nothing
        but is still audited.
        """
        pid = parse_identifier(project_id, name="projectId")
        self.access.require_edit(db, actor, pid)

        p = db.get(Project, pid)
        if not p:
            raise NotFound("Project not found.")

        before = project_snapshot(p)
        if p.archived_at is None:
            p.archived_at = utc_now()
            p.updated_at = p.archived_at
            db.commit()
            db.refresh(p)

        audit = self.audit.record_update(
            db,
            actor=actor,
            entity_type=EntityType.PROJECT.value,
            entity_id=p.id,
            project_id=p.id,
            previous=before,
            next={"archivedAt": p.archived_at},
            metadata=metadata,
        )
        return p, audit

    def list(
        self,
        db: Session,
        *,
        actor: Actor,
        include_archived: bool = False,
        archived_only: bool = False,
        limit: int = 200,
    ) -> List[Project]:
        return self.access.list_visible_projects(
            db,
            actor,
            include_archived=include_archived,
            archived_only=archived_only,
            limit=limit,
        )
