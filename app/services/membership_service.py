# app/services/membership_service.py
from __future__ import annotations

from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.clock import utc_now
from app.core.errors import DuplicateMembership, Forbidden, InvalidArgument, NotFound
from app.core.ids import parse_identifier
from app.models.enums import EntityType, MembershipRole
from app.models.membership import ProjectMembership
from app.models.project import Project
from app.policies.rbac import Actor, can_manage_members
from app.services.access_service import AccessService
from app.services.audit_service import AuditResult, AuditService


def _membership_role(raw: Any) -> str:
    try:
        return MembershipRole(raw).value
    except ValueError:
        raise InvalidArgument("role must be 'Collaborator' or 'Viewer'.")


class MembershipService:
    def __init__(
        self,
        access: Optional[AccessService] = None,
        audit: Optional[AuditService] = None,
    ):
        self.access = access or AccessService()
        self.audit = audit or AuditService()

    def _managed_project(self, db: Session, actor: Actor, project_id: Any) -> Project:
        pid = parse_identifier(project_id, name="projectId")
        project = db.get(Project, pid)
        if not project:
            raise NotFound("Project not found.")
        if not can_manage_members(actor, project):
            raise Forbidden("Not permitted to manage members of this project.")
        return project

    def get_membership(self, db: Session, *, project_id, user_id) -> Optional[ProjectMembership]:
        return db.execute(
            select(ProjectMembership).where(
                ProjectMembership.project_id == project_id,
                ProjectMembership.user_id == user_id,
            )
        ).scalar_one_or_none()

    def list_members(self, db: Session, *, actor: Actor, project_id: Any) -> List[ProjectMembership]:
        pid = parse_identifier(project_id, name="projectId")
        self.access.require_view(db, actor, pid)
        return list(
            db.execute(
                select(ProjectMembership)
                .where(ProjectMembership.project_id == pid)
                .order_by(ProjectMembership.created_at)
            )
            .scalars()
            .all()
        )

    def add_member(
        self,
        db: Session,
        *,
        actor: Actor,
        project_id: Any,
        user_id: Any,
        role: Any,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Tuple[ProjectMembership, AuditResult]:
        """
        Insert-only: a second grant for the same (project, user) fails with
        DuplicateMembership instead of overwriting the first.
        """
        uid = parse_identifier(user_id, name="userId")
        role_value = _membership_role(role)
        project = self._managed_project(db, actor, project_id)

        now = utc_now()
        row = ProjectMembership(
            project_id=project.id,
            user_id=uid,
            role=role_value,
            invited_by=actor.actor_id,
            created_at=now,
            updated_at=now,
        )
        db.add(row)
        try:
            db.commit()
        except IntegrityError:
            db.rollback()
            raise DuplicateMembership("User is already a member of this project.")
        db.refresh(row)

        audit = self.audit.record_create(
            db,
            actor=actor,
            entity_type=EntityType.MEMBERSHIP.value,
            entity_id=row.id,
            project_id=project.id,
            metadata=metadata,
        )
        return row, audit

    def change_role(
        self,
        db: Session,
        *,
        actor: Actor,
        project_id: Any,
        user_id: Any,
        role: Any,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Tuple[ProjectMembership, AuditResult]:
        # last write wins; the row is tiny and keyed uniquely
        uid = parse_identifier(user_id, name="userId")
        role_value = _membership_role(role)
        project = self._managed_project(db, actor, project_id)

        row = self.get_membership(db, project_id=project.id, user_id=uid)
        if not row:
            raise NotFound("Membership not found.")

        previous = {"role": row.role}
        row.role = role_value
        row.updated_at = utc_now()
        db.commit()
        db.refresh(row)

        audit = self.audit.record_update(
            db,
            actor=actor,
            entity_type=EntityType.MEMBERSHIP.value,
            entity_id=row.id,
            project_id=project.id,
            previous=previous,
            next={"role": row.role},
            metadata=metadata,
        )
        return row, audit

    def remove_member(
        self,
        db: Session,
        *,
        actor: Actor,
        project_id: Any,
        user_id: Any,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> AuditResult:
        uid = parse_identifier(user_id, name="userId")
        project = self._managed_project(db, actor, project_id)

        row = self.get_membership(db, project_id=project.id, user_id=uid)
        if not row:
            raise NotFound("Membership not found.")

        membership_id = row.id
        db.delete(row)
        db.commit()

        return self.audit.record_delete(
            db,
            actor=actor,
            entity_type=EntityType.MEMBERSHIP.value,
            entity_id=membership_id,
            project_id=project.id,
            metadata=metadata,
        )
