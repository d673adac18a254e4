# app/services/access_service.py
from __future__ import annotations

import logging
import uuid
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy import exists, or_, select
from sqlalchemy.orm import Session

from app.core.config import get_settings
from app.core.ids import parse_identifier
from app.models.enums import ProjectVisibility
from app.models.membership import ProjectMembership
from app.models.project import Project
from app.policies.archive_policy import archive_filter
from app.policies.rbac import (
    AccessDecision,
    AccessFacts,
    Actor,
    NO_ACCESS,
    evaluate_access,
    is_elevated,
    needs_membership_lookup,
    require_edit,
    require_view,
)

logger = logging.getLogger(__name__)

# (db, actor) -> may this actor discover shared projects?
DiscoveryPredicate = Callable[[Session, Actor], bool]


def has_any_project_relation(db: Session, actor: Actor) -> bool:
    """
    Actor owns at least one project or holds at least one membership.
    """
    owns = db.execute(
        select(exists().where(Project.owner_id == actor.actor_id))
    ).scalar()
    if owns:
        return True
    return bool(
        db.execute(
            select(exists().where(ProjectMembership.user_id == actor.actor_id))
        ).scalar()
    )


def _any_authenticated(db: Session, actor: Actor) -> bool:
    return True


def _nobody(db: Session, actor: Actor) -> bool:
    return False


DISCOVERY_POLICIES: Dict[str, DiscoveryPredicate] = {
    "any_relation": has_any_project_relation,
    "authenticated": _any_authenticated,
    "disabled": _nobody,
}


def default_discovery() -> DiscoveryPredicate:
    return DISCOVERY_POLICIES[get_settings().shared_discovery_policy]


class AccessService:
    def __init__(self, discovery: Optional[DiscoveryPredicate] = None):
        self._discovery = discovery

    @property
    def discovery(self) -> DiscoveryPredicate:
        return self._discovery or default_discovery()

    # ---------------------------
    # RESOLUTION
    # ---------------------------

    def gather_facts(self, db: Session, actor: Actor, project_id: uuid.UUID) -> AccessFacts:
        """
        At most two point reads (project, membership), plus the discovery
        predicate when only the shared-visibility rule is left.
        """
        if is_elevated(actor.global_role):
            # rule 1 needs nothing from storage
            return AccessFacts(project_exists=True)

        project = db.get(Project, project_id)
        if project is None:
            return AccessFacts(project_exists=False)

        facts = AccessFacts(
            project_exists=True,
            owner_id=project.owner_id,
            visibility=project.visibility,
        )
        if not needs_membership_lookup(actor, facts):
            return facts

        membership = db.execute(
            select(ProjectMembership).where(
                ProjectMembership.project_id == project_id,
                ProjectMembership.user_id == actor.actor_id,
            )
        ).scalar_one_or_none()

        membership_role = membership.role if membership else None
        discoverable = None
        if membership_role is None and project.visibility == ProjectVisibility.shared.value:
            discoverable = bool(self.discovery(db, actor))

        return AccessFacts(
            project_exists=True,
            owner_id=project.owner_id,
            visibility=project.visibility,
            membership_role=membership_role,
            discoverable=discoverable,
        )

    def resolve_access(self, db: Session, actor: Actor, project_id: Any) -> AccessDecision:
        pid = parse_identifier(project_id, name="projectId")
        if actor is None:
            return NO_ACCESS
        facts = self.gather_facts(db, actor, pid)
        return evaluate_access(actor, facts)

    def require_view(self, db: Session, actor: Actor, project_id: Any) -> AccessDecision:
        decision = self.resolve_access(db, actor, project_id)
        require_view(decision)
        return decision

    def require_edit(self, db: Session, actor: Actor, project_id: Any) -> AccessDecision:
        decision = self.resolve_access(db, actor, project_id)
        require_edit(decision)
        return decision

    # ---------------------------
    # LISTING
    # ---------------------------

    def list_visible_projects(
        self,
        db: Session,
        actor: Actor,
        *,
        include_archived: bool = False,
        archived_only: bool = False,
        limit: int = 200,
    ) -> List[Project]:
        """
        Projects the actor can view, narrowed by the archive filter.
        Same rules as resolve_access, expressed as one query.
        """
        stmt = select(Project).where(
            archive_filter(include_archived=include_archived, archived_only=archived_only)
        )

        if not is_elevated(actor.global_role):
            member_of = select(ProjectMembership.project_id).where(
                ProjectMembership.user_id == actor.actor_id
            )
            clauses = [
                Project.owner_id == actor.actor_id,
                Project.id.in_(member_of),
            ]
            if self.discovery(db, actor):
                clauses.append(Project.visibility == ProjectVisibility.shared.value)
            stmt = stmt.where(or_(*clauses))

        stmt = stmt.order_by(Project.updated_at.desc()).limit(limit)
        return list(db.execute(stmt).scalars().all())


def resolve_access(db: Session, actor: Actor, project_id: Any, *, discovery: Optional[DiscoveryPredicate] = None) -> AccessDecision:
    return AccessService(discovery=discovery).resolve_access(db, actor, project_id)
