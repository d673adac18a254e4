# app/services/users_service.py
from __future__ import annotations

from typing import Any, Dict, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.core.clock import utc_now
from app.core.errors import Forbidden, InvalidArgument, NotFound
from app.core.ids import parse_identifier
from app.models.enums import EntityType, GlobalRole
from app.models.user import User
from app.policies.rbac import Actor
from app.services.audit_service import AuditResult, AuditService


class UsersService:
    def __init__(self, audit: Optional[AuditService] = None):
        self.audit = audit or AuditService()

    def get_by_email(self, db: Session, email: str) -> Optional[User]:
        return db.execute(select(User).where(User.email == email.strip().lower())).scalar_one_or_none()

    def ensure_user(
        self,
        db: Session,
        *,
        email: str,
        full_name: str,
        global_role: GlobalRole = GlobalRole.COLLABORATOR,
    ) -> User:
        """
        Idempotent bootstrap used by the seed script: returns the existing row
        untouched when the email is already registered.
        """
        existing = self.get_by_email(db, email)
        if existing:
            return existing
        u = User(
            email=email.strip().lower(),
            full_name=full_name,
            global_role=GlobalRole(global_role).value,
        )
        db.add(u)
        db.commit()
        db.refresh(u)
        return u

    def set_global_role(
        self,
        db: Session,
        *,
        actor: Actor,
        user_id: Any,
        global_role: Any,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Tuple[User, AuditResult]:
        """
        Global roles change only through an Owner-level administrative action.
        """
        uid = parse_identifier(user_id, name="userId")
        if GlobalRole(actor.global_role) != GlobalRole.OWNER:
            raise Forbidden("Only an Owner may change global roles.")
        try:
            new_role = GlobalRole(global_role).value
        except ValueError:
            raise InvalidArgument("Unknown global role.")

        u = db.get(User, uid)
        if not u:
            raise NotFound("User not found.")

        previous = {"globalRole": u.global_role}
        u.global_role = new_role
        u.updated_at = utc_now()
        db.commit()
        db.refresh(u)

        audit = self.audit.record_update(
            db,
            actor=actor,
            entity_type=EntityType.USER.value,
            entity_id=u.id,
            previous=previous,
            next={"globalRole": u.global_role},
            metadata=metadata,
        )
        return u, audit
