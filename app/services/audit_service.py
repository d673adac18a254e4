from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional, Tuple

from sqlalchemy import exists, func, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from starlette.requests import Request

from app.core.clock import utc_now
from app.core.config import get_settings
from app.db.query import contains_ci
from app.models.audit_log import AuditLogEntry
from app.models.enums import AuditAction, EntityType
from app.models.field_version import FieldVersion
from app.models.user import User
from app.policies.rbac import Actor
from app.services.field_version_service import FieldVersionService

logger = logging.getLogger(__name__)


@dataclass
class AuditResult:
    """
    Outcome of one audit call. `warnings` is the caller's error channel:
    audit writes never raise into the mutation they describe.
    """
    entry: Optional[AuditLogEntry] = None
    versions: List[FieldVersion] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.warnings


@dataclass(frozen=True)
class AuditFilters:
    action: Optional[str] = None
    entity_type: Optional[str] = None
    project_id: Optional[uuid.UUID] = None
    actor_id: Optional[uuid.UUID] = None
    entity_id: Optional[uuid.UUID] = None
    # free text: entity type substring, exact entity id, or actor name/email
    query: Optional[str] = None


def audit_metadata_from_request(request: Optional[Request]) -> Optional[Dict[str, Any]]:
    if request is None:
        return None
    client = getattr(request, "client", None)
    return {
        "ip": client.host if client else None,
        "userAgent": request.headers.get("user-agent"),
        "requestId": getattr(request.state, "request_id", None),
    }


class AuditService:
    def __init__(self, versions: Optional[FieldVersionService] = None):
        self.versions = versions or FieldVersionService()

    @property
    def max_search_limit(self) -> int:
        return get_settings().audit_search_max_limit

    # ---------------------------
    # WRITES (append-only)
    # ---------------------------

    def _append(
        self,
        db: Session,
        *,
        actor: Actor,
        action: AuditAction,
        entity_type: str,
        entity_id: uuid.UUID,
        project_id: Optional[uuid.UUID],
        metadata: Optional[Dict[str, Any]],
        result: AuditResult,
    ) -> Optional[AuditLogEntry]:
        row = AuditLogEntry(
            actor_id=actor.actor_id,
            action=action.value,
            entity_type=entity_type,
            entity_id=entity_id,
            project_id=project_id,
            timestamp=utc_now(),
            metadata_json=metadata,
        )
        try:
            db.add(row)
            db.commit()
            db.refresh(row)
        except SQLAlchemyError as exc:
            db.rollback()
            logger.exception(
                "audit entry write failed",
                extra={
                    "action": action.value,
                    "entity_type": entity_type,
                    "entity_id": str(entity_id),
                    "project_id": str(project_id) if project_id else None,
                },
            )
            result.warnings.append(f"audit entry not recorded: {exc.__class__.__name__}")
            return None
        result.entry = row
        return row

    def record_create(
        self,
        db: Session,
        *,
        actor: Actor,
        entity_type: str,
        entity_id: uuid.UUID,
        project_id: Optional[uuid.UUID] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> AuditResult:
        result = AuditResult()
        self._append(
            db,
            actor=actor,
            action=AuditAction.create,
            entity_type=entity_type,
            entity_id=entity_id,
            project_id=project_id,
            metadata=metadata,
            result=result,
        )
        return result

    def record_delete(
        self,
        db: Session,
        *,
        actor: Actor,
        entity_type: str,
        entity_id: uuid.UUID,
        project_id: Optional[uuid.UUID] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> AuditResult:
        result = AuditResult()
        self._append(
            db,
            actor=actor,
            action=AuditAction.delete,
            entity_type=entity_type,
            entity_id=entity_id,
            project_id=project_id,
            metadata=metadata,
            result=result,
        )
        return result

    def record_update(
        self,
        db: Session,
        *,
        actor: Actor,
        entity_type: str,
        entity_id: uuid.UUID,
        project_id: Optional[uuid.UUID] = None,
        previous: Mapping[str, Any],
        next: Mapping[str, Any],
        metadata: Optional[Dict[str, Any]] = None,
    ) -> AuditResult:
        """
        One `update` entry plus one FieldVersion per changed field.

        Both writes are attempted even if the first fails; neither is atomic
        with the other nor with the mutation being described.
        """
        result = AuditResult()
        entry = self._append(
            db,
            actor=actor,
            action=AuditAction.update,
            entity_type=entity_type,
            entity_id=entity_id,
            project_id=project_id,
            metadata=metadata,
            result=result,
        )

        try:
            result.versions = self.versions.diff_and_record(
                db,
                entity_type=entity_type,
                entity_id=entity_id,
                changed_by=actor.actor_id,
                previous=previous,
                next=next,
                audit_log_id=entry.id if entry is not None else None,
            )
        except SQLAlchemyError as exc:
            db.rollback()
            logger.exception(
                "field version write failed",
                extra={"entity_type": entity_type, "entity_id": str(entity_id)},
            )
            result.warnings.append(f"field versions not recorded: {exc.__class__.__name__}")
        except ValueError as exc:
            # unsupported snapshot value (InvalidArgument)
            logger.error(
                "field version diff rejected snapshot",
                extra={"entity_type": entity_type, "entity_id": str(entity_id), "error": str(exc)},
            )
            result.warnings.append(f"field versions not recorded: {exc}")
        return result

    # ---------------------------
    # READS
    # ---------------------------

    def list_project_entries(
        self, db: Session, *, project_id: uuid.UUID, limit: int = 50
    ) -> List[AuditLogEntry]:
        return list(
            db.execute(
                select(AuditLogEntry)
                .where(AuditLogEntry.project_id == project_id)
                .order_by(AuditLogEntry.timestamp.desc())
                .limit(limit)
            )
            .scalars()
            .all()
        )

    @staticmethod
    def _free_text(text: str):
        matching_actors = select(User.id).where(
            or_(contains_ci(User.full_name, text), contains_ci(User.email, text))
        )
        alternatives = [
            contains_ci(AuditLogEntry.entity_type, text),
            AuditLogEntry.actor_id.in_(matching_actors),
        ]
        try:
            alternatives.append(AuditLogEntry.entity_id == uuid.UUID(text))
        except ValueError:
            pass
        return or_(*alternatives)

    def search_entries(
        self,
        db: Session,
        *,
        filters: AuditFilters,
        page: int = 1,
        limit: int = 20,
    ) -> Tuple[int, List[AuditLogEntry], Dict[uuid.UUID, List[FieldVersion]]]:
        """
        Returns (total, entries for the page, field changes keyed by entry id).
        """
        limit = max(1, min(limit, self.max_search_limit))
        page = max(page, 1)

        conds = []
        if filters.action:
            conds.append(AuditLogEntry.action == filters.action)
        if filters.entity_type:
            conds.append(AuditLogEntry.entity_type == filters.entity_type)
        if filters.project_id:
            conds.append(AuditLogEntry.project_id == filters.project_id)
        if filters.actor_id:
            conds.append(AuditLogEntry.actor_id == filters.actor_id)
        if filters.entity_id:
            conds.append(AuditLogEntry.entity_id == filters.entity_id)
        if filters.query and filters.query.strip():
            conds.append(self._free_text(filters.query.strip()))

        total = db.execute(
            select(func.count()).select_from(AuditLogEntry).where(*conds)
        ).scalar_one()

        entries = list(
            db.execute(
                select(AuditLogEntry)
                .where(*conds)
                .order_by(AuditLogEntry.timestamp.desc())
                .offset((page - 1) * limit)
                .limit(limit)
            )
            .scalars()
            .all()
        )
        changes = self.versions.list_versions_for_entries(
            db, audit_log_ids=[e.id for e in entries]
        )
        return total, entries, changes

    def summarize_actions(
        self,
        db: Session,
        *,
        start: datetime,
        end: datetime,
        actor_id: Optional[uuid.UUID] = None,
    ) -> List[Dict[str, Any]]:
        stmt = select(AuditLogEntry.action, func.count(AuditLogEntry.id)).where(
            AuditLogEntry.timestamp >= start,
            AuditLogEntry.timestamp <= end,
        )
        if actor_id:
            stmt = stmt.where(AuditLogEntry.actor_id == actor_id)
        rows = db.execute(stmt.group_by(AuditLogEntry.action).order_by(AuditLogEntry.action)).all()
        return [{"action": r[0], "count": r[1]} for r in rows]

    def entity_in_project(
        self, db: Session, *, project_id: uuid.UUID, entity_type: str, entity_id: uuid.UUID
    ) -> bool:
        """
        An entity belongs to a project when it is the project, or when it has
        been audited under that project (deleted memberships included).
        """
        if entity_type == EntityType.PROJECT.value:
            return entity_id == project_id
        return bool(
            db.execute(
                select(
                    exists().where(
                        AuditLogEntry.project_id == project_id,
                        AuditLogEntry.entity_type == entity_type,
                        AuditLogEntry.entity_id == entity_id,
                    )
                )
            ).scalar()
        )
