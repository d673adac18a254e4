# app/api/v1/audit.py
from __future__ import annotations

from datetime import datetime, timedelta
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from app.api.v1.presenters import audit_entry_resp, iso
from app.core.auth_deps import require_elevated_actor
from app.core.clock import ensure_utc, utc_now
from app.core.deps import get_audit_service
from app.core.ids import parse_identifier
from app.db.session import get_db
from app.models.enums import AuditAction, EntityType
from app.policies.rbac import Actor
from app.schemas.audit import AuditSearchResponse, AuditSummaryResponse
from app.services.audit_service import AuditFilters, AuditService

router = APIRouter(prefix="/audit")


def _opt_id(raw: Optional[str], name: str):
    return parse_identifier(raw, name=name) if raw else None


@router.get("", response_model=AuditSearchResponse)
def search_audit(
    action: Optional[AuditAction] = Query(default=None),
    entityType: Optional[EntityType] = Query(default=None),
    projectId: Optional[str] = Query(default=None),
    actorId: Optional[str] = Query(default=None),
    entityId: Optional[str] = Query(default=None),
    q: Optional[str] = Query(default=None, max_length=256),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1),
    db: Session = Depends(get_db),
    _actor: Actor = Depends(require_elevated_actor),
    audit: AuditService = Depends(get_audit_service),
):
    filters = AuditFilters(
        action=action.value if action else None,
        entity_type=entityType.value if entityType else None,
        project_id=_opt_id(projectId, "projectId"),
        actor_id=_opt_id(actorId, "actorId"),
        entity_id=_opt_id(entityId, "entityId"),
        query=q,
    )
    total, entries, changes = audit.search_entries(db, filters=filters, page=page, limit=limit)
    return {
        "total": total,
        "page": page,
        # echo the effective (capped) page size
        "limit": min(limit, audit.max_search_limit),
        "entries": [audit_entry_resp(e, changes.get(e.id, [])) for e in entries],
    }


@router.get("/summary", response_model=AuditSummaryResponse)
def audit_summary(
    start: Optional[datetime] = Query(default=None),
    end: Optional[datetime] = Query(default=None),
    actorId: Optional[str] = Query(default=None),
    db: Session = Depends(get_db),
    _actor: Actor = Depends(require_elevated_actor),
    audit: AuditService = Depends(get_audit_service),
):
    end = ensure_utc(end) or utc_now()
    start = ensure_utc(start) or end - timedelta(days=30)
    if start > end:
        raise HTTPException(status_code=400, detail="start must not be after end.")

    actor_id = _opt_id(actorId, "actorId")
    rows = audit.summarize_actions(db, start=start, end=end, actor_id=actor_id)
    return {
        "startIso": iso(start),
        "endIso": iso(end),
        "actorId": str(actor_id) if actor_id else None,
        "actions": rows,
    }
