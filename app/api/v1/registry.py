# app/api/v1/registry.py
from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.api.v1.presenters import institution_resp, iso, sync_info_resp
from app.core.auth_deps import get_current_actor, require_elevated_actor
from app.core.deps import get_registry_search_service, get_registry_sync_service
from app.db.session import get_db
from app.policies.rbac import Actor
from app.schemas.registry import (
    InstitutionSearchResponse,
    SyncInfoResponse,
    SyncIntervalRequest,
    SyncOutcomeResponse,
)
from app.services.registry_search_service import DEFAULT_SEARCH_LIMIT, RegistrySearchService
from app.services.registry_sync_service import RegistrySyncService

router = APIRouter(prefix="/registry")


@router.get("/{key}", response_model=SyncInfoResponse)
def get_sync_info(
    key: str,
    db: Session = Depends(get_db),
    _actor: Actor = Depends(require_elevated_actor),
    svc: RegistrySyncService = Depends(get_registry_sync_service),
):
    return sync_info_resp(svc.get_sync_info(db, key))


@router.patch("/{key}", response_model=SyncInfoResponse)
def set_sync_interval(
    key: str,
    body: SyncIntervalRequest,
    db: Session = Depends(get_db),
    _actor: Actor = Depends(require_elevated_actor),
    svc: RegistrySyncService = Depends(get_registry_sync_service),
):
    return sync_info_resp(svc.set_interval(db, key, body.intervalDays))


@router.post("/{key}/sync", response_model=SyncOutcomeResponse)
def trigger_sync(
    key: str,
    db: Session = Depends(get_db),
    _actor: Actor = Depends(require_elevated_actor),
    svc: RegistrySyncService = Depends(get_registry_sync_service),
):
    # blocking: returns once this pull finished, or immediately if one is running
    outcome = svc.trigger_sync(db, key, force=True)
    return {
        "key": key,
        "syncedAtIso": iso(outcome.synced_at),
        "performed": outcome.performed,
        "inProgress": outcome.in_progress,
        "message": outcome.message,
    }


@router.get("/{key}/search", response_model=InstitutionSearchResponse)
def search_institutions(
    key: str,
    q: str = Query(..., min_length=1, max_length=256),
    limit: int = Query(default=DEFAULT_SEARCH_LIMIT, ge=1, le=DEFAULT_SEARCH_LIMIT),
    db: Session = Depends(get_db),
    _actor: Actor = Depends(get_current_actor),
    svc: RegistrySearchService = Depends(get_registry_search_service),
):
    rows = svc.search(db, key=key, query=q, limit=limit)
    return {"key": key, "query": q, "results": [institution_resp(r) for r in rows]}
