# app/services/registry_search_service.py
from __future__ import annotations

import logging
from typing import List, Optional

from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from app.db.query import contains_ci
from app.models.registry_institution import RegistryInstitution
from app.services.registry_sync_service import RegistrySyncService

logger = logging.getLogger(__name__)

DEFAULT_SEARCH_LIMIT = 15
MIN_CODE_QUERY_LENGTH = 5


def search_institutions(
    db: Session,
    query: str,
    *,
    source_key: Optional[str] = None,
    limit: int = DEFAULT_SEARCH_LIMIT,
) -> List[RegistryInstitution]:
    """
    Case-insensitive name lookup over the local mirror.
    A query of 5+ non-blank characters also matches the registry code exactly.
    """
    q = (query or "").strip()
    if not q:
        return []
    limit = max(1, min(int(limit), DEFAULT_SEARCH_LIMIT))

    cond = contains_ci(RegistryInstitution.name, q)
    if len(q.replace(" ", "")) >= MIN_CODE_QUERY_LENGTH:
        cond = or_(cond, RegistryInstitution.registry_code == q.replace(" ", ""))

    stmt = select(RegistryInstitution).where(cond)
    if source_key:
        stmt = stmt.where(RegistryInstitution.source_key == source_key)
    stmt = stmt.order_by(RegistryInstitution.name.asc()).limit(limit)
    return list(db.execute(stmt).scalars().all())


class RegistrySearchService:
    def __init__(self, sync: RegistrySyncService):
        self.sync = sync

    def search(self, db: Session, *, key: str, query: str, limit: int = DEFAULT_SEARCH_LIMIT) -> List[RegistryInstitution]:
        self.sync.source(key)
        # opportunistic due check; a failed refresh still serves the current mirror
        self.sync.ensure_fresh(db, key)
        return search_institutions(db, query, source_key=key, limit=limit)
