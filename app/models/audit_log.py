from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy import String, DateTime, Index
from sqlalchemy.orm import Mapped, mapped_column

from app.core.clock import utc_now
from app.db.base import Base
from app.db.types import GUID, JSONType


class AuditLogEntry(Base):
    """
    Entity-level audit trail.
    - Append-only (never UPDATE, never DELETE)
    - Survives archival of the entity it describes
    """
    __tablename__ = "audit_log_entries"

    id: Mapped[uuid.UUID] = mapped_column(GUID, primary_key=True, default=uuid.uuid4)

    actor_id: Mapped[uuid.UUID] = mapped_column(GUID, nullable=False)
    action: Mapped[str] = mapped_column(String(16), nullable=False)  # create | update | delete

    entity_type: Mapped[str] = mapped_column(String(64), nullable=False)
    entity_id: Mapped[uuid.UUID] = mapped_column(GUID, nullable=False)
    project_id: Mapped[Optional[uuid.UUID]] = mapped_column(GUID, nullable=True)

    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utc_now)

    # ip / userAgent / requestId
    metadata_json: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSONType, nullable=True)

    __table_args__ = (
        Index("ix_audit_scope_type_ts", "project_id", "entity_type", "timestamp"),
        Index("ix_audit_entity", "entity_type", "entity_id"),
        Index("ix_audit_actor", "actor_id"),
        Index("ix_audit_timestamp", "timestamp"),
    )
