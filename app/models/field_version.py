from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import Boolean, String, DateTime, Index
from sqlalchemy.orm import Mapped, mapped_column

from app.core.clock import utc_now
from app.db.base import Base
from app.db.types import GUID, NullableJSONType


class FieldVersion(Base):
    """
    One changed top-level field of one update.
    Written only next to an `update` AuditLogEntry (audit_log_id links them).

    old_value_present=False means the field did not exist in the previous
    snapshot, as opposed to existing with a null value.
    """
    __tablename__ = "field_versions"

    id: Mapped[uuid.UUID] = mapped_column(GUID, primary_key=True, default=uuid.uuid4)

    audit_log_id: Mapped[Optional[uuid.UUID]] = mapped_column(GUID, nullable=True, index=True)

    entity_type: Mapped[str] = mapped_column(String(64), nullable=False)
    entity_id: Mapped[uuid.UUID] = mapped_column(GUID, nullable=False)
    field_path: Mapped[str] = mapped_column(String(256), nullable=False)

    old_value: Mapped[Optional[Any]] = mapped_column(NullableJSONType, nullable=True)
    old_value_present: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    new_value: Mapped[Optional[Any]] = mapped_column(NullableJSONType, nullable=True)

    changed_by: Mapped[uuid.UUID] = mapped_column(GUID, nullable=False)
    changed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utc_now)

    __table_args__ = (
        Index("ix_field_versions_entity_changed", "entity_type", "entity_id", "changed_at"),
    )
