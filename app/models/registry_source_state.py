from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, Integer, String, DateTime, UniqueConstraint, false
from sqlalchemy.orm import Mapped, mapped_column

from app.core.clock import utc_now
from app.db.base import Base
from app.db.types import GUID


class RegistrySourceState(Base):
    """
    One row per external registry source key.

    sync_in_progress doubles as the cross-instance lock: it is only ever
    flipped to true by a conditional UPDATE (see RegistrySourceStateRepository).
    synced_at is NULL until the first successful sync.
    """
    __tablename__ = "registry_source_states"

    id: Mapped[uuid.UUID] = mapped_column(GUID, primary_key=True, default=uuid.uuid4)

    key: Mapped[str] = mapped_column(String(128), nullable=False)

    synced_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    interval_days: Mapped[int] = mapped_column(Integer, nullable=False, default=7)

    sync_in_progress: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=false()
    )
    sync_started_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    sync_total: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    sync_processed: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    sync_message: Mapped[Optional[str]] = mapped_column(String(512), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utc_now)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utc_now)

    __table_args__ = (
        UniqueConstraint("key", name="uq_registry_source_key"),
    )
