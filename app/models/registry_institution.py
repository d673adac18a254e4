from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import String, DateTime, Index, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from app.core.clock import utc_now
from app.db.base import Base
from app.db.types import GUID


class RegistryInstitution(Base):
    """
    Local mirror of one institution from an external registry.

    - Upserted by (source_key, external_id); the upstream id is immutable
      and only unique within its source
    - registry_code (national code, e.g. EDRPOU) is unique but nullable:
      NULLs never collide, so partial records coexist
    """
    __tablename__ = "registry_institutions"

    id: Mapped[uuid.UUID] = mapped_column(GUID, primary_key=True, default=uuid.uuid4)

    source_key: Mapped[str] = mapped_column(String(128), nullable=False)
    external_id: Mapped[str] = mapped_column(String(128), nullable=False)
    registry_code: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)

    name: Mapped[str] = mapped_column(String(1024), nullable=False)
    legal_name: Mapped[Optional[str]] = mapped_column(String(1024), nullable=True)
    institution_type: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    region_code: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    city: Mapped[Optional[str]] = mapped_column(String(256), nullable=True)
    address: Mapped[Optional[str]] = mapped_column(String(1024), nullable=True)
    website: Mapped[Optional[str]] = mapped_column(String(512), nullable=True)

    first_seen_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utc_now)
    last_synced_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utc_now)

    __table_args__ = (
        UniqueConstraint("source_key", "external_id", name="uq_registry_institution_source_external_id"),
        UniqueConstraint("registry_code", name="uq_registry_institution_registry_code"),
        Index("ix_registry_institution_name", "name"),
        Index("ix_registry_institution_source", "source_key"),
    )
