# /app/models/project.py
from __future__ import annotations

import uuid
from datetime import datetime
from typing import List, Optional

from sqlalchemy import String, DateTime, Text, Index
from sqlalchemy.orm import Mapped, mapped_column

from app.core.clock import utc_now
from app.db.base import Base
from app.db.types import GUID, JSONType
from app.models.enums import ProjectVisibility


class Project(Base):
    """
    Root of every project-scoped resource.
    Archived (archived_at set), never hard-deleted, so audit history keeps a subject.
    """
    __tablename__ = "projects"

    id: Mapped[uuid.UUID] = mapped_column(
        GUID,
        primary_key=True,
        default=uuid.uuid4,
    )

    # not a foreign key: a dangling owner id still owns the project
    owner_id: Mapped[uuid.UUID] = mapped_column(GUID, nullable=False, index=True)

    title: Mapped[str] = mapped_column(String(256), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(String(64), nullable=False, default="active")
    tags: Mapped[List[str]] = mapped_column(JSONType, nullable=False, default=list)

    visibility: Mapped[str] = mapped_column(
        String(16), nullable=False, default=ProjectVisibility.private.value
    )
    archived_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now
    )

    __table_args__ = (
        Index("ix_projects_visibility", "visibility"),
        Index("ix_projects_archived_at", "archived_at"),
    )
