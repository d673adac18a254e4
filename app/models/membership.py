#app/models/membership.py
from __future__ import annotations

import uuid
from datetime import datetime
from sqlalchemy import String, DateTime, Index, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from app.core.clock import utc_now
from app.db.base import Base
from app.db.types import GUID


class ProjectMembership(Base):
    """
    Scoped grant of Collaborator / Viewer on one project.
    At most one row per (project_id, user_id).
    """
    __tablename__ = "project_memberships"

    id: Mapped[uuid.UUID] = mapped_column(GUID, primary_key=True, default=uuid.uuid4)

    project_id: Mapped[uuid.UUID] = mapped_column(GUID, nullable=False)
    user_id: Mapped[uuid.UUID] = mapped_column(GUID, nullable=False)

    role: Mapped[str] = mapped_column(String(32), nullable=False, doc="Collaborator | Viewer")
    invited_by: Mapped[uuid.UUID] = mapped_column(GUID, nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utc_now)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utc_now)

    __table_args__ = (
        UniqueConstraint("project_id", "user_id", name="uq_project_membership_user"),
        Index("ix_project_membership_user", "user_id"),
    )
