# app/models/user.py
from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import String, DateTime, Index, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from app.core.clock import utc_now
from app.db.base import Base
from app.db.types import GUID
from app.models.enums import GlobalRole


class User(Base):
    """
    Actor record. Credentials live with the identity provider; the engine only
    needs the id and the global role.
    """
    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(GUID, primary_key=True, default=uuid.uuid4)

    email: Mapped[str] = mapped_column(String(320), nullable=False)
    full_name: Mapped[str] = mapped_column(String(256), nullable=False)

    global_role: Mapped[str] = mapped_column(
        String(32), nullable=False, default=GlobalRole.COLLABORATOR.value
    )

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utc_now)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utc_now)

    __table_args__ = (
        UniqueConstraint("email", name="uq_users_email"),
        Index("ix_users_global_role", "global_role"),
    )
