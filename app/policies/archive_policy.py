#/app/policies/archive_policy.py
from __future__ import annotations

from sqlalchemy import true
from sqlalchemy.sql.elements import ColumnElement

from app.models.project import Project


def archive_filter(*, include_archived: bool = False, archived_only: bool = False) -> ColumnElement[bool]:
    """
    Default listing hides archived projects.
    Archival never changes access; it only changes what listings show.
    """
    if include_archived:
        return true()
    if archived_only:
        return Project.archived_at.is_not(None)
    return Project.archived_at.is_(None)
