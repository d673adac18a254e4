#app/models/enums.py
from __future__ import annotations
from enum import Enum


class GlobalRole(str, Enum):
    # ordered: Owner > Supervisor/Mentor > Collaborator > Viewer
    OWNER = "Owner"
    SUPERVISOR = "Supervisor"
    MENTOR = "Mentor"
    COLLABORATOR = "Collaborator"
    VIEWER = "Viewer"


class MembershipRole(str, Enum):
    COLLABORATOR = "Collaborator"
    VIEWER = "Viewer"


class ProjectVisibility(str, Enum):
    private = "private"
    shared = "shared"


class AuditAction(str, Enum):
    create = "create"
    update = "update"
    delete = "delete"


class EntityType(str, Enum):
    # entity_type is a free string column; these are the ones the engine writes itself
    PROJECT = "Project"
    MEMBERSHIP = "Membership"
    USER = "User"
