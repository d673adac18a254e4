#app/schemas/members.py
from __future__ import annotations

from typing import List, Literal

from pydantic import BaseModel, ConfigDict, Field


class MemberAddRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    userId: str = Field(..., min_length=1)
    role: Literal["Collaborator", "Viewer"]


class MemberRoleRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    role: Literal["Collaborator", "Viewer"]


class MemberResponse(BaseModel):
    membershipId: str
    projectId: str
    userId: str
    role: str
    invitedBy: str
    createdAtIso: str
    updatedAtIso: str


class MemberListResponse(BaseModel):
    projectId: str
    members: List[MemberResponse]
