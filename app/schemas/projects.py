#app/schemas/projects.py
from __future__ import annotations

from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


# -----------------------
# Request/Response models
# -----------------------


class ProjectCreateRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    title: str = Field(..., min_length=1, max_length=256)
    description: Optional[str] = None
    status: str = Field(default="active", min_length=1, max_length=64)
    tags: List[str] = Field(default_factory=list)
    visibility: Literal["private", "shared"] = "private"


class ProjectPatchRequest(BaseModel):
    """
    Only fields present in the body are applied; send null to clear one.
    """
    model_config = ConfigDict(extra="forbid")

    title: Optional[str] = Field(default=None, min_length=1, max_length=256)
    description: Optional[str] = None
    status: Optional[str] = Field(default=None, min_length=1, max_length=64)
    tags: Optional[List[str]] = None
    visibility: Optional[Literal["private", "shared"]] = None


class ProjectResponse(BaseModel):
    projectId: str
    ownerId: str
    title: str
    description: Optional[str] = None
    status: str
    tags: List[str]
    visibility: str

    archivedAtIso: Optional[str] = None
    createdAtIso: str
    updatedAtIso: str


class ProjectListResponse(BaseModel):
    projects: List[ProjectResponse]
