#app/schemas/users.py
from __future__ import annotations

from pydantic import BaseModel, ConfigDict

from app.models.enums import GlobalRole


class GlobalRoleRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    globalRole: GlobalRole


class UserResponse(BaseModel):
    userId: str
    email: str
    fullName: str
    globalRole: str
    updatedAtIso: str
