#app/schemas/access.py
from __future__ import annotations

from typing import Optional

from pydantic import BaseModel


class AccessDecisionResponse(BaseModel):
    projectId: str
    canView: bool
    canEdit: bool
    role: Optional[str] = None
