from __future__ import annotations
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field


class FieldChangeResponse(BaseModel):
    fieldPath: str
    # absent when the field did not exist before the change
    oldValue: Optional[Any] = None
    oldValuePresent: bool = True
    newValue: Optional[Any] = None


class FieldVersionResponse(FieldChangeResponse):
    id: str
    auditLogId: Optional[str] = None
    entityType: str
    entityId: str
    changedBy: str
    changedAtIso: str


class AuditEntryResponse(BaseModel):
    id: str
    actorId: str
    action: str
    entityType: str
    entityId: str
    projectId: Optional[str] = None
    timestampIso: str
    metadata: Dict[str, Any] = Field(default_factory=dict)
    changes: List[FieldChangeResponse] = Field(default_factory=list)


class AuditListResponse(BaseModel):
    projectId: str
    entries: List[AuditEntryResponse]


class AuditSearchResponse(BaseModel):
    total: int
    page: int
    limit: int
    entries: List[AuditEntryResponse]


class ActionCount(BaseModel):
    action: str
    count: int


class AuditSummaryResponse(BaseModel):
    startIso: str
    endIso: str
    actorId: Optional[str] = None
    actions: List[ActionCount]


class FieldVersionListResponse(BaseModel):
    entityType: str
    entityId: str
    versions: List[FieldVersionResponse]
