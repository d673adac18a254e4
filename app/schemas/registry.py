#app/schemas/registry.py
from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, ConfigDict


class SyncInfoResponse(BaseModel):
    key: str
    syncedAtIso: Optional[str] = None
    intervalDays: int
    syncInProgress: bool
    syncStartedAtIso: Optional[str] = None
    syncTotal: Optional[int] = None
    syncProcessed: Optional[int] = None
    syncMessage: Optional[str] = None
    dueForSync: bool
    stale: bool
    count: int


class SyncIntervalRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    # validated against the allowed set by the service (1 or 7)
    intervalDays: int


class SyncOutcomeResponse(BaseModel):
    key: str
    syncedAtIso: Optional[str] = None
    performed: bool
    inProgress: bool
    message: Optional[str] = None


class InstitutionResponse(BaseModel):
    id: str
    externalId: str
    registryCode: Optional[str] = None
    name: str
    legalName: Optional[str] = None
    institutionType: Optional[str] = None
    regionCode: Optional[str] = None
    city: Optional[str] = None
    address: Optional[str] = None
    website: Optional[str] = None
    lastSyncedAtIso: str


class InstitutionSearchResponse(BaseModel):
    key: str
    query: str
    results: List[InstitutionResponse]
