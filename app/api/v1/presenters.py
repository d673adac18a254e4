# app/api/v1/presenters.py
from __future__ import annotations

from typing import Iterable, Optional

from app.core.clock import ensure_utc


def _iso(dt):
    dt = ensure_utc(dt)
    return dt.isoformat() if dt else None


def _sid(v) -> Optional[str]:
    return str(v) if v is not None else None


def project_resp(p) -> dict:
    return {
        "projectId": str(p.id),
        "ownerId": str(p.owner_id),
        "title": p.title,
        "description": p.description,
        "status": p.status,
        "tags": list(p.tags or []),
        "visibility": p.visibility,
        "archivedAtIso": _iso(p.archived_at),
        "createdAtIso": _iso(p.created_at),
        "updatedAtIso": _iso(p.updated_at),
    }


def member_resp(m) -> dict:
    return {
        "membershipId": str(m.id),
        "projectId": str(m.project_id),
        "userId": str(m.user_id),
        "role": m.role,
        "invitedBy": str(m.invited_by),
        "createdAtIso": _iso(m.created_at),
        "updatedAtIso": _iso(m.updated_at),
    }


def user_resp(u) -> dict:
    return {
        "userId": str(u.id),
        "email": u.email,
        "fullName": u.full_name,
        "globalRole": u.global_role,
        "updatedAtIso": _iso(u.updated_at),
    }


def change_resp(v) -> dict:
    return {
        "fieldPath": v.field_path,
        "oldValue": v.old_value if v.old_value_present else None,
        "oldValuePresent": bool(v.old_value_present),
        "newValue": v.new_value,
    }


def version_resp(v) -> dict:
    out = change_resp(v)
    out.update(
        {
            "id": str(v.id),
            "auditLogId": _sid(v.audit_log_id),
            "entityType": v.entity_type,
            "entityId": str(v.entity_id),
            "changedBy": str(v.changed_by),
            "changedAtIso": _iso(v.changed_at),
        }
    )
    return out


def audit_entry_resp(e, changes: Iterable = ()) -> dict:
    return {
        "id": str(e.id),
        "actorId": str(e.actor_id),
        "action": e.action,
        "entityType": e.entity_type,
        "entityId": str(e.entity_id),
        "projectId": _sid(e.project_id),
        "timestampIso": _iso(e.timestamp),
        "metadata": e.metadata_json or {},
        "changes": [change_resp(c) for c in changes],
    }


def sync_info_resp(info) -> dict:
    return {
        "key": info.key,
        "syncedAtIso": _iso(info.synced_at),
        "intervalDays": info.interval_days,
        "syncInProgress": info.sync_in_progress,
        "syncStartedAtIso": _iso(info.sync_started_at),
        "syncTotal": info.sync_total,
        "syncProcessed": info.sync_processed,
        "syncMessage": info.sync_message,
        "dueForSync": info.due_for_sync,
        "stale": info.stale,
        "count": info.count,
    }


def institution_resp(i) -> dict:
    return {
        "id": str(i.id),
        "externalId": i.external_id,
        "registryCode": i.registry_code,
        "name": i.name,
        "legalName": i.legal_name,
        "institutionType": i.institution_type,
        "regionCode": i.region_code,
        "city": i.city,
        "address": i.address,
        "website": i.website,
        "lastSyncedAtIso": _iso(i.last_synced_at),
    }


def iso(dt) -> Optional[str]:
    return _iso(dt)
