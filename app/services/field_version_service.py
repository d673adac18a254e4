# app/services/field_version_service.py
from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import date, datetime, time, timezone
from typing import Any, Dict, List, Mapping, Optional, Union

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.core.clock import utc_now
from app.core.config import get_settings
from app.core.errors import InvalidArgument
from app.models.field_version import FieldVersion

# Allowed snapshot values. Containers nest; anything else is rejected.
FieldValue = Union[
    None,
    str,
    int,
    float,
    bool,
    datetime,
    date,
    List["FieldValue"],
    Dict[str, "FieldValue"],
]

IDENTITY_KEYS = frozenset({"id", "_id"})

DATE_TAG = "$date"


class _Missing:
    def __repr__(self) -> str:
        return "MISSING"


MISSING = _Missing()


@dataclass(frozen=True)
class FieldChange:
    field_path: str
    old_value: Any  # MISSING when the key was absent from the previous snapshot
    new_value: Any

    @property
    def old_value_present(self) -> bool:
        return self.old_value is not MISSING


def _as_point_in_time(value: Union[datetime, date]) -> datetime:
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)
    return datetime.combine(value, time.min, tzinfo=timezone.utc)


def normalize_value(value: Any, *, path: str = "") -> Any:
    """
    Canonical in-memory form used for comparison:
    timestamps become UTC-aware datetimes, tuples become lists, mapping keys
    must be strings. Raises InvalidArgument for anything outside FieldValue.
    """
    if value is None or isinstance(value, (str, bool, int, float)):
        return value
    if isinstance(value, (datetime, date)):
        return _as_point_in_time(value)
    if isinstance(value, (list, tuple)):
        return [normalize_value(v, path=f"{path}[{i}]") for i, v in enumerate(value)]
    if isinstance(value, Mapping):
        out: Dict[str, Any] = {}
        for k, v in value.items():
            if not isinstance(k, str):
                raise InvalidArgument(f"Snapshot key {path}.{k!r} must be a string.")
            out[k] = normalize_value(v, path=f"{path}.{k}" if path else k)
        return out
    if isinstance(value, uuid.UUID):
        return str(value)
    raise InvalidArgument(
        f"Unsupported snapshot value at {path or '<root>'}: {type(value).__name__}"
    )


def encode_value(value: Any) -> Any:
    """
    Normalized value -> JSON-storable value. Timestamps are tagged so they
    come back as datetimes, not strings.
    """
    if isinstance(value, datetime):
        return {DATE_TAG: value.isoformat()}
    if isinstance(value, list):
        return [encode_value(v) for v in value]
    if isinstance(value, dict):
        return {k: encode_value(v) for k, v in value.items()}
    return value


def decode_value(value: Any) -> Any:
    if isinstance(value, dict):
        if set(value.keys()) == {DATE_TAG} and isinstance(value[DATE_TAG], str):
            return datetime.fromisoformat(value[DATE_TAG])
        return {k: decode_value(v) for k, v in value.items()}
    if isinstance(value, list):
        return [decode_value(v) for v in value]
    return value


def _values_equal(a: Any, b: Any) -> bool:
    # bool is an int subclass: True == 1 must still count as a change
    if isinstance(a, bool) != isinstance(b, bool):
        return False
    if isinstance(a, list) and isinstance(b, list):
        return len(a) == len(b) and all(_values_equal(x, y) for x, y in zip(a, b))
    if isinstance(a, dict) and isinstance(b, dict):
        return a.keys() == b.keys() and all(_values_equal(a[k], b[k]) for k in a)
    return a == b


def diff_snapshots(previous: Mapping[str, Any], next: Mapping[str, Any]) -> List[FieldChange]:
    """
    Changed top-level fields, in the order of `next`.

    Only keys present in `next` are considered. A key that exists only in
    `previous` is not treated as removed; to record a cleared field the
    caller passes it in `next` with None.
    """
    previous = previous or {}
    changes: List[FieldChange] = []
    for key in next.keys():
        if key in IDENTITY_KEYS:
            continue
        new_value = normalize_value(next[key], path=key)
        if key in previous:
            old_value = normalize_value(previous[key], path=key)
            if _values_equal(old_value, new_value):
                continue
        else:
            old_value = MISSING
        changes.append(FieldChange(field_path=key, old_value=old_value, new_value=new_value))
    return changes


class FieldVersionService:
    def diff_and_record(
        self,
        db: Session,
        *,
        entity_type: str,
        entity_id: uuid.UUID,
        changed_by: uuid.UUID,
        previous: Mapping[str, Any],
        next: Mapping[str, Any],
        audit_log_id: Optional[uuid.UUID] = None,
    ) -> List[FieldVersion]:
        """
        Persist one FieldVersion per changed field. Insert-only.
        Commits; storage errors propagate to the caller (the audit recorder
        decides what to do with them).
        """
        changes = diff_snapshots(previous, next)
        if not changes:
            return []

        changed_at = utc_now()
        rows = [
            FieldVersion(
                audit_log_id=audit_log_id,
                entity_type=entity_type,
                entity_id=entity_id,
                field_path=c.field_path,
                old_value=encode_value(c.old_value) if c.old_value_present else None,
                old_value_present=c.old_value_present,
                new_value=encode_value(c.new_value),
                changed_by=changed_by,
                changed_at=changed_at,
            )
            for c in changes
        ]
        db.add_all(rows)
        db.commit()
        for row in rows:
            db.refresh(row)
        return rows

    # ---------------------------
    # READS
    # ---------------------------

    def list_versions(
        self,
        db: Session,
        *,
        entity_type: str,
        entity_id: uuid.UUID,
        limit: Optional[int] = None,
    ) -> List[FieldVersion]:
        """
        Most recent first, bounded.
        """
        settings = get_settings()
        limit = limit or settings.field_version_default_limit
        limit = max(1, min(limit, settings.audit_search_max_limit))
        return list(
            db.execute(
                select(FieldVersion)
                .where(
                    FieldVersion.entity_type == entity_type,
                    FieldVersion.entity_id == entity_id,
                )
                .order_by(FieldVersion.changed_at.desc(), FieldVersion.field_path)
                .limit(limit)
            )
            .scalars()
            .all()
        )

    def list_versions_for_entries(
        self, db: Session, *, audit_log_ids: List[uuid.UUID]
    ) -> Dict[uuid.UUID, List[FieldVersion]]:
        if not audit_log_ids:
            return {}
        rows = (
            db.execute(
                select(FieldVersion)
                .where(FieldVersion.audit_log_id.in_(audit_log_ids))
                .order_by(FieldVersion.field_path)
            )
            .scalars()
            .all()
        )
        out: Dict[uuid.UUID, List[FieldVersion]] = {}
        for row in rows:
            out.setdefault(row.audit_log_id, []).append(row)
        return out
