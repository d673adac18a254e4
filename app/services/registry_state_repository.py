# app/services/registry_state_repository.py
from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy import and_, or_, select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session

from app.core.clock import utc_now
from app.core.errors import StorageFailure
from app.models.registry_source_state import RegistrySourceState


def dialect_insert(db: Session, table: Any):
    """
    INSERT construct with ON CONFLICT support for the bound dialect.
    """
    name = db.get_bind().dialect.name
    if name == "postgresql":
        return postgresql.insert(table)
    if name == "sqlite":
        return sqlite.insert(table)
    raise NotImplementedError(f"Upserts are not implemented for dialect {name!r}.")


class RegistrySourceStateRepository:
    """
    Sole access path to registry_source_states.

    The lock is the row's sync_in_progress flag; acquire() flips it with a
    single conditional UPDATE, so every service instance sharing the database
    agrees on the winner.
    """

    def get(self, db: Session, key: str) -> Optional[RegistrySourceState]:
        return db.execute(
            select(RegistrySourceState).where(RegistrySourceState.key == key)
        ).scalar_one_or_none()

    def ensure(self, db: Session, key: str, *, interval_days: int) -> RegistrySourceState:
        """
        Create the row if missing; concurrent creators collapse onto one row.
        """
        now = utc_now()
        stmt = (
            dialect_insert(db, RegistrySourceState)
            .values(
                key=key,
                interval_days=interval_days,
                sync_in_progress=False,
                created_at=now,
                updated_at=now,
            )
            .on_conflict_do_nothing(index_elements=["key"])
        )
        db.execute(stmt)
        db.commit()
        row = self.get(db, key)
        if row is None:
            raise StorageFailure(f"Registry source state {key!r} could not be created.")
        return row

    def set_interval(self, db: Session, key: str, interval_days: int) -> None:
        db.execute(
            update(RegistrySourceState)
            .where(RegistrySourceState.key == key)
            .values(interval_days=interval_days, updated_at=utc_now())
        )
        db.commit()

    def acquire(
        self,
        db: Session,
        key: str,
        *,
        started_at: datetime,
        stale_before: Optional[datetime] = None,
    ) -> bool:
        """
        Compare-and-swap: set sync_in_progress=true only if it was false, or,
        when stale_before is given, if the running sync started before it.
        Returns True when this caller won.
        """
        free = RegistrySourceState.sync_in_progress.is_(False)
        if stale_before is not None:
            free = or_(
                free,
                and_(
                    RegistrySourceState.sync_started_at.is_not(None),
                    RegistrySourceState.sync_started_at < stale_before,
                ),
            )
        result = db.execute(
            update(RegistrySourceState)
            .where(RegistrySourceState.key == key, free)
            .values(
                sync_in_progress=True,
                sync_started_at=started_at,
                sync_total=None,
                sync_processed=0,
                sync_message="Sync started",
                updated_at=started_at,
            )
            .execution_options(synchronize_session=False)
        )
        db.commit()
        return result.rowcount == 1

    def _owned_update(self, db: Session, key: str, started_at: datetime, values: Dict[str, Any]) -> bool:
        """
        Writes made while holding the lock are fenced on the sync_started_at
        the caller acquired with. After a forced takeover the previous owner's
        writes match no row.
        """
        result = db.execute(
            update(RegistrySourceState)
            .where(
                RegistrySourceState.key == key,
                RegistrySourceState.sync_in_progress.is_(True),
                RegistrySourceState.sync_started_at == started_at,
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        db.commit()
        return result.rowcount == 1

    def report_progress(
        self,
        db: Session,
        key: str,
        *,
        started_at: datetime,
        total: Optional[int] = None,
        processed: Optional[int] = None,
        message: Optional[str] = None,
    ) -> bool:
        values: Dict[str, Any] = {"updated_at": utc_now()}
        if total is not None:
            values["sync_total"] = total
        if processed is not None:
            values["sync_processed"] = processed
        if message is not None:
            values["sync_message"] = message
        return self._owned_update(db, key, started_at, values)

    def release_success(self, db: Session, key: str, *, started_at: datetime, synced_at: datetime) -> bool:
        return self._owned_update(
            db,
            key,
            started_at,
            {
                "synced_at": synced_at,
                "sync_in_progress": False,
                "sync_message": None,
                "updated_at": synced_at,
            },
        )

    def release_failure(self, db: Session, key: str, *, started_at: datetime, message: str) -> bool:
        # synced_at untouched: the next due check retries
        return self._owned_update(
            db,
            key,
            started_at,
            {
                "sync_in_progress": False,
                "sync_message": message[:512],
                "updated_at": utc_now(),
            },
        )
