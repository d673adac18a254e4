# app/services/registry_sync_service.py
from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from typing import Dict, Iterable, List, Optional, Set, Tuple

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.clock import ensure_utc, utc_now
from app.core.config import get_settings
from app.core.errors import InvalidArgument, UpstreamFailure
from app.models.registry_institution import RegistryInstitution
from app.models.registry_source_state import RegistrySourceState
from app.services.registry_client import (
    InstitutionRecord,
    RegistryClient,
    RegistrySource,
    source_from_settings,
)
from app.services.registry_state_repository import (
    RegistrySourceStateRepository,
    dialect_insert,
)

logger = logging.getLogger(__name__)

ALLOWED_INTERVAL_DAYS = (1, 7)

_UPSERT_COLUMNS = (
    "registry_code",
    "name",
    "legal_name",
    "institution_type",
    "region_code",
    "city",
    "address",
    "website",
    "last_synced_at",
)


@dataclass(frozen=True)
class SyncInfo:
    key: str
    synced_at: Optional[datetime]
    interval_days: int
    sync_in_progress: bool
    sync_started_at: Optional[datetime]
    sync_total: Optional[int]
    sync_processed: Optional[int]
    sync_message: Optional[str]
    due_for_sync: bool
    stale: bool
    count: int


@dataclass(frozen=True)
class SyncOutcome:
    synced_at: Optional[datetime]
    performed: bool
    in_progress: bool
    message: Optional[str] = None


class SyncSuperseded(Exception):
    """The lock this run acquired was taken over; it must not write state again."""


def is_due(synced_at: Optional[datetime], interval_days: int, now: datetime) -> bool:
    if synced_at is None:
        return True
    return now - ensure_utc(synced_at) >= timedelta(days=interval_days)


def _chunks(items: List[InstitutionRecord], size: int) -> Iterable[List[InstitutionRecord]]:
    size = max(1, size)
    for i in range(0, len(items), size):
        yield items[i:i + size]


class RegistrySyncService:
    """
    Single-flight, interval-gated mirror refresh for one or more registry sources.

    States per key: idle -> syncing -> idle. Failure is idle with sync_message
    set and synced_at unchanged.
    """

    def __init__(
        self,
        client: Optional[RegistryClient] = None,
        repository: Optional[RegistrySourceStateRepository] = None,
        sources: Optional[Dict[str, RegistrySource]] = None,
    ):
        self.settings = get_settings()
        self._client = client
        self.repository = repository or RegistrySourceStateRepository()
        if sources is None:
            default = source_from_settings(self.settings)
            sources = {default.key: default}
        self.sources = sources

    @property
    def client(self) -> RegistryClient:
        if self._client is None:
            self._client = RegistryClient()
        return self._client

    def source(self, key: str) -> RegistrySource:
        try:
            return self.sources[key]
        except KeyError:
            raise InvalidArgument(f"Unknown registry source {key!r}.")

    # ---------------------------
    # STATUS
    # ---------------------------

    def _mirror_count(self, db: Session, key: str) -> int:
        return db.execute(
            select(func.count()).select_from(RegistryInstitution).where(RegistryInstitution.source_key == key)
        ).scalar_one()

    def _info(self, db: Session, key: str, state: Optional[RegistrySourceState]) -> SyncInfo:
        now = utc_now()
        stale_after = timedelta(minutes=self.settings.registry_sync_stale_minutes)
        if state is None:
            return SyncInfo(
                key=key,
                synced_at=None,
                interval_days=self.settings.registry_default_interval_days,
                sync_in_progress=False,
                sync_started_at=None,
                sync_total=None,
                sync_processed=None,
                sync_message=None,
                due_for_sync=True,
                stale=False,
                count=self._mirror_count(db, key),
            )
        started_at = ensure_utc(state.sync_started_at)
        return SyncInfo(
            key=key,
            synced_at=ensure_utc(state.synced_at),
            interval_days=state.interval_days,
            sync_in_progress=bool(state.sync_in_progress),
            sync_started_at=started_at,
            sync_total=state.sync_total,
            sync_processed=state.sync_processed,
            sync_message=state.sync_message,
            due_for_sync=is_due(state.synced_at, state.interval_days, now),
            stale=bool(state.sync_in_progress and started_at and now - started_at > stale_after),
            count=self._mirror_count(db, key),
        )

    def get_sync_info(self, db: Session, key: str) -> SyncInfo:
        self.source(key)
        state = self.repository.get(db, key)
        if state is not None:
            db.refresh(state)
        return self._info(db, key, state)

    def set_interval(self, db: Session, key: str, interval_days: int) -> SyncInfo:
        if isinstance(interval_days, bool) or interval_days not in ALLOWED_INTERVAL_DAYS:
            raise InvalidArgument("intervalDays must be 1 or 7.")
        self.source(key)
        self.repository.ensure(db, key, interval_days=interval_days)
        self.repository.set_interval(db, key, interval_days)
        return self.get_sync_info(db, key)

    # ---------------------------
    # SYNC
    # ---------------------------

    def trigger_sync(self, db: Session, key: str, *, force: bool = False) -> SyncOutcome:
        """
        Returns the resulting synced_at. Never raises for upstream or storage
        failures during the pull: they end up in sync_message.
        """
        source = self.source(key)
        state = self.repository.get(db, key) or self.repository.ensure(
            db, key, interval_days=self.settings.registry_default_interval_days
        )
        db.refresh(state)
        previous_synced_at = ensure_utc(state.synced_at)

        started_at = utc_now()
        if not force and not is_due(state.synced_at, state.interval_days, started_at):
            return SyncOutcome(
                synced_at=previous_synced_at,
                performed=False,
                in_progress=bool(state.sync_in_progress),
            )

        stale_before = None
        if force:
            stale_before = started_at - timedelta(minutes=self.settings.registry_sync_stale_minutes)

        if not self.repository.acquire(db, key, started_at=started_at, stale_before=stale_before):
            logger.info("registry sync already in progress", extra={"source": key})
            return SyncOutcome(
                synced_at=previous_synced_at,
                performed=False,
                in_progress=True,
                message="Sync already in progress",
            )

        logger.info("registry sync started", extra={"source": key, "force": force})
        try:
            synced_at, total = self._run(db, source, started_at)
        except SyncSuperseded:
            logger.warning(
                "registry sync superseded by a forced takeover",
                extra={"source": key, "started_at": started_at.isoformat()},
            )
            return SyncOutcome(
                synced_at=previous_synced_at,
                performed=True,
                in_progress=True,
                message="Sync superseded by a newer run",
            )
        except Exception as exc:  # lock must be released whatever failed
            db.rollback()
            message = f"Sync failed: {exc}"
            if isinstance(exc, UpstreamFailure):
                logger.warning("registry sync failed", extra={"source": key, "error": str(exc)})
            else:
                logger.exception("registry sync failed", extra={"source": key})
            self.repository.release_failure(db, key, started_at=started_at, message=message)
            return SyncOutcome(
                synced_at=previous_synced_at,
                performed=True,
                in_progress=False,
                message=message,
            )

        logger.info(
            "registry sync finished",
            extra={"source": key, "records": total, "synced_at": synced_at.isoformat()},
        )
        return SyncOutcome(synced_at=synced_at, performed=True, in_progress=False)

    def ensure_fresh(self, db: Session, key: str) -> Optional[datetime]:
        """
        Scheduled / opportunistic due check. Storage errors are logged, never raised.
        """
        try:
            return self.trigger_sync(db, key, force=False).synced_at
        except SQLAlchemyError:
            db.rollback()
            logger.exception("registry due check failed", extra={"source": key})
            return None

    def _run(self, db: Session, source: RegistrySource, started_at: datetime):
        records = self._dedupe(self.client.iter_records(source))
        if not records:
            raise UpstreamFailure("Registry returned no records.")

        total = len(records)
        if not self.repository.report_progress(
            db, source.key, started_at=started_at, total=total, processed=0, message=f"Fetched {total} records"
        ):
            raise SyncSuperseded(source.key)

        claimed: Dict[str, Tuple[str, str]] = {}
        processed = 0
        for batch in _chunks(records, self.settings.registry_upsert_batch_size):
            batch = self._release_conflicting_codes(db, source.key, batch, claimed)
            self._upsert(db, source.key, batch)
            processed += len(batch)
            if not self.repository.report_progress(
                db, source.key, started_at=started_at, processed=processed, message=f"Upserted {processed}/{total}"
            ):
                raise SyncSuperseded(source.key)

        synced_at = utc_now()
        if not self.repository.release_success(db, source.key, started_at=started_at, synced_at=synced_at):
            raise SyncSuperseded(source.key)
        return synced_at, total

    # ---------------------------
    # MIRROR WRITES
    # ---------------------------

    @staticmethod
    def _dedupe(records: Iterable[InstitutionRecord]) -> List[InstitutionRecord]:
        # last occurrence of an external id wins, first-seen order kept
        by_id: Dict[str, InstitutionRecord] = {}
        for rec in records:
            by_id[rec.external_id] = rec
        return list(by_id.values())

    def _release_conflicting_codes(
        self,
        db: Session,
        source_key: str,
        batch: List[InstitutionRecord],
        claimed: Dict[str, Tuple[str, str]],
    ) -> List[InstitutionRecord]:
        """
        registry_code is unique across the whole mirror. A code already held by
        a different institution (in the mirror, any source, or earlier in this
        pull) is dropped from the incoming record instead of failing the sync.
        """
        codes: Set[str] = {r.registry_code for r in batch if r.registry_code}
        owners: Dict[str, Tuple[str, str]] = {}
        if codes:
            rows = db.execute(
                select(
                    RegistryInstitution.registry_code,
                    RegistryInstitution.source_key,
                    RegistryInstitution.external_id,
                ).where(RegistryInstitution.registry_code.in_(codes))
            ).all()
            owners = {code: (src, ext) for code, src, ext in rows}

        out: List[InstitutionRecord] = []
        for rec in batch:
            code = rec.registry_code
            if code:
                me = (source_key, rec.external_id)
                holder = claimed.get(code) or owners.get(code)
                if holder is not None and holder != me:
                    logger.warning(
                        "registry code already claimed; dropping it from record",
                        extra={
                            "registry_code": code,
                            "source": source_key,
                            "external_id": rec.external_id,
                            "holder": "/".join(holder),
                        },
                    )
                    rec = replace(rec, registry_code=None)
                else:
                    claimed[code] = me
            out.append(rec)
        return out

    def _upsert(self, db: Session, source_key: str, batch: List[InstitutionRecord]) -> None:
        if not batch:
            return
        now = utc_now()
        values = [
            {
                "source_key": source_key,
                "external_id": r.external_id,
                "registry_code": r.registry_code,
                "name": r.name,
                "legal_name": r.legal_name,
                "institution_type": r.institution_type,
                "region_code": r.region_code,
                "city": r.city,
                "address": r.address,
                "website": r.website,
                "first_seen_at": now,
                "last_synced_at": now,
            }
            for r in batch
        ]
        ins = dialect_insert(db, RegistryInstitution)
        stmt = ins.values(values).on_conflict_do_update(
            index_elements=["source_key", "external_id"],
            set_={col: getattr(ins.excluded, col) for col in _UPSERT_COLUMNS},
        )
        db.execute(stmt)
        db.commit()
