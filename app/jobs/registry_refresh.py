# app/jobs/registry_refresh.py
"""
Scheduled due check for every configured registry source.

    python -m app.jobs.registry_refresh [--force] [--key KEY]

Meant for cron / a k8s CronJob. Runs at most one pull per key; a pull already
in flight elsewhere is left alone.
"""
from __future__ import annotations

import argparse
import logging
import sys
from typing import List, Optional

from app.core.config import get_settings
from app.core.logging import configure_logging
from app.db.session import SessionLocal
from app.services.registry_sync_service import RegistrySyncService

logger = logging.getLogger(__name__)


def run(keys: Optional[List[str]] = None, *, force: bool = False, service: Optional[RegistrySyncService] = None) -> int:
    svc = service or RegistrySyncService()
    failures = 0
    db = SessionLocal()
    try:
        for key in keys or list(svc.sources):
            outcome = svc.trigger_sync(db, key, force=force)
            logger.info(
                "registry refresh checked",
                extra={
                    "source": key,
                    "performed": outcome.performed,
                    "in_progress": outcome.in_progress,
                    "synced_at": outcome.synced_at.isoformat() if outcome.synced_at else None,
                    "sync_message": outcome.message,
                },
            )
            if outcome.performed and outcome.message:
                failures += 1
    finally:
        db.close()
    return 1 if failures else 0


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Refresh the local registry mirror when due.")
    parser.add_argument("--force", action="store_true", help="pull even if not due")
    parser.add_argument("--key", action="append", dest="keys", help="source key (repeatable)")
    args = parser.parse_args(argv)

    configure_logging(get_settings())
    return run(args.keys, force=args.force)


if __name__ == "__main__":
    sys.exit(main())
