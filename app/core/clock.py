from __future__ import annotations

import threading
from datetime import datetime, timezone
from typing import Optional

_lock = threading.Lock()
_last: Optional[datetime] = None


def utc_now() -> datetime:
    """
    Process-wide non-decreasing UTC clock.

    Wall clock steps backwards (NTP slew, VM migration) are absorbed by
    repeating the last issued instant, so entries appended serially by one
    actor never go back in time.
    """
    global _last
    now = datetime.now(timezone.utc)
    with _lock:
        if _last is not None and now < _last:
            now = _last
        _last = now
    return now


def ensure_utc(dt: Optional[datetime]) -> Optional[datetime]:
    # SQLite hands back naive datetimes; everything we store is UTC
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)
