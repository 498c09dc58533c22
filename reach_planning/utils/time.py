"""Time utilities (UTC now, elapsed milliseconds, session expiry)."""
from __future__ import annotations
from datetime import datetime, timezone, timedelta
import time

def utc_now() -> datetime:
    return datetime.now(timezone.utc)

def expiry_from(start: datetime, hours: int) -> datetime:
    return start + timedelta(hours=hours)

def elapsed_ms(started: float) -> float:
    """Milliseconds since a ``time.time()`` reading."""
    return (time.time() - started) * 1000

def as_aware(value: datetime) -> datetime:
    # SQLite hands back naive datetimes even for timezone=True columns
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value

__all__ = ["utc_now", "expiry_from", "elapsed_ms", "as_aware"]
