"""Duration arithmetic shared by the engine and the rollups. No side effects besides logging."""

import logging
import math
from datetime import datetime, timezone
from typing import Optional

log = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Naive datetimes read back from the store are UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def seconds_between(start: datetime, end: datetime) -> int:
    """
    Whole seconds from ``start`` to ``end``, floored.

    Clock skew (``end`` before ``start``) is clamped to zero and logged.
    """
    delta = (as_utc(end) - as_utc(start)).total_seconds()
    if delta < 0:
        log.warning(f"Clock skew detected: now {end.isoformat()} is before start {start.isoformat()} ({delta:.3f}s), clamping to 0")
        return 0
    return int(math.floor(delta))


def elapsed(
    start: Optional[datetime],
    accumulated_seconds: Optional[int],
    end: Optional[datetime],
    now: datetime,
) -> int:
    """
    Effective elapsed seconds of a session or timer.

    Closed records (``end`` set) return their finalized ``accumulated_seconds``.
    Open records return ``accumulated_seconds`` plus the whole seconds since ``start``.
    A record with no ``start`` is not running and contributes only what it has stored.
    """
    accumulated = max(0, accumulated_seconds or 0)
    if end is not None or start is None:
        return accumulated
    return accumulated + seconds_between(start, now)


def format_duration(total_seconds: int) -> str:
    """Format seconds as ``"1h 2m 3s"``; zero hours and minutes are omitted, ``0s`` when empty."""
    total_seconds = max(0, int(total_seconds))
    hours = total_seconds // 3600
    minutes = (total_seconds % 3600) // 60
    seconds = total_seconds % 60
    parts = []
    if hours > 0:
        parts.append(f"{hours}h")
    if minutes > 0:
        parts.append(f"{minutes}m")
    if seconds > 0 or not parts:
        parts.append(f"{seconds}s")
    return " ".join(parts)
