"""Due-date helpers — pure functions, no I/O.

Every due date that reaches the store passes through `normalize_due_date`:
timezone-aware, converted to the local zone, truncated to the minute.
"""

from __future__ import annotations

import logging
from datetime import datetime, tzinfo
from zoneinfo import ZoneInfo

from dateutil import parser as dtparser

logger = logging.getLogger(__name__)


def local_zone(name: str = "") -> tzinfo | None:
    """Return the configured zone, or None for the system local zone."""
    return ZoneInfo(name) if name else None


def strip_seconds(dt: datetime) -> datetime:
    """Drop seconds and microseconds, keeping the timezone."""
    return dt.replace(second=0, microsecond=0)


def to_local(dt: datetime, tz: tzinfo | None = None) -> datetime:
    """Convert to the local zone.

    Naive values are wall time in `tz`, or in the system zone when `tz` is None.
    """
    if dt.tzinfo is None and tz is not None:
        return dt.replace(tzinfo=tz)
    return dt.astimezone(tz)


def normalize_due_date(dt: datetime | None, tz: tzinfo | None = None) -> datetime | None:
    if dt is None:
        return None
    return strip_seconds(to_local(dt, tz))


def now_local(tz: tzinfo | None = None) -> datetime:
    return datetime.now().astimezone(tz)


def parse_due_date(raw: str | None, tz: tzinfo | None = None) -> datetime | None:
    """Best-effort ISO-8601 parse of a remote due-date string.

    Returns None (never raises) for empty or unparsable input, so a single
    bad candidate never sinks a whole batch.
    """
    if raw is None or not raw.strip():
        return None
    try:
        parsed = dtparser.isoparse(raw.strip())
    except (ValueError, OverflowError) as exc:
        logger.warning("Unparsable due date %r: %s", raw, exc)
        return None
    return normalize_due_date(parsed, tz)


def serialize_due_date(dt: datetime | None) -> str | None:
    """Storage form: ISO-8601 with offset, minute precision."""
    if dt is None:
        return None
    return dt.isoformat(timespec="minutes")


def deserialize_due_date(raw: str | None, tz: tzinfo | None = None) -> datetime | None:
    if not raw:
        return None
    return to_local(datetime.fromisoformat(raw), tz)
