from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional


def utcnow() -> datetime:
    """Server-side 'now' in UTC (naive, canonical)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def month_start(dt: datetime, months_back: int = 0) -> datetime:
    """
    First instant of the month `months_back` months before dt's month.

    month_start(2026-03-17, 0) -> 2026-03-01
    month_start(2026-03-17, 3) -> 2025-12-01
    """
    index = dt.year * 12 + (dt.month - 1) - months_back
    return datetime(index // 12, index % 12 + 1, 1)


def to_utc_z(dt: Optional[datetime]) -> Optional[str]:
    """
    Serializes datetime to ISO-8601 with trailing 'Z'.
    If dt is naive, it is treated as UTC.
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    dt_utc = dt.astimezone(timezone.utc).replace(microsecond=0)
    return dt_utc.isoformat().replace("+00:00", "Z")
