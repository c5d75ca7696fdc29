"""
Timezone-aware datetime helpers.
- Store and compute in UTC in DB.
- API responses expose ISO-8601 with explicit offset.
"""
from datetime import date, datetime, timezone
from typing import Optional

UTC = timezone.utc


def now_utc() -> datetime:
    """Current time in UTC (timezone-aware). Use for decided_at, created_at, etc."""
    return datetime.now(UTC)


def ensure_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """If dt is naive, treat as UTC and return timezone-aware UTC. If already aware, convert to UTC."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    else:
        dt = dt.astimezone(UTC)
    return dt


def iso_utc(dt: Optional[datetime]) -> Optional[str]:
    """ISO-8601 with +00:00 offset. SQLite hands back naive datetimes; they are UTC."""
    if dt is None:
        return None
    return ensure_utc(dt).isoformat()


def add_months(d: date, months: int) -> date:
    """Add months to date (same day or last day of month)."""
    month_index = d.month - 1 + months
    year = d.year + month_index // 12
    month = month_index % 12 + 1
    for day in (d.day, 30, 29, 28):
        try:
            return date(year, month, min(d.day, day))
        except ValueError:
            continue
    raise ValueError(f"Cannot add {months} months to {d}")
