"""
Timezone-aware datetime helpers.
- Store and compute in UTC.
- SQLite hands back naive datetimes; treat those as UTC before comparing.
"""
from datetime import datetime, timezone
from typing import Optional

UTC = timezone.utc


def now_utc() -> datetime:
    """Current time in UTC (timezone-aware)."""
    return datetime.now(UTC)


def ensure_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """If dt is naive, treat as UTC and return timezone-aware UTC. If already aware, convert to UTC."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)


def hours_between(earlier: Optional[datetime], later: datetime) -> float:
    """Elapsed hours from earlier to later; 0 when earlier is unknown."""
    if earlier is None:
        return 0.0
    return (ensure_utc(later) - ensure_utc(earlier)).total_seconds() / 3600.0


def iso_utc(dt: Optional[datetime]) -> Optional[str]:
    """ISO-8601 in UTC with an explicit offset. Use for API response datetime fields."""
    if dt is None:
        return None
    return ensure_utc(dt).isoformat()
