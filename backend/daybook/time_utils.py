from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError


def utcnow() -> datetime:
    """Server-side 'now' in UTC (naive, canonical)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def parse_iso_datetime(value: Optional[str]) -> Optional[datetime]:
    """
    Parse an ISO-8601 datetime string and normalize to UTC-naive datetime.

    - None / "" -> None
    - "YYYY-MM-DDTHH:MM" (naive) is interpreted as UTC
    - "...Z" or "...+/-HH:MM" is converted to UTC and tzinfo is stripped
    """
    if value is None:
        return None
    s = value.strip()
    if not s:
        return None

    # Accept trailing Z
    if s.endswith("Z"):
        s = s[:-1] + "+00:00"

    dt = datetime.fromisoformat(s)

    # Normalize to UTC-naive
    if dt.tzinfo is None:
        # interpret naive as UTC
        return dt.replace(tzinfo=None)

    return dt.astimezone(timezone.utc).replace(tzinfo=None)


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


# =============================================================================
# REGISTER-LOCAL CALENDAR DAYS
# =============================================================================
#
# Every persisted timestamp is UTC-naive. A register's business day is the
# midnight-to-midnight window in the register's own IANA time zone, so the
# helpers below convert between the two representations.

def get_zone(tz_name: str | None) -> ZoneInfo:
    """Resolve an IANA zone name, raising ValueError for unknown names."""
    try:
        return ZoneInfo(tz_name or "UTC")
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise ValueError(f"Unknown time zone: {tz_name!r}") from exc


def local_date(moment: datetime, tz_name: str | None) -> date:
    """Calendar day containing a UTC-naive instant, seen from tz_name."""
    aware = moment.replace(tzinfo=timezone.utc) if moment.tzinfo is None else moment
    return aware.astimezone(get_zone(tz_name)).date()


def day_bounds(day: date, tz_name: str | None) -> tuple[datetime, datetime]:
    """
    UTC-naive [start, end) window of a register-local calendar day.

    Computed from both local midnights so DST days are 23 or 25 hours long.
    """
    zone = get_zone(tz_name)
    start = datetime.combine(day, time.min, tzinfo=zone)
    end = datetime.combine(day + timedelta(days=1), time.min, tzinfo=zone)
    return (
        start.astimezone(timezone.utc).replace(tzinfo=None),
        end.astimezone(timezone.utc).replace(tzinfo=None),
    )


def start_of_local_day(moment: datetime, tz_name: str | None) -> datetime:
    return day_bounds(local_date(moment, tz_name), tz_name)[0]


def next_local_midnight(moment: datetime, tz_name: str | None) -> datetime:
    return day_bounds(local_date(moment, tz_name), tz_name)[1]


def format_remaining(delta: timedelta) -> str:
    """Human remaining-time string, e.g. '5h 07m' or '42m'."""
    total_minutes = max(0, int(delta.total_seconds() + 59) // 60)
    hours, minutes = divmod(total_minutes, 60)
    if hours:
        return f"{hours}h {minutes:02d}m"
    return f"{minutes}m"
