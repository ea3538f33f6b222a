import re
from calendar import monthrange
from datetime import date, datetime, timedelta, timezone
from typing import Optional, Tuple

MONTH_PATTERN = re.compile(r"^\d{4}-(0[1-9]|1[0-2])$")


def utcnow() -> datetime:
    """Naive UTC timestamp, matching the DateTime columns."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def current_month(today: Optional[date] = None) -> str:
    today = today or utcnow().date()
    return f"{today.year:04d}-{today.month:02d}"


def is_valid_month(value: Optional[str]) -> bool:
    return bool(value) and MONTH_PATTERN.match(value) is not None


def month_bounds(month: str) -> Tuple[datetime, datetime]:
    """[first day 00:00, first day of next month 00:00) for YYYY-MM."""
    year, mon = (int(part) for part in month.split("-"))
    start = datetime(year, mon, 1)
    if mon == 12:
        end = datetime(year + 1, 1, 1)
    else:
        end = datetime(year, mon + 1, 1)
    return start, end


def days_remaining_in_month(month: str, today: Optional[date] = None) -> int:
    """Days left including today; 0 for past months, the full month for future ones."""
    today = today or utcnow().date()
    year, mon = (int(part) for part in month.split("-"))
    last_day = date(year, mon, monthrange(year, mon)[1])
    if today > last_day:
        return 0
    if today < date(year, mon, 1):
        return last_day.day
    return (last_day - today).days + 1


def to_local_date(value: datetime, offset_minutes: int) -> date:
    """Calendar day of a naive UTC timestamp at a fixed UTC offset."""
    return (value + timedelta(minutes=offset_minutes)).date()


def local_day_start(now: datetime, offset_minutes: int) -> datetime:
    """Naive UTC instant at which the local day containing ``now`` began."""
    offset = timedelta(minutes=offset_minutes)
    local_midnight = datetime.combine(to_local_date(now, offset_minutes), datetime.min.time())
    return local_midnight - offset


def local_week_start(now: datetime, offset_minutes: int) -> datetime:
    """Naive UTC instant of the local Monday 00:00 on or before ``now``."""
    day_start = local_day_start(now, offset_minutes)
    return day_start - timedelta(days=to_local_date(now, offset_minutes).weekday())
