from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional
from zoneinfo import ZoneInfo

from config import get_settings

PERIOD_SLUGS = ("all", "this_month", "last_month", "this_year", "custom")


@dataclass(frozen=True)
class Period:
    slug: str
    start: Optional[date] = None
    end: Optional[date] = None

    def contains(self, day: date) -> bool:
        if self.start is not None and day < self.start:
            return False
        if self.end is not None and day > self.end:
            return False
        return True


ALL_TIME = Period("all")


def local_today() -> date:
    return datetime.now(ZoneInfo(get_settings().timezone)).date()


def _month_bounds(day: date) -> tuple[date, date]:
    first = day.replace(day=1)
    if first.month == 12:
        next_month = first.replace(year=first.year + 1, month=1)
    else:
        next_month = first.replace(month=first.month + 1)
    return first, next_month - date.resolution


def resolve_period(
    period: Optional[str],
    start: Optional[str],
    end: Optional[str],
    *,
    today: Optional[date] = None,
) -> Period:
    """Turn query parameters into a date range.

    A bare ``start`` and/or ``end`` without a slug is treated as a custom,
    possibly open-ended, range.
    """
    if not period and (start or end):
        period = "custom"
    if not period or period == "all":
        return ALL_TIME
    if period not in PERIOD_SLUGS:
        raise ValueError(f"Unknown period: {period}")

    today = today or local_today()
    if period == "this_month":
        first, last = _month_bounds(today)
        return Period("this_month", first, last)
    if period == "last_month":
        last_month_end = today.replace(day=1) - date.resolution
        return Period("last_month", last_month_end.replace(day=1), last_month_end)
    if period == "this_year":
        return Period("this_year", date(today.year, 1, 1), date(today.year, 12, 31))

    if not start and not end:
        raise ValueError("Custom period requires a start or end date")
    start_date = date.fromisoformat(start) if start else None
    end_date = date.fromisoformat(end) if end else None
    if start_date and end_date and start_date > end_date:
        raise ValueError("Start date must be before end date")
    return Period("custom", start_date, end_date)
