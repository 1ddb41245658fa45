import calendar
from datetime import datetime, timezone
from typing import Optional, Tuple

# Day precision ends one millisecond before midnight, matching stored DATE values.
END_OF_DAY = {"hour": 23, "minute": 59, "second": 59, "microsecond": 999000}


def parse_int(value: Optional[str]) -> Optional[int]:
    """Leading-integer parse of a form field; None for anything unparseable."""
    if not value:
        return None
    digits = ""
    for char in value.strip():
        if not char.isdigit():
            break
        digits += char
    return int(digits) if digits else None


def utc_date(year: int, month: int, day: int) -> datetime:
    """Midnight UTC. Raises ValueError for impossible dates such as Feb 30."""
    return datetime(year, month, day, tzinfo=timezone.utc)


def year_bounds(year: int) -> Optional[Tuple[datetime, datetime]]:
    """
    [Jan 1 00:00:00.000, Dec 31 23:59:59.999] in UTC, or None when the year
    is outside what datetime can represent.
    """
    try:
        return (
            datetime(year, 1, 1, tzinfo=timezone.utc),
            datetime(year, 12, 31, tzinfo=timezone.utc, **END_OF_DAY),
        )
    except ValueError:
        return None


def month_bounds(year: int, month: int) -> Optional[Tuple[datetime, datetime]]:
    """
    First to last instant of the month in UTC, using the real month length
    (leap years included).
    """
    try:
        last_day = calendar.monthrange(year, month)[1]
        return (
            datetime(year, month, 1, tzinfo=timezone.utc),
            datetime(year, month, last_day, tzinfo=timezone.utc, **END_OF_DAY),
        )
    except (ValueError, calendar.IllegalMonthError):
        return None


def start_of_year(year: int) -> Optional[datetime]:
    bounds = year_bounds(year)
    return bounds[0] if bounds else None


def end_of_year(year: int) -> Optional[datetime]:
    bounds = year_bounds(year)
    return bounds[1] if bounds else None
