"""Date parsing utilities."""

import re
from datetime import UTC, date, datetime, timedelta
from typing import Optional

from dateutil import parser as date_parser
from dateutil import tz
from dateutil.relativedelta import relativedelta

PERIODS = ("this-month", "this-year", "this-week", "last-month", "last-year", "last-week")

_MONTH_RE = re.compile(r"^(\d{4})-(\d{2})$")


def parse_date(date_str: str, today: Optional[date] = None) -> date:
    """Parse a date string into a date object.

    Supports absolute dates ("2025-05-15", "May 15, 2025") and the relative
    words "today", "yesterday" and "tomorrow".

    Raises:
        ValueError: If date string cannot be parsed
    """
    date_str = date_str.strip().lower()
    today = today or date.today()

    relative_dates = {
        "today": today,
        "yesterday": today - timedelta(days=1),
        "tomorrow": today + timedelta(days=1),
    }
    if date_str in relative_dates:
        return relative_dates[date_str]

    try:
        return date_parser.parse(date_str).date()
    except (ValueError, OverflowError) as e:
        raise ValueError(f"Could not parse date '{date_str}': {e}")


def parse_datetime(value: str, default_tz: str = "UTC") -> datetime:
    """Parse a date and time into an aware UTC datetime.

    A value without an offset is read in default_tz.

    Raises:
        ValueError: If the value cannot be parsed or default_tz is unknown
    """
    try:
        parsed = date_parser.parse(value.strip())
    except (ValueError, OverflowError) as e:
        raise ValueError(f"Could not parse date and time '{value}': {e}")
    if parsed.tzinfo is None:
        zone = tz.gettz(default_tz)
        if zone is None:
            raise ValueError(f"Unknown time zone '{default_tz}'")
        parsed = parsed.replace(tzinfo=zone)
    return parsed.astimezone(UTC)


def month_range(month: str) -> tuple[date, date]:
    """Return the first and last day of a "YYYY-MM" month.

    Raises:
        ValueError: If month is not YYYY-MM
    """
    match = _MONTH_RE.match(month.strip())
    if not match:
        raise ValueError(f"Month must look like YYYY-MM, got '{month}'")
    year, number = int(match.group(1)), int(match.group(2))
    if not 1 <= number <= 12:
        raise ValueError(f"Month must be between 01 and 12, got '{month}'")
    start = date(year, number, 1)
    return start, start + relativedelta(months=1) - timedelta(days=1)


def get_date_range(period: str, today: Optional[date] = None) -> tuple[date, date]:
    """Get start and end dates for a named period.

    Args:
        period: One of this-month, this-year, this-week, last-month,
            last-year, last-week

    Raises:
        ValueError: If period string is not recognized
    """
    period = period.strip().lower()
    today = today or date.today()

    if period == "this-month":
        return today.replace(day=1), today
    if period == "this-year":
        return today.replace(month=1, day=1), today
    if period == "this-week":
        return today - timedelta(days=today.weekday()), today
    if period == "last-month":
        start_date = (today - relativedelta(months=1)).replace(day=1)
        return start_date, today.replace(day=1) - timedelta(days=1)
    if period == "last-year":
        start_date = today.replace(month=1, day=1) - relativedelta(years=1)
        return start_date, today.replace(month=1, day=1) - timedelta(days=1)
    if period == "last-week":
        start_date = today - timedelta(days=today.weekday() + 7)
        return start_date, start_date + timedelta(days=6)

    raise ValueError(f"Unknown period: '{period}'. Supported periods: {', '.join(PERIODS)}")
