"""Week-window arithmetic for the tracker grid.

Weeks start on Sunday. Everything works on local calendar dates: a
``datetime`` is reduced to its ``.date()`` and never converted between
timezones, so the same calendar day always maps to the same ISO string.
"""
from datetime import date, datetime, timedelta
from typing import List, Union

DAYS_OF_WEEK = ["Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat"]

DateLike = Union[date, datetime]


def _as_date(d: DateLike) -> date:
    if isinstance(d, datetime):
        return d.date()
    return d


def week_start(d: DateLike) -> date:
    """Return the Sunday on or before ``d``."""
    day = _as_date(d)
    # date.weekday(): Monday == 0 ... Sunday == 6
    return day - timedelta(days=(day.weekday() + 1) % 7)


def week_dates(start: DateLike) -> List[date]:
    first = _as_date(start)
    return [first + timedelta(days=i) for i in range(7)]


def to_iso_date(d: DateLike) -> str:
    return _as_date(d).isoformat()


def parse_iso_date(value: str) -> date:
    """Parse ``YYYY-MM-DD``; raises ValueError for anything else."""
    value = (value or "").strip()
    parsed = datetime.strptime(value, "%Y-%m-%d").date()
    # strptime also accepts unpadded fields such as "2024-3-5".
    if parsed.isoformat() != value:
        raise ValueError(f"Invalid date: {value!r}")
    return parsed


def navigate(current_week_start: DateLike, direction: int) -> date:
    if direction not in (1, -1):
        raise ValueError("direction must be +1 or -1")
    return _as_date(current_week_start) + timedelta(days=7 * direction)


def week_label(start: DateLike) -> str:
    first = _as_date(start)
    last = first + timedelta(days=6)
    return f"{first.strftime('%b')} {first.day} - {last.strftime('%b')} {last.day}, {last.year}"


def day_label(d: DateLike) -> str:
    return DAYS_OF_WEEK[(_as_date(d).weekday() + 1) % 7]
