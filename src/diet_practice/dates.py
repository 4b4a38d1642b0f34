"""Calendar-day helpers shared by the domain and adapters."""

from datetime import date, datetime, timedelta

WEEKDAY_NAMES = (
    "Monday",
    "Tuesday",
    "Wednesday",
    "Thursday",
    "Friday",
    "Saturday",
    "Sunday",
)


def parse_day(value: object) -> date:
    """Normalize a date, datetime or ISO string to a calendar day.

    Time-of-day and offsets are dropped, so ``"2026-03-04T22:00:00+00:00"``
    and ``"2026-03-04"`` both map to ``date(2026, 3, 4)``.
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        return date.fromisoformat(value.strip()[:10])
    raise ValueError(f"Unsupported date value: {value!r}")


def format_day(value: date) -> str:
    """Return the canonical ``yyyy-MM-dd`` form of a day."""
    return value.isoformat()


def add_days(value: date, days: int) -> date:
    return value + timedelta(days=days)


def days_between(start: date, end: date) -> int:
    """Return whole days from ``start`` to ``end``."""
    return (end - start).days


def day_label(value: date, day_number: int) -> str:
    """Format the plan day label, e.g. ``"16 - Day 5 - Tuesday"``."""
    return f"{value.day} - Day {day_number} - {WEEKDAY_NAMES[value.weekday()]}"
