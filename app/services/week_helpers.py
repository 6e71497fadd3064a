from datetime import date, datetime, timedelta
from typing import NamedTuple, Union

DateLike = Union[date, datetime, str]


class WeekBounds(NamedTuple):
    week_start: date
    week_end: date


def to_date(value: DateLike) -> date:
    """Normalize a date, datetime or ISO string to a calendar day. Bad strings raise ValueError."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        text = value.strip()
        if len(text) == 10:
            return date.fromisoformat(text)
        return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
    raise TypeError(f"Unsupported date value: {value!r}")


def get_week_bounds(value: DateLike) -> WeekBounds:
    # ISO weeks: Monday is day 0, so a Sunday belongs to the week that started six days earlier.
    day = to_date(value)
    week_start = day - timedelta(days=day.weekday())
    return WeekBounds(week_start=week_start, week_end=week_start + timedelta(days=6))


def get_week_id(value: DateLike) -> str:
    return get_week_bounds(value).week_start.strftime("%Y-%m-%d")
