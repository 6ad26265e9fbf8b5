"""Hours-worked and overtime arithmetic for a single shift."""

from datetime import date, datetime, time
from typing import Iterable, Tuple, Union

from config import STANDARD_SHIFT_HOURS
from errors import ValidationError

STANDARD_SHIFT = STANDARD_SHIFT_HOURS

TimeLike = Union[time, datetime]


def _as_datetime(value: TimeLike, field: str) -> datetime:
    if value.tzinfo is not None:
        # stored times carry no offset, so totals must not depend on one
        raise ValidationError("Times must not carry a UTC offset", field=field)
    if isinstance(value, datetime):
        return value
    # bare clock times are taken to be on the same day
    return datetime.combine(date.min, value)


def hours_worked(time_in: TimeLike, time_out: TimeLike) -> float:
    """
    Hours between time_in and time_out.

    A time_out earlier than time_in is rejected rather than reported as a
    negative duration, and so is a time_out on a later calendar day: an
    entry stores clock times for a single date.
    """
    start = _as_datetime(time_in, "timeIn")
    end = _as_datetime(time_out, "timeOut")
    if end.date() != start.date():
        raise ValidationError("A shift must end on the day it started", field="timeOut")
    delta = end - start
    seconds = delta.total_seconds()
    if seconds < 0:
        raise ValidationError("Time out must not be earlier than time in", field="timeOut")
    return seconds / 3600.0


def overtime(hours: float) -> float:
    return max(0.0, hours - STANDARD_SHIFT)


def compute_totals(time_in: TimeLike, time_out: TimeLike) -> Tuple[float, float]:
    hours = hours_worked(time_in, time_out)
    return hours, overtime(hours)


def total_overtime(entries: Iterable) -> float:
    return sum((entry.overtime for entry in entries), 0.0)


def weekday_name(day: date) -> str:
    return day.strftime("%A")
