import calendar
import datetime

from django.utils import timezone
from django.utils.dateparse import parse_date, parse_datetime

from ..exceptions import InputValidationError

"""
Billing periods are inclusive calendar-day ranges in the project time zone.
Delivery timestamps are compared against local midnight boundaries.
"""


def _parse(parser, text):
    # well-formed but impossible values ("2025-02-30") raise ValueError
    try:
        return parser(text.strip())
    except ValueError:
        return None


def to_date(value, field="date") -> datetime.date:
    if isinstance(value, datetime.datetime):
        return timezone.localdate(value) if timezone.is_aware(value) else value.date()
    if isinstance(value, datetime.date):
        return value
    if isinstance(value, str):
        parsed = _parse(parse_date, value)
        if parsed is not None:
            return parsed
        parsed_dt = _parse(parse_datetime, value)
        if parsed_dt is not None:
            return to_date(parsed_dt, field)
    raise InputValidationError(f"Invalid {field}: expected a date.", field=field, value=str(value))


def to_datetime(value, field="date") -> datetime.datetime:
    if isinstance(value, datetime.datetime):
        if timezone.is_naive(value):
            return timezone.make_aware(value)
        return value
    if isinstance(value, datetime.date):
        return local_midnight(value)
    if isinstance(value, str):
        parsed = _parse(parse_datetime, value)
        if parsed is not None:
            return to_datetime(parsed, field)
        day = _parse(parse_date, value)
        if day is not None:
            return local_midnight(day)
    raise InputValidationError(
        f"Invalid {field}: expected a date or datetime.", field=field, value=str(value)
    )


def local_midnight(day: datetime.date) -> datetime.datetime:
    return timezone.make_aware(datetime.datetime.combine(day, datetime.time.min))


def day_window(day: datetime.date):
    """[local midnight, next local midnight) of ``day``."""
    return local_midnight(day), local_midnight(day + datetime.timedelta(days=1))


def period_window(start: datetime.date, end: datetime.date):
    """Timestamps covering every day from ``start`` through ``end``."""
    return local_midnight(start), local_midnight(end + datetime.timedelta(days=1))


def month_bounds(day: datetime.date):
    """First and last day of the calendar month containing ``day``."""
    last = calendar.monthrange(day.year, day.month)[1]
    return day.replace(day=1), day.replace(day=last)
