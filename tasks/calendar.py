"""Calendar rules: day boundaries, due-date windows and display labels.

Every function that depends on the current moment takes it as an argument
(or takes a clock), so callers decide what "now" means.  Labels come from
fixed English tables rather than the active locale, because they double as
grouping keys for the analytics series.
"""

import datetime

from dateutil.relativedelta import relativedelta
from django.utils import timezone
from django.utils.dateparse import parse_date, parse_datetime

from .exceptions import ValidationError

MONTH_LABELS = (
    "Jan", "Feb", "Mar", "Apr", "May", "Jun",
    "Jul", "Aug", "Sep", "Oct", "Nov", "Dec",
)

# Indexed by datetime.date.weekday(): Monday is 0.
WEEKDAY_LABELS = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")
WEEKDAY_NAMES = (
    "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday",
)

TIME_RANGES = {
    "7d": relativedelta(days=7),
    "30d": relativedelta(days=30),
    "6m": relativedelta(months=6),
    "1y": relativedelta(years=1),
}

TIME_RANGE_LABELS = {
    "7d": "this week",
    "30d": "this month",
    "6m": "last 6 months",
    "1y": "this year",
}


class SystemClock:
    """Clock backed by Django's ``timezone.now()``."""

    def now(self):
        return timezone.now()


class FixedClock:
    """Clock frozen at one instant."""

    def __init__(self, moment):
        self.moment = to_datetime(moment)

    def now(self):
        return self.moment

    def __repr__(self):
        return f"FixedClock({self.moment.isoformat()})"


def to_datetime(value):
    """Coerce *value* to an aware datetime.

    Accepts datetimes (naive ones are taken as local time), dates (local
    midnight) and ISO-8601 strings.  ``None`` passes through.  Anything
    unparseable raises instead of falling back to the current time.
    """
    if value is None:
        return None
    if isinstance(value, datetime.datetime):
        if timezone.is_naive(value):
            return timezone.make_aware(value)
        return value
    if isinstance(value, datetime.date):
        return timezone.make_aware(datetime.datetime.combine(value, datetime.time.min))
    if isinstance(value, str):
        parsed = parse_datetime(value)
        if parsed is not None:
            return to_datetime(parsed)
        parsed_date = parse_date(value)
        if parsed_date is not None:
            return to_datetime(parsed_date)
        raise ValueError(f"Invalid timestamp: {value!r}")
    raise TypeError(f"Expected a datetime, date or ISO string, got {type(value).__name__}")


def start_of_day(ts):
    """Return local midnight of the day containing *ts*."""
    local = timezone.localtime(to_datetime(ts))
    return local.replace(hour=0, minute=0, second=0, microsecond=0)


def start_of_today(clock):
    return start_of_day(clock.now())


def day_window(base):
    """Return the half-open ``(start, end)`` window of *base*'s local day."""
    start = start_of_day(base)
    # Wall-clock arithmetic on a zoneinfo datetime lands on the next local
    # midnight even across DST changes.
    return start, start + datetime.timedelta(days=1)


def tomorrow_window(now):
    _, tomorrow = day_window(now)
    return day_window(tomorrow)


def is_overdue(due, now):
    return to_datetime(due) < start_of_day(now)


def is_due_today(due, now):
    start, end = day_window(now)
    return start <= to_datetime(due) < end


def is_due_tomorrow(due, now):
    start, end = tomorrow_window(now)
    return start <= to_datetime(due) < end


def month_label(ts):
    return MONTH_LABELS[timezone.localtime(to_datetime(ts)).month - 1]


def weekday_label(ts):
    return WEEKDAY_LABELS[timezone.localtime(to_datetime(ts)).weekday()]


def weekday_name(ts):
    return WEEKDAY_NAMES[timezone.localtime(to_datetime(ts)).weekday()]


def range_start(time_range, now):
    """Return the start of the trailing *time_range* ending at *now*."""
    try:
        delta = TIME_RANGES[time_range]
    except KeyError:
        raise ValidationError(
            f"Unknown time range {time_range!r}; expected one of {', '.join(TIME_RANGES)}"
        ) from None
    return to_datetime(now) - delta


def trailing_months(now, count=6):
    """Return ``(year, month)`` pairs for the last *count* months, oldest first."""
    first = timezone.localtime(to_datetime(now)).date().replace(day=1)
    months = []
    for offset in range(count - 1, -1, -1):
        day = first - relativedelta(months=offset)
        months.append((day.year, day.month))
    return months


def due_date_label(due, now):
    """Short display text for a due date relative to *now*.

    Dates two to six days out read as the weekday name; everything else
    reads as ``"05 Mar"``, with the year appended outside the current year.
    """
    due_date = timezone.localtime(to_datetime(due)).date()
    today = timezone.localtime(to_datetime(now)).date()
    days_ahead = (due_date - today).days
    if 2 <= days_ahead <= 6:
        return WEEKDAY_NAMES[due_date.weekday()]
    label = f"{due_date.day:02d} {MONTH_LABELS[due_date.month - 1]}"
    if due_date.year != today.year:
        label = f"{label} {due_date.year}"
    return label
